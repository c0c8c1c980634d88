from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="APP_",
        extra="ignore",
        case_sensitive=False,
    )

    # Application
    debug: bool = False
    log_level: str = "INFO"

    # API
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]

    cors_origin_regex: str | None = None
    trusted_hosts: list[str] = ["*"]
    root_path: str = ""

    # Supabase
    supabase_url: str
    supabase_anon_key: str
    supabase_service_role_key: str | None = None
    # Only read by the Supabase CLI when pushing migrations
    database_url: str | None = None

    # Front-end used to build links in auth emails
    site_url: str = "http://localhost:5173"
    password_reset_redirect_url: str | None = None

    # Authentication rules
    min_password_length: int = 6  # Supabase default
    self_assignable_roles: list[str] = ["user", "instructor"]

    # Authentication security settings
    max_login_attempts: int = 5  # Maximum failed login attempts before rate limiting
    login_attempt_window: int = 300  # Time window for login attempts (5 minutes)
    enable_rate_limiting: bool = True  # Enable rate limiting for auth endpoints

    @property
    def reset_password_redirect(self) -> str:
        if self.password_reset_redirect_url:
            return self.password_reset_redirect_url
        return f"{self.site_url.rstrip('/')}/reset-password"


settings = Settings()
