from __future__ import annotations

import inspect
import os

# Settings are read at import time
os.environ.setdefault("APP_SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("APP_SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("APP_SITE_URL", "https://app.example.com")

import anyio  # noqa: E402
import pytest  # noqa: E402

from app.core.services.auth_service import AuthService  # noqa: E402

from .fakes import FakeAuthClient, InMemoryProfileRepository  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    # Tests use @pytest.mark.asyncio, but we intentionally rely on anyio.
    config.addinivalue_line(
        "markers",
        "asyncio: run async tests using anyio (project-local hook)",
    )


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Run @pytest.mark.asyncio tests with anyio."""
    if pyfuncitem.get_closest_marker("asyncio") is None:
        return None

    test_func = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_func):
        return None

    funcargs = {
        name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames
    }

    async def _run_async_test() -> None:
        await test_func(**funcargs)

    anyio.run(_run_async_test)
    return True


@pytest.fixture(name="profiles")
def profiles_fixture() -> InMemoryProfileRepository:
    return InMemoryProfileRepository()


@pytest.fixture(name="fake_client")
def fake_client_fixture() -> FakeAuthClient:
    return FakeAuthClient()


@pytest.fixture(name="auth_service")
def auth_service_fixture(fake_client: FakeAuthClient, profiles: InMemoryProfileRepository) -> AuthService:
    return AuthService(
        fake_client,
        profiles,
        password_reset_redirect_url="https://app.example.com/reset-password",
    )
