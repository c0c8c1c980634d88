from __future__ import annotations

from functools import lru_cache

from supabase import Client, create_client
from supabase.lib.client_options import ClientOptions

from app.config import settings
from app.utils.logging import get_logger

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_supabase_admin_client() -> Client:
    """Return a cached Supabase admin client using the service role key.

    The service role bypasses RLS; only use it for maintenance work such as
    readiness checks, never on behalf of an end user.
    """
    logger.debug("Initializing Supabase admin client")
    if not settings.supabase_service_role_key:
        raise RuntimeError("supabase_service_role_key is required for admin client")
    key = settings.supabase_service_role_key
    return create_client(
        settings.supabase_url,
        key,
        options=ClientOptions(auto_refresh_token=False, persist_session=False),
    )


def _anon_key() -> str:
    anon_key = settings.supabase_anon_key
    if not anon_key:
        raise RuntimeError("supabase_anon_key is required for user clients")
    return anon_key


def create_request_supabase_client(
    access_token: str | None = None,
    refresh_token: str | None = None,
) -> Client:
    """Create a request-scoped Supabase client using the anon key.

    If an access token is provided it becomes the client's session, so GoTrue
    calls act as that user and PostgREST enforces RLS for them.
    """
    logger.debug("Creating request-scoped Supabase client")
    client = create_client(
        settings.supabase_url,
        _anon_key(),
        options=ClientOptions(auto_refresh_token=False, persist_session=False),
    )
    if access_token:
        # Validates the token against GoTrue; raises if it is invalid or expired
        client.auth.set_session(access_token, refresh_token or "")
        client.postgrest.auth(access_token)
    return client


def create_session_supabase_client() -> Client:
    """Create a long-lived client that keeps and refreshes its own session.

    Intended for ``SessionContext`` in scripts and desktop tools, where one
    process acts for one user.
    """
    logger.debug("Creating session-holding Supabase client")
    return create_client(
        settings.supabase_url,
        _anon_key(),
        options=ClientOptions(auto_refresh_token=True, persist_session=True),
    )
