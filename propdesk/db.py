from functools import lru_cache

from supabase import Client, ClientOptions, create_client

from .config import SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY, SUPABASE_ANON_KEY


def _require_settings() -> None:
    if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
        raise RuntimeError("Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY")


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """Service-role client used for table access and admin auth calls."""
    _require_settings()
    return create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)


def create_auth_client() -> Client:
    """
    Fresh client for a single sign-in or refresh.

    Signing in on the shared service-role client would swap its
    Authorization header to the user's token, so every password or refresh
    grant gets its own throwaway client that keeps no session.
    """
    _require_settings()
    return create_client(
        SUPABASE_URL,
        SUPABASE_ANON_KEY,
        options=ClientOptions(persist_session=False, auto_refresh_token=False),
    )
