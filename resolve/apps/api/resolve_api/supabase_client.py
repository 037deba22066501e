"""Supabase clients.

Two clients, one per key:
- anon key: validates the web client's session JWTs (auth.get_user)
- service role key: server-only admin lookups (auth.admin.get_user_by_id)

The service role key must never reach the browser.
"""

import logging
from functools import lru_cache

from supabase import Client, create_client

from resolve_api.config import env

logger = logging.getLogger(__name__)


def _build(key: str, key_type: str) -> Client:
    url = env.get_supabase_url()
    logger.info(
        "supabase.client.initialized",
        extra={"event": "supabase.client.initialized", "key_type": key_type},
    )
    return create_client(url, key)


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """Client for session validation.

    Raises:
        ValueError: SUPABASE_URL or SB_PUBLISHABLE_KEY missing
    """
    return _build(env.get_supabase_anon_key(), "anon")


@lru_cache(maxsize=1)
def get_supabase_admin_client() -> Client:
    """Client for admin user management (bypasses RLS).

    Used when an admin assigns a role to a Supabase user who has never
    called the API, so no users row exists yet.

    Raises:
        ValueError: SUPABASE_URL or SB_SECRET_KEY missing
    """
    return _build(env.get_supabase_service_role_key(), "service_role")
