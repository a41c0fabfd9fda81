"""Supabase client for the route planning backend."""

import logging
from functools import lru_cache

from supabase import Client, create_client

from ..config import settings


class DatabaseNotConfiguredError(RuntimeError):
    """Raised when a query is attempted without Supabase credentials."""


@lru_cache()
def get_supabase_client() -> Client | None:
    """Get cached Supabase client instance.

    Returns:
        Supabase Client instance if configured, None otherwise.
        Note: This does not test the connection - actual queries may fail with network errors.
    """
    if not settings.supabase_url or not settings.supabase_key:
        logging.warning("Supabase credentials not configured (missing URL or key)")
        return None

    try:
        client = create_client(settings.supabase_url, settings.supabase_key)
        return client
    except Exception as e:
        logging.error(f"Failed to create Supabase client: {e}")
        return None


def require_client() -> Client:
    """Return the configured client or raise when credentials are missing."""
    client = get_supabase_client()
    if client is None:
        raise DatabaseNotConfiguredError(
            "Supabase not configured. Set ROUTES_SUPABASE_URL and ROUTES_SUPABASE_KEY environment variables."
        )
    return client


# Query shapes used by the persistence layer:
#
# supabase.table('stops').select('*').eq('day', 'monday').order('id').execute()
# supabase.table('driver_route_order').delete().eq('driver_id', driver_id).execute()
# supabase.table('stops').update({'assigned_driver_id': None}).in_('id', stop_ids).execute()
