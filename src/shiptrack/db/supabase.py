"""Supabase client used by the order store."""

import logging
from functools import lru_cache

from supabase import Client, create_client

from ..config import settings

logger = logging.getLogger(__name__)

# Tables the order store reads and writes
REQUIRED_TABLES = ("orders", "routes", "logistics_companies", "logistics_timeline")


@lru_cache()
def get_supabase_client() -> Client | None:
    """Cached client, or None when SHIPTRACK_SUPABASE_URL / _KEY are unset.

    Creating the client does not touch the network; use ``check_tables``
    to verify the schema is reachable.
    """
    if not settings.supabase_url or not settings.supabase_key:
        logger.info("Supabase credentials not configured; orders stay in memory")
        return None

    try:
        return create_client(settings.supabase_url, settings.supabase_key)
    except Exception as e:
        logger.error(f"Failed to create Supabase client: {e}")
        return None


def check_tables(client: Client) -> dict[str, bool]:
    """Probe each order-store table with a one-row select."""
    status: dict[str, bool] = {}
    for table in REQUIRED_TABLES:
        try:
            client.table(table).select("*").limit(1).execute()
            status[table] = True
        except Exception as e:
            logger.warning(f"Supabase table {table} is not reachable: {e}")
            status[table] = False
    return status
