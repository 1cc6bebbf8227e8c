"""Database clients and utilities."""

from .supabase import check_tables, get_supabase_client

__all__ = ["check_tables", "get_supabase_client"]
