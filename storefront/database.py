from functools import lru_cache
from supabase import create_client, Client
from .config import settings


@lru_cache(maxsize=None)
def get_supabase() -> Client:
    """Public client for regular operations"""
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


@lru_cache(maxsize=None)
def get_supabase_admin() -> Client:
    """Service client for admin operations and the order store"""
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
