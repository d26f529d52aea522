from functools import lru_cache
from fastapi import Depends
from ..config import settings
from ..stores.base import OrderStore
from ..stores.memory import MemoryOrderStore
from ..stores.supabase_store import SupabaseOrderStore
from .order_service import OrderLifecycleService


@lru_cache(maxsize=None)
def get_order_store() -> OrderStore:
    backend = settings.ORDER_STORE_BACKEND
    if backend == "memory":
        return MemoryOrderStore()
    if backend == "supabase":
        return SupabaseOrderStore()
    raise ValueError(f"Unknown ORDER_STORE_BACKEND {backend!r}")


def get_order_service(store: OrderStore = Depends(get_order_store)) -> OrderLifecycleService:
    return OrderLifecycleService(store)
