import threading
import uuid
from itertools import count
from typing import Dict, List, Optional

from ..core.errors import ConflictError, NotFoundError
from ..models.order import Order, OrderStatus
from .base import OrderStore, format_order_number, utcnow


class MemoryOrderStore(OrderStore):
    """Process-local order store for development and tests.

    Orders are kept as documents so reads go through the same
    ``Order.from_document`` validation as the Supabase adapter. A single lock
    makes each call atomic; the uniqueness checks run under it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._docs: Dict[str, dict] = {}
        self._inserted: Dict[str, int] = {}
        self._insert_counter = count()
        self._sequence = 0

    def _next_order_number(self) -> str:
        self._sequence = max(self._sequence, len(self._docs)) + 1
        return format_order_number(self._sequence)

    def _newest_first(self, docs: List[dict]) -> List[Order]:
        orders = [Order.from_document(d) for d in docs]
        orders.sort(key=lambda o: (o.created_at, self._inserted[o.id]), reverse=True)
        return orders

    def find_draft_for(self, owner_id: str) -> Optional[Order]:
        with self._lock:
            for doc in self._docs.values():
                if doc["owner_id"] == owner_id and doc["status"] == OrderStatus.DRAFT.value:
                    return Order.from_document(doc)
        return None

    def create(self, order: Order) -> Order:
        with self._lock:
            if order.status == OrderStatus.DRAFT and any(
                d["owner_id"] == order.owner_id and d["status"] == OrderStatus.DRAFT.value
                for d in self._docs.values()
            ):
                raise ConflictError(f"User {order.owner_id} already has a draft order", field="draft")

            now = utcnow()
            created = order.model_copy(deep=True, update={
                "id": str(uuid.uuid4()),
                "order_number": self._next_order_number(),
                "version": 1,
                "created_at": now,
                "updated_at": now,
            })
            doc = created.to_document()
            self._docs[created.id] = doc
            self._inserted[created.id] = next(self._insert_counter)
            return Order.from_document(doc)

    def save(self, order: Order) -> Order:
        with self._lock:
            current = self._docs.get(order.id)
            if current is None:
                raise NotFoundError(f"Order {order.id} not found")
            if current["version"] != order.version:
                raise ConflictError(f"Order {order.id} was modified concurrently", field="version")

            saved = order.model_copy(deep=True, update={"version": order.version + 1, "updated_at": utcnow()})
            doc = saved.to_document()
            self._docs[order.id] = doc
            return Order.from_document(doc)

    def find_by_id(self, order_id: str) -> Optional[Order]:
        with self._lock:
            doc = self._docs.get(order_id)
            return Order.from_document(doc) if doc else None

    def find_by_owner(self, owner_id: str) -> List[Order]:
        with self._lock:
            return self._newest_first([d for d in self._docs.values() if d["owner_id"] == owner_id])

    def find_all(self, status: Optional[OrderStatus] = None) -> List[Order]:
        with self._lock:
            docs = list(self._docs.values())
            if status is not None:
                docs = [d for d in docs if d["status"] == status.value]
            return self._newest_first(docs)

    def delete_by_id(self, order_id: str) -> bool:
        with self._lock:
            self._inserted.pop(order_id, None)
            return self._docs.pop(order_id, None) is not None

    def count(self) -> int:
        with self._lock:
            return len(self._docs)
