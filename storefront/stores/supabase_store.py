import logging
import uuid
from typing import List, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from ..config import settings
from ..core.errors import ConflictError, NotFoundError, StoreUnavailableError
from ..database import get_supabase_admin
from ..models.order import Order, OrderStatus
from ..services.redis import redis_client
from .base import OrderStore, format_order_number, utcnow
from .sequence import RedisOrderSequence

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


class SupabaseOrderStore(OrderStore):
    """Orders table accessed through the Supabase service client.

    Relies on the indexes in ``schema.sql``: a unique ``order_number`` and a
    partial unique index allowing one ``Draft`` row per ``owner_id``.
    """

    def __init__(self, client: Optional[Client] = None, sequence: Optional[RedisOrderSequence] = None,
                 table: Optional[str] = None):
        self._client = client
        self.sequence = sequence or RedisOrderSequence(redis_client)
        self.table_name = table or settings.ORDER_TABLE

    @property
    def client(self) -> Client:
        return self._client or get_supabase_admin()

    def _table(self):
        return self.client.table(self.table_name)

    def _execute(self, query):
        try:
            return query.execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                text = f"{e.message} {e.details}"
                field = "order_number" if "order_number" in text else "draft"
                raise ConflictError(f"Duplicate {field.replace('_', ' ')}", field=field) from e
            logger.error("Order store query failed: %s %s", e.code, e.message)
            raise StoreUnavailableError(f"Order store error {e.code}") from e
        except httpx.HTTPError as e:
            logger.error("Order store unreachable: %s", e)
            raise StoreUnavailableError("Order store unreachable") from e

    def find_draft_for(self, owner_id: str) -> Optional[Order]:
        result = self._execute(
            self._table().select("*").eq("owner_id", owner_id).eq("status", OrderStatus.DRAFT.value).limit(1)
        )
        return Order.from_document(result.data[0]) if result.data else None

    def create(self, order: Order) -> Order:
        for _ in range(settings.ORDER_NUMBER_RETRIES + 1):
            number = self.sequence.next_value(self.highest_sequence)
            now = utcnow()
            created = order.model_copy(deep=True, update={
                "id": str(uuid.uuid4()),
                "order_number": format_order_number(number),
                "version": 1,
                "created_at": now,
                "updated_at": now,
            })
            doc = created.to_document()
            doc["order_seq"] = number
            try:
                result = self._execute(self._table().insert(doc))
            except ConflictError as e:
                if e.field != "order_number":
                    raise
                logger.warning("%s already taken, resyncing sequence", created.order_number)
                self.sequence.resync(max(number, self.highest_sequence()))
                continue
            return Order.from_document(result.data[0])

        raise ConflictError("Could not allocate a unique order number", field="order_number")

    def save(self, order: Order) -> Order:
        doc = order.model_copy(update={"version": order.version + 1, "updated_at": utcnow()}).to_document()
        doc.pop("id")
        result = self._execute(
            self._table().update(doc).eq("id", order.id).eq("version", order.version)
        )
        if result.data:
            return Order.from_document(result.data[0])
        if self.find_by_id(order.id) is None:
            raise NotFoundError(f"Order {order.id} not found")
        raise ConflictError(f"Order {order.id} was modified concurrently", field="version")

    def find_by_id(self, order_id: str) -> Optional[Order]:
        try:
            uuid.UUID(order_id)
        except ValueError:
            return None
        result = self._execute(self._table().select("*").eq("id", order_id).limit(1))
        return Order.from_document(result.data[0]) if result.data else None

    def find_by_owner(self, owner_id: str) -> List[Order]:
        result = self._execute(
            self._table().select("*").eq("owner_id", owner_id).order("created_at", desc=True)
        )
        return [Order.from_document(doc) for doc in result.data]

    def find_all(self, status: Optional[OrderStatus] = None) -> List[Order]:
        query = self._table().select("*")
        if status is not None:
            query = query.eq("status", status.value)
        result = self._execute(query.order("created_at", desc=True))
        return [Order.from_document(doc) for doc in result.data]

    def delete_by_id(self, order_id: str) -> bool:
        if self.find_by_id(order_id) is None:
            return False
        result = self._execute(self._table().delete().eq("id", order_id))
        return len(result.data) > 0

    def highest_sequence(self) -> int:
        """Largest ``order_seq`` in use; deletes leave gaps, so this is not ``count()``"""
        result = self._execute(self._table().select("order_seq").order("order_seq", desc=True).limit(1))
        return int(result.data[0]["order_seq"]) if result.data else 0

    def count(self) -> int:
        result = self._execute(self._table().select("id", count="exact").limit(1))
        return result.count or 0
