"""Persistence interface for orders.

Adapters own identity and numbering: ``create`` assigns ``id``,
``order_number``, ``created_at`` and ``version``. They also enforce the two
uniqueness rules (order number, one Draft per owner) and the optimistic
version check on ``save``, raising ``ConflictError`` when one is violated.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional

from ..config import settings
from ..models.order import Order, OrderStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_order_number(sequence: int) -> str:
    return f"{settings.ORDER_NUMBER_PREFIX} {sequence}"


class OrderStore(ABC):

    @abstractmethod
    def find_draft_for(self, owner_id: str) -> Optional[Order]:
        ...

    @abstractmethod
    def create(self, order: Order) -> Order:
        ...

    @abstractmethod
    def save(self, order: Order) -> Order:
        """Persist ``order`` if nobody saved it since it was read"""

    @abstractmethod
    def find_by_id(self, order_id: str) -> Optional[Order]:
        ...

    @abstractmethod
    def find_by_owner(self, owner_id: str) -> List[Order]:
        """Orders of ``owner_id``, newest first"""

    @abstractmethod
    def find_all(self, status: Optional[OrderStatus] = None) -> List[Order]:
        """Every order, newest first, optionally restricted to one status"""

    @abstractmethod
    def delete_by_id(self, order_id: str) -> bool:
        ...

    @abstractmethod
    def count(self) -> int:
        ...
