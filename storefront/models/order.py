from enum import Enum
from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from decimal import Decimal, ROUND_HALF_UP

from ..core.errors import DataIntegrityError

TWO_PLACES = Decimal("0.01")


def quantize_money(value: Any) -> Decimal:
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _to_decimal(value: Any) -> Any:
    # floats come back from JSON columns; go through str to keep 0.1 as 0.1
    if isinstance(value, float):
        return Decimal(str(value))
    return value


class OrderStatus(str, Enum):
    DRAFT = "Draft"
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    WAITING = "Waiting"
    CANCELED = "Canceled"


# Values an admin may force through the override endpoint
ADMIN_STATUSES = frozenset({
    OrderStatus.PENDING,
    OrderStatus.ACCEPTED,
    OrderStatus.REJECTED,
    OrderStatus.WAITING,
})


class OrderLine(BaseModel):
    product_id: str
    name: str = ""
    price: Decimal
    qty: int
    image: Optional[str] = None
    discount: Decimal = Decimal("0")
    final_price: Optional[Decimal] = None

    @field_validator("price", "discount", "final_price", mode="before")
    @classmethod
    def coerce_money(cls, value: Any) -> Any:
        return _to_decimal(value)

    @field_serializer("price", "discount", "final_price")
    def serialize_money(self, value: Optional[Decimal]) -> Optional[float]:
        return float(value) if value is not None else None

    def line_total(self) -> Decimal:
        return self.price * self.qty


class Order(BaseModel):
    id: Optional[str] = None
    order_number: Optional[str] = None
    owner_id: str
    status: OrderStatus = OrderStatus.DRAFT
    items: List[OrderLine] = Field(default_factory=list)
    total: Decimal = Decimal("0.00")

    # Set once, on confirmation
    payment_mode: Optional[str] = None
    delivery_mode: Optional[str] = None
    collect_by: Optional[str] = None

    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None

    @field_validator("total", mode="before")
    @classmethod
    def coerce_total(cls, value: Any) -> Any:
        return _to_decimal(value)

    @field_serializer("total")
    def serialize_total(self, value: Decimal) -> float:
        return float(value)

    def recompute_total(self) -> None:
        self.total = quantize_money(sum((line.line_total() for line in self.items), Decimal("0")))

    def merge_line(self, line: OrderLine) -> None:
        """Add ``line`` to the order, folding it into an existing line for the same product"""
        for existing in self.items:
            if existing.product_id == line.product_id:
                existing.qty += line.qty
                break
        else:
            self.items.append(line)
        self.recompute_total()

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Order":
        status = doc.get("status")
        try:
            OrderStatus(status)
        except ValueError:
            raise DataIntegrityError(f"Order {doc.get('id')} has unknown status {status!r}")
        return cls.model_validate(doc)


# Request bodies

class OrderLineIn(BaseModel):
    """Catalog snapshot supplied by the storefront when a product is added"""
    product_id: str
    name: str = ""
    price: Decimal
    qty: int = 1
    image: Optional[str] = None
    discount: Optional[Decimal] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "product_id": "p1",
            "name": "Rice",
            "price": 50,
            "qty": 2,
            "image": "https://cdn.example.com/rice.jpg",
            "discount": 0
        }
    })


class OrderConfirm(BaseModel):
    payment_mode: Optional[str] = None
    delivery_mode: Optional[str] = None
    collect_by: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: str
