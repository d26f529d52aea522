import logging
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, List, Optional

from ..config import settings
from ..core.errors import ConflictError, ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from ..models.order import ADMIN_STATUSES, Order, OrderLine, OrderLineIn, OrderStatus, quantize_money
from ..stores.base import OrderStore, utcnow

logger = logging.getLogger(__name__)

DOOR_DELIVERY = "doorDelivery"


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in OrderStatus)
        raise ValidationError(f"Unknown order status {value!r}. Expected one of: {allowed}")


class OrderLifecycleService:
    """Order state machine on top of an ``OrderStore``.

    ``Draft -> Pending -> {Accepted, Rejected, Waiting}`` and
    ``Draft -> Canceled``. Items can only change while an order is a Draft.
    Admins may move an order between the post-confirmation statuses freely.

    Every mutation re-reads the order, re-checks ownership and state, applies
    the change and saves with the version it read. When another request saved
    in between, the whole step is repeated up to ``conflict_retries`` times.
    """

    def __init__(self, store: OrderStore, conflict_retries: Optional[int] = None):
        self.store = store
        self.conflict_retries = settings.ORDER_CONFLICT_RETRIES if conflict_retries is None else conflict_retries

    # Loading and guards

    def _load(self, order_id: str) -> Order:
        order = self.store.find_by_id(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    def _load_owned(self, order_id: str, caller_id: str) -> Order:
        order = self._load(order_id)
        if order.owner_id != caller_id:
            logger.warning("User %s tried to modify order %s owned by %s", caller_id, order_id, order.owner_id)
            raise ForbiddenError("You do not have access to this order")
        return order

    @staticmethod
    def _require_draft(order: Order, action: str):
        if order.status != OrderStatus.DRAFT:
            raise InvalidStateError(
                f"Cannot {action} order {order.order_number}: it is {order.status.value}, not Draft. "
                "Refresh your orders and try again."
            )

    def _apply(self, order_id: str, mutate: Callable[[Order], None], caller_id: Optional[str] = None) -> Order:
        for attempt in range(self.conflict_retries + 1):
            order = self._load(order_id) if caller_id is None else self._load_owned(order_id, caller_id)
            mutate(order)
            try:
                return self.store.save(order)
            except ConflictError as e:
                if e.field != "version":
                    raise
                logger.info("Order %s changed concurrently (attempt %d), re-reading", order_id, attempt + 1)

        raise ConflictError("This order was changed by another request. Refresh and try again.", field="version")

    @staticmethod
    def _build_line(line: OrderLineIn) -> OrderLine:
        product_id = _clean(line.product_id)
        if not product_id:
            raise ValidationError("product_id is required")
        if isinstance(line.qty, bool) or not isinstance(line.qty, int) or line.qty <= 0:
            raise ValidationError("Quantity must be a positive whole number")

        try:
            price = Decimal(line.price)
            discount = Decimal(line.discount) if line.discount is not None else Decimal("0")
        except (InvalidOperation, TypeError):
            raise ValidationError("Price and discount must be numbers")
        if not price.is_finite() or price < 0:
            raise ValidationError("Price must be zero or more")
        if not discount.is_finite() or not 0 <= discount <= 100:
            raise ValidationError("Discount must be between 0 and 100")

        return OrderLine(
            product_id=product_id,
            name=line.name,
            price=price,
            qty=line.qty,
            image=line.image,
            discount=discount,
            final_price=quantize_money(price - price * discount / 100),
        )

    # Customer operations

    async def get_or_create_draft(self, owner_id: str) -> Order:
        """Return the owner's Draft, opening one when there is none"""
        draft = self.store.find_draft_for(owner_id)
        if draft:
            return draft

        for attempt in range(self.conflict_retries + 1):
            try:
                draft = self.store.create(Order(owner_id=owner_id))
                logger.info("Opened draft %s (%s) for %s", draft.id, draft.order_number, owner_id)
                return draft
            except ConflictError as e:
                if e.field != "draft":
                    raise
                # a concurrent request opened it first
                existing = self.store.find_draft_for(owner_id)
                if existing:
                    return existing

        raise ConflictError("Could not open a draft order. Try again.", field="draft")

    async def get_draft(self, owner_id: str) -> Order:
        draft = self.store.find_draft_for(owner_id)
        if draft is None:
            raise NotFoundError("No draft order found")
        return draft

    async def add_item(self, order_id: str, caller_id: str, line: OrderLineIn) -> Order:
        def mutate(order: Order):
            self._require_draft(order, "add items to")
            order.merge_line(self._build_line(line))

        order = self._apply(order_id, mutate, caller_id)
        logger.info("Added %s x%s to order %s, total %s", line.product_id, line.qty, order.id, order.total)
        return order

    async def confirm(
        self,
        order_id: str,
        caller_id: str,
        payment_mode: Optional[str] = None,
        delivery_mode: Optional[str] = None,
        collect_by: Optional[str] = None
    ) -> Order:
        """Lock the items and record fulfilment preferences: Draft -> Pending"""
        payment_mode = _clean(payment_mode)
        delivery_mode = _clean(delivery_mode)
        collect_by = _clean(collect_by)

        def mutate(order: Order):
            self._require_draft(order, "confirm")
            if not payment_mode or not delivery_mode:
                raise ValidationError("Select a payment mode and a delivery mode")
            if delivery_mode == DOOR_DELIVERY and not collect_by:
                raise ValidationError("Door delivery needs the name of the person collecting the order")

            order.payment_mode = payment_mode
            order.delivery_mode = delivery_mode
            order.collect_by = collect_by
            order.status = OrderStatus.PENDING
            order.confirmed_at = utcnow()

        order = self._apply(order_id, mutate, caller_id)
        logger.info("Order %s confirmed by %s (%s, %s)", order.id, caller_id, payment_mode, delivery_mode)
        return order

    async def cancel(self, order_id: str, caller_id: str) -> Order:
        def mutate(order: Order):
            if order.status == OrderStatus.CANCELED:
                raise InvalidStateError(f"Order {order.order_number} is already canceled")
            self._require_draft(order, "cancel")
            order.status = OrderStatus.CANCELED

        order = self._apply(order_id, mutate, caller_id)
        logger.info("Order %s canceled by %s", order.id, caller_id)
        return order

    async def list_for_user(self, owner_id: str) -> List[Order]:
        return self.store.find_by_owner(owner_id)

    async def get_order(self, order_id: str, caller_id: str, is_admin: bool = False) -> Order:
        order = self._load(order_id)
        if not is_admin and order.owner_id != caller_id:
            raise ForbiddenError("You do not have access to this order")
        return order

    # Admin operations

    async def list_all(self, status: Optional[str] = None) -> List[Order]:
        return self.store.find_all(parse_status(status) if status else None)

    async def admin_set_status(self, order_id: str, new_status) -> Order:
        """Override the status of a submitted order.

        Both the current and the new status must be one of ``ADMIN_STATUSES``;
        a Draft only leaves Draft through ``confirm`` or ``cancel``.
        """
        status = parse_status(new_status)
        if status not in ADMIN_STATUSES:
            allowed = ", ".join(sorted(s.value for s in ADMIN_STATUSES))
            raise ValidationError(f"Admins can only set one of: {allowed}")

        previous: Dict[str, OrderStatus] = {}

        def mutate(order: Order):
            if order.status not in ADMIN_STATUSES:
                raise InvalidStateError(f"Order {order.order_number} is {order.status.value} and cannot be overridden")
            previous["status"] = order.status
            order.status = status

        order = self._apply(order_id, mutate)
        logger.info("Order %s status overridden %s -> %s", order.id, previous["status"].value, status.value)
        return order

    async def admin_delete(self, order_id: str) -> None:
        if not self.store.delete_by_id(order_id):
            raise NotFoundError("Order not found")
        logger.info("Order %s deleted", order_id)

    async def status_summary(self) -> Dict[str, int]:
        summary = {status.value: 0 for status in OrderStatus}
        orders = self.store.find_all()
        for order in orders:
            summary[order.status.value] += 1
        summary["total"] = len(orders)
        return summary
