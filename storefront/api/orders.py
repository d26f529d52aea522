from fastapi import APIRouter, Depends, Request, status
from typing import List

from ..models.order import Order, OrderConfirm, OrderLineIn
from ..models.user import UserRole
from ..core.permissions import get_current_user
from ..core.activity_logger import log_activity
from ..core.rate_limiter import default_limiter, strict_limiter
from .deps import get_order_service
from .order_service import OrderLifecycleService


router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("/draft", response_model=Order, status_code=status.HTTP_201_CREATED)
async def open_draft(
    request: Request,
    current_user: dict = Depends(get_current_user),
    service: OrderLifecycleService = Depends(get_order_service)
):
    """Return the caller's draft order, creating it on first use"""
    await strict_limiter.check_rate_limit(request, current_user["id"])
    return await service.get_or_create_draft(current_user["id"])


@router.get("/draft", response_model=Order)
async def get_draft(
    current_user: dict = Depends(get_current_user),
    service: OrderLifecycleService = Depends(get_order_service)
):
    return await service.get_draft(current_user["id"])


@router.get("", response_model=List[Order])
async def list_my_orders(
    current_user: dict = Depends(get_current_user),
    service: OrderLifecycleService = Depends(get_order_service)
):
    """Orders of the caller, newest first"""
    return await service.list_for_user(current_user["id"])


@router.get("/{order_id}", response_model=Order)
async def get_order(
    order_id: str,
    current_user: dict = Depends(get_current_user),
    service: OrderLifecycleService = Depends(get_order_service)
):
    is_admin = current_user.get("role") == UserRole.ADMIN.value
    return await service.get_order(order_id, current_user["id"], is_admin=is_admin)


@router.patch("/{order_id}/items", response_model=Order)
async def add_item(
    order_id: str,
    line: OrderLineIn,
    request: Request,
    current_user: dict = Depends(get_current_user),
    service: OrderLifecycleService = Depends(get_order_service)
):
    await default_limiter.check_rate_limit(request, current_user["id"])
    return await service.add_item(order_id, current_user["id"], line)


@router.patch("/{order_id}/confirm", response_model=Order)
async def confirm_order(
    order_id: str,
    payload: OrderConfirm,
    request: Request,
    current_user: dict = Depends(get_current_user),
    service: OrderLifecycleService = Depends(get_order_service)
):
    await default_limiter.check_rate_limit(request, current_user["id"])

    order = await service.confirm(
        order_id,
        current_user["id"],
        payment_mode=payload.payment_mode,
        delivery_mode=payload.delivery_mode,
        collect_by=payload.collect_by
    )

    await log_activity(
        current_user, "confirm", "order", order.id,
        {"order_number": order.order_number, "total": float(order.total)}, request
    )
    return order


@router.post("/{order_id}/cancel", response_model=Order)
async def cancel_order(
    order_id: str,
    request: Request,
    current_user: dict = Depends(get_current_user),
    service: OrderLifecycleService = Depends(get_order_service)
):
    await default_limiter.check_rate_limit(request, current_user["id"])

    order = await service.cancel(order_id, current_user["id"])

    await log_activity(current_user, "cancel", "order", order.id, {"order_number": order.order_number}, request)
    return order
