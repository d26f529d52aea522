from fastapi import APIRouter, Depends, Request, Query
from typing import Dict, List, Optional

from ..models.order import Order, OrderStatusUpdate
from ..core.permissions import require_admin
from ..core.activity_logger import log_activity
from .deps import get_order_service
from .order_service import OrderLifecycleService


router = APIRouter(prefix="/admin/orders", tags=["Admin Orders"])


@router.get("", response_model=List[Order])
async def list_all_orders(
    status: Optional[str] = Query(None, description="Only orders in this status"),
    current_user: dict = Depends(require_admin),
    service: OrderLifecycleService = Depends(get_order_service)
):
    """Every order, newest first"""
    return await service.list_all(status)


@router.get("/summary", response_model=Dict[str, int])
async def order_status_summary(
    current_user: dict = Depends(require_admin),
    service: OrderLifecycleService = Depends(get_order_service)
):
    """Number of orders per status, for the admin dashboard"""
    return await service.status_summary()


@router.put("/{order_id}/status", response_model=Order)
async def set_order_status(
    order_id: str,
    payload: OrderStatusUpdate,
    request: Request,
    current_user: dict = Depends(require_admin),
    service: OrderLifecycleService = Depends(get_order_service)
):
    order = await service.admin_set_status(order_id, payload.status)

    await log_activity(
        current_user, "set_status", "order", order.id,
        {"order_number": order.order_number, "status": order.status.value}, request
    )
    return order


@router.delete("/{order_id}")
async def delete_order(
    order_id: str,
    request: Request,
    current_user: dict = Depends(require_admin),
    service: OrderLifecycleService = Depends(get_order_service)
):
    await service.admin_delete(order_id)

    await log_activity(current_user, "delete", "order", order_id, None, request)
    return {"message": "Order deleted successfully", "id": order_id}
