from typing import Optional
from fastapi import APIRouter, Depends, Query

from vendorconnect.auth.models import CurrentUser
from vendorconnect.deps import get_current_user, get_order_service, require_supplier, require_vendor
from vendorconnect.orders.models import OrderStatus
from vendorconnect.orders.schemas import (
    OrderCancel, OrderListResponse, OrderResponse, OrderStatusUpdate, PaymentStatusUpdate
)
from vendorconnect.orders.service import OrderService
from vendorconnect.shared.utils import SuccessResponse

router = APIRouter(prefix="/orders", tags=["orders"])

@router.get("/vendor", response_model=SuccessResponse[OrderListResponse])
async def list_vendor_orders(
    status: Optional[OrderStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: CurrentUser = Depends(require_vendor),
    service: OrderService = Depends(get_order_service),
):
    orders, total = await service.list_for_vendor(user.user_id, status, page, limit)
    return SuccessResponse(data=OrderListResponse(
        orders=[OrderResponse.from_db(o) for o in orders], total=total, page=page, limit=limit
    ))

@router.get("/supplier", response_model=SuccessResponse[OrderListResponse])
async def list_supplier_orders(
    status: Optional[OrderStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: CurrentUser = Depends(require_supplier),
    service: OrderService = Depends(get_order_service),
):
    orders, total = await service.list_for_supplier(user.user_id, status, page, limit)
    return SuccessResponse(data=OrderListResponse(
        orders=[OrderResponse.from_db(o) for o in orders], total=total, page=page, limit=limit
    ))

@router.get("/{order_id}", response_model=SuccessResponse[OrderResponse])
async def get_order(
    order_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = await service.get(order_id, user)
    return SuccessResponse(data=OrderResponse.from_db(order))

@router.put("/{order_id}/status", response_model=SuccessResponse[OrderResponse])
async def update_order_status(
    order_id: str,
    status_update: OrderStatusUpdate,
    user: CurrentUser = Depends(require_supplier),
    service: OrderService = Depends(get_order_service),
):
    order = await service.update_status(
        order_id,
        status_update.status,
        user,
        notes=status_update.notes,
        tracking_number=status_update.tracking_number,
        estimated_delivery=status_update.estimated_delivery,
    )
    return SuccessResponse(data=OrderResponse.from_db(order), message=f"Order {order.status.value}")

@router.put("/{order_id}/cancel", response_model=SuccessResponse[OrderResponse])
async def cancel_order(
    order_id: str,
    body: Optional[OrderCancel] = None,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    reason = body.reason if body else None
    order = await service.cancel(order_id, user, reason)
    return SuccessResponse(data=OrderResponse.from_db(order), message="Order cancelled")

@router.put("/{order_id}/payment", response_model=SuccessResponse[OrderResponse])
async def update_payment_status(
    order_id: str,
    update: PaymentStatusUpdate,
    user: CurrentUser = Depends(require_supplier),
    service: OrderService = Depends(get_order_service),
):
    order = await service.update_payment_status(order_id, update.payment_status, user, update.payment_method)
    return SuccessResponse(data=OrderResponse.from_db(order))
