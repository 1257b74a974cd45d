import logging
from datetime import datetime
from typing import List, Optional, Tuple

from vendorconnect.auth.models import CurrentUser
from vendorconnect.orders.models import (
    OrderDB, OrderStatus, PaymentStatus, assert_can_transition
)
from vendorconnect.orders.repository import OrderRepository
from vendorconnect.shared.utils import (
    ConflictException, ForbiddenException, InvalidTransitionException, NotFoundException, utcnow
)

logger = logging.getLogger(__name__)

class OrderService:
    """Reads and status changes for orders. Contents are never edited after checkout."""

    def __init__(self, orders: OrderRepository):
        self.orders = orders

    async def get(self, order_id: str, actor: CurrentUser) -> OrderDB:
        order = await self._get_or_404(order_id)
        if actor.user_id not in (order.vendor_id, order.supplier_id):
            raise ForbiddenException("Not authorized to view this order")
        return order

    async def list_for_vendor(
        self, vendor_id: str, status: Optional[OrderStatus] = None, page: int = 1, limit: int = 20
    ) -> Tuple[List[OrderDB], int]:
        return await self.orders.list_for_vendor(vendor_id, status, page, limit)

    async def list_for_supplier(
        self, supplier_id: str, status: Optional[OrderStatus] = None, page: int = 1, limit: int = 20
    ) -> Tuple[List[OrderDB], int]:
        return await self.orders.list_for_supplier(supplier_id, status, page, limit)

    async def update_status(
        self,
        order_id: str,
        new_status: OrderStatus,
        actor: CurrentUser,
        notes: Optional[str] = None,
        tracking_number: Optional[str] = None,
        estimated_delivery: Optional[datetime] = None,
    ) -> OrderDB:
        order = await self._get_or_404(order_id)
        self._require_supplier(order, actor)

        changes = {}
        if notes:
            changes["notes"] = notes
        if tracking_number:
            changes["tracking_number"] = tracking_number
        if estimated_delivery:
            changes["estimated_delivery"] = estimated_delivery
        return await self._transition(order, OrderStatus(new_status), changes, actor)

    async def cancel(self, order_id: str, actor: CurrentUser, reason: Optional[str] = None) -> OrderDB:
        """
        Vendors may cancel their own orders while still pending; the owning
        supplier may cancel at any non-terminal status.
        """
        order = await self._get_or_404(order_id)
        if actor.is_vendor and order.vendor_id == actor.user_id:
            if order.status != OrderStatus.PENDING:
                raise InvalidTransitionException(order.status.value, OrderStatus.CANCELLED.value)
        else:
            self._require_supplier(order, actor)

        changes = {"cancel_reason": reason} if reason else {}
        return await self._transition(order, OrderStatus.CANCELLED, changes, actor)

    async def update_payment_status(
        self,
        order_id: str,
        payment_status: PaymentStatus,
        actor: CurrentUser,
        payment_method: Optional[str] = None,
    ) -> OrderDB:
        order = await self._get_or_404(order_id)
        self._require_supplier(order, actor)

        changes = {"payment_status": PaymentStatus(payment_status), "updated_at": utcnow()}
        if payment_method:
            changes["payment_method"] = payment_method
        updated = await self.orders.update_fields(order.id, changes)
        if updated is None:
            raise NotFoundException("Order not found")
        return updated

    async def _transition(self, order: OrderDB, target: OrderStatus, changes: dict, actor: CurrentUser) -> OrderDB:
        assert_can_transition(order.status, target)

        now = utcnow()
        changes = dict(changes, status=target, updated_at=now)
        if target == OrderStatus.DELIVERED:
            changes["actual_delivery"] = now

        updated = await self.orders.transition(order.id, order.status, changes)
        if updated is None:
            raise ConflictException("Order status changed concurrently, reload and retry")

        logger.info(
            f"Order status {order.status.value} -> {target.value}",
            extra={"order_id": order.id, "supplier_id": order.supplier_id, "user_id": actor.user_id},
        )
        return updated

    async def _get_or_404(self, order_id: str) -> OrderDB:
        order = await self.orders.get(order_id)
        if order is None:
            raise NotFoundException(f"Order {order_id} not found")
        return order

    @staticmethod
    def _require_supplier(order: OrderDB, actor: CurrentUser):
        if not actor.is_supplier or order.supplier_id != actor.user_id:
            raise ForbiddenException("Only the supplier who owns this order can change it")
