"""Tests for the order state machine and who may drive it."""
from decimal import Decimal

import pytest

from vendorconnect.auth.models import CurrentUser, Role
from vendorconnect.orders.models import (
    OrderDB, OrderItemDB, OrderStatus, PaymentStatus, TERMINAL_STATUSES, can_transition,
    generate_order_number,
)
from vendorconnect.orders.repository import OrderRepository
from vendorconnect.orders.service import OrderService
from vendorconnect.shared.utils import (
    ConflictException, ForbiddenException, InvalidTransitionException, NotFoundException
)

VENDOR = CurrentUser(user_id="vendor-1", role=Role.VENDOR)
OTHER_VENDOR = CurrentUser(user_id="vendor-2", role=Role.VENDOR)
SUPPLIER = CurrentUser(user_id="supplier-1", role=Role.SUPPLIER)
OTHER_SUPPLIER = CurrentUser(user_id="supplier-2", role=Role.SUPPLIER)


class StaleReadOrderRepository(OrderRepository):
    """Moves the stored order on to ``sneak_to`` right after it is read, like a second writer would."""

    def __init__(self, db, sneak_to: OrderStatus):
        super().__init__(db)
        self.sneak_to = sneak_to

    async def get(self, order_id):
        order = await super().get(order_id)
        if order is not None and order.status != self.sneak_to:
            await self.update_fields(order_id, {"status": self.sneak_to})
        return order


@pytest.fixture
def make_order(orders):
    async def _make(status=OrderStatus.PENDING, vendor_id="vendor-1", supplier_id="supplier-1"):
        order = OrderDB(
            vendor_id=vendor_id,
            supplier_id=supplier_id,
            items=[OrderItemDB(product_id="p1", quantity=2, price_at_time=Decimal("50"), product_name="Onions")],
            total_amount=Decimal("100"),
            status=status,
        )
        return await orders.insert(order)

    return _make


class TestTransitionTable:
    @pytest.mark.parametrize("target", [
        OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED,
        OrderStatus.DELIVERED, OrderStatus.CANCELLED,
    ])
    def test_pending_can_move_forward_or_cancel(self, target):
        assert can_transition(OrderStatus.PENDING, target)

    @pytest.mark.parametrize("current,target", [
        (OrderStatus.CONFIRMED, OrderStatus.PENDING),
        (OrderStatus.SHIPPED, OrderStatus.PROCESSING),
        (OrderStatus.DELIVERED, OrderStatus.PENDING),
        (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
        (OrderStatus.CANCELLED, OrderStatus.PENDING),
        (OrderStatus.PENDING, OrderStatus.PENDING),
    ])
    def test_backward_and_terminal_moves_are_rejected(self, current, target):
        assert not can_transition(current, target)

    def test_terminal_statuses(self):
        assert TERMINAL_STATUSES == {OrderStatus.DELIVERED, OrderStatus.CANCELLED}


def test_order_numbers_are_unique():
    numbers = {generate_order_number() for _ in range(200)}
    assert len(numbers) == 200
    assert all(n.startswith("VND") for n in numbers)


class TestUpdateStatus:
    async def test_supplier_confirms(self, order_service, make_order):
        order = await make_order()
        updated = await order_service.update_status(order.id, OrderStatus.CONFIRMED, SUPPLIER)
        assert updated.status == OrderStatus.CONFIRMED
        assert updated.updated_at is not None

    async def test_forward_skip_to_delivered(self, order_service, make_order):
        order = await make_order()
        updated = await order_service.update_status(order.id, OrderStatus.DELIVERED, SUPPLIER)
        assert updated.status == OrderStatus.DELIVERED
        assert updated.actual_delivery is not None

    async def test_delivered_cannot_go_back(self, order_service, orders, make_order):
        order = await make_order(status=OrderStatus.DELIVERED)
        with pytest.raises(InvalidTransitionException):
            await order_service.update_status(order.id, OrderStatus.PENDING, SUPPLIER)
        assert (await orders.get(order.id)).status == OrderStatus.DELIVERED

    async def test_records_shipping_details(self, order_service, make_order):
        order = await make_order()
        updated = await order_service.update_status(
            order.id, OrderStatus.SHIPPED, SUPPLIER, notes="Left at gate", tracking_number="TRK-1"
        )
        assert updated.tracking_number == "TRK-1"
        assert updated.notes == "Left at gate"
        assert updated.actual_delivery is None

    async def test_vendor_cannot_update_status(self, order_service, make_order):
        order = await make_order()
        with pytest.raises(ForbiddenException):
            await order_service.update_status(order.id, OrderStatus.CONFIRMED, VENDOR)

    async def test_other_supplier_cannot_update_status(self, order_service, make_order):
        order = await make_order()
        with pytest.raises(ForbiddenException):
            await order_service.update_status(order.id, OrderStatus.CONFIRMED, OTHER_SUPPLIER)

    async def test_unknown_order(self, order_service):
        with pytest.raises(NotFoundException):
            await order_service.update_status("5f0000000000000000000000", OrderStatus.CONFIRMED, SUPPLIER)

    async def test_contents_never_change(self, order_service, orders, make_order):
        order = await make_order()
        await order_service.update_status(order.id, OrderStatus.PROCESSING, SUPPLIER)

        stored = await orders.get(order.id)
        assert stored.total_amount == Decimal("100")
        assert [(i.product_id, i.quantity) for i in stored.items] == [("p1", 2)]

    async def test_concurrent_change_is_a_conflict(self, db, make_order):
        order = await make_order()
        service = OrderService(StaleReadOrderRepository(db, sneak_to=OrderStatus.CANCELLED))

        with pytest.raises(ConflictException):
            await service.update_status(order.id, OrderStatus.CONFIRMED, SUPPLIER)

        assert (await OrderRepository(db).get(order.id)).status == OrderStatus.CANCELLED


class TestCancel:
    async def test_vendor_cancels_pending(self, order_service, make_order):
        order = await make_order()
        cancelled = await order_service.cancel(order.id, VENDOR, reason="Ordered twice")
        assert cancelled.status == OrderStatus.CANCELLED
        assert cancelled.cancel_reason == "Ordered twice"

    async def test_vendor_cannot_cancel_once_confirmed(self, order_service, make_order):
        order = await make_order(status=OrderStatus.CONFIRMED)
        with pytest.raises(InvalidTransitionException):
            await order_service.cancel(order.id, VENDOR)

    async def test_other_vendor_cannot_cancel(self, order_service, make_order):
        order = await make_order()
        with pytest.raises(ForbiddenException):
            await order_service.cancel(order.id, OTHER_VENDOR)

    async def test_supplier_cancels_shipped(self, order_service, make_order):
        order = await make_order(status=OrderStatus.SHIPPED)
        cancelled = await order_service.cancel(order.id, SUPPLIER)
        assert cancelled.status == OrderStatus.CANCELLED

    async def test_cannot_cancel_delivered(self, order_service, make_order):
        order = await make_order(status=OrderStatus.DELIVERED)
        with pytest.raises(InvalidTransitionException):
            await order_service.cancel(order.id, SUPPLIER)

    async def test_cancelled_is_terminal(self, order_service, make_order):
        order = await make_order()
        cancelled = await order_service.cancel(order.id, VENDOR)
        assert cancelled.is_terminal
        with pytest.raises(InvalidTransitionException):
            await order_service.update_status(order.id, OrderStatus.CONFIRMED, SUPPLIER)


class TestReadAccess:
    async def test_parties_can_read(self, order_service, make_order):
        order = await make_order()
        assert (await order_service.get(order.id, VENDOR)).id == order.id
        assert (await order_service.get(order.id, SUPPLIER)).id == order.id

    async def test_outsiders_cannot_read(self, order_service, make_order):
        order = await make_order()
        with pytest.raises(ForbiddenException):
            await order_service.get(order.id, OTHER_SUPPLIER)

    async def test_listing_filters_by_party_and_status(self, order_service, make_order):
        await make_order()
        await make_order(status=OrderStatus.SHIPPED)
        await make_order(supplier_id="supplier-2")
        await make_order(vendor_id="vendor-2")

        vendor_orders, vendor_total = await order_service.list_for_vendor("vendor-1")
        shipped, shipped_total = await order_service.list_for_supplier("supplier-1", OrderStatus.SHIPPED)

        assert vendor_total == 3
        assert all(o.vendor_id == "vendor-1" for o in vendor_orders)
        assert shipped_total == 1
        assert shipped[0].status == OrderStatus.SHIPPED

    async def test_listing_pages(self, order_service, make_order):
        for _ in range(5):
            await make_order()
        page, total = await order_service.list_for_vendor("vendor-1", page=2, limit=2)
        assert total == 5
        assert len(page) == 2


class TestPayment:
    async def test_supplier_marks_paid(self, order_service, make_order):
        order = await make_order()
        updated = await order_service.update_payment_status(order.id, PaymentStatus.PAID, SUPPLIER, "upi")
        assert updated.payment_status == PaymentStatus.PAID
        assert updated.payment_method == "upi"
        assert updated.status == OrderStatus.PENDING

    async def test_vendor_cannot_change_payment(self, order_service, make_order):
        order = await make_order()
        with pytest.raises(ForbiddenException):
            await order_service.update_payment_status(order.id, PaymentStatus.PAID, VENDOR)
