"""Tests for CartService against the store: lazy creation, persistence and versioned writes."""
import asyncio
from decimal import Decimal

import pytest

from vendorconnect.cart.repository import CartRepository
from vendorconnect.cart.service import CartService
from vendorconnect.shared.utils import ConflictException, NotFoundException, OutOfStockException


class NeverSavesCartRepository(CartRepository):
    """Every write loses the version race."""

    async def save(self, cart):
        return False


class TestView:
    async def test_creates_empty_cart_on_first_access(self, cart_service, db):
        cart = await cart_service.view("vendor-1")

        assert cart.id is not None
        assert cart.items == []
        assert cart.total_amount == Decimal(0)
        assert await db["carts"].count_documents({"vendor_id": "vendor-1"}) == 1

    async def test_one_cart_per_vendor(self, cart_service, db):
        first = await cart_service.view("vendor-1")
        second = await cart_service.view("vendor-1")
        assert first.id == second.id
        assert await db["carts"].count_documents({}) == 1


class TestAddItem:
    async def test_unknown_product(self, cart_service):
        with pytest.raises(NotFoundException):
            await cart_service.add_item("vendor-1", "5f0000000000000000000000", 1)

    async def test_malformed_product_id(self, cart_service):
        with pytest.raises(NotFoundException):
            await cart_service.add_item("vendor-1", "not-an-id", 1)

    async def test_persists_line_and_total(self, cart_service, carts, make_product):
        product = await make_product(price="50")
        await cart_service.add_item("vendor-1", product.id, 2)

        stored = await carts.find("vendor-1")
        assert len(stored.items) == 1
        assert stored.items[0].price_at_time == Decimal("50")
        assert stored.total_amount == Decimal("100")

    async def test_repeated_add_merges(self, cart_service, carts, make_product):
        product = await make_product()
        await cart_service.add_item("vendor-1", product.id, 1)
        await cart_service.add_item("vendor-1", product.id, 2)

        stored = await carts.find("vendor-1")
        assert len(stored.items) == 1
        assert stored.items[0].quantity == 3

    async def test_min_order_enforced(self, cart_service, make_product):
        product = await make_product(min_order=5)
        cart = await cart_service.add_item("vendor-1", product.id, 2)
        assert cart.items[0].quantity == 5

    async def test_snapshot_kept_after_catalog_price_change(self, cart_service, products, carts, make_product):
        product = await make_product(price="50")
        await cart_service.add_item("vendor-1", product.id, 1)
        await products.update(product.id, product.supplier_id, {"price": Decimal("75")})
        await cart_service.add_item("vendor-1", product.id, 1)

        stored = await carts.find("vendor-1")
        assert stored.items[0].price_at_time == Decimal("50")
        assert stored.total_amount == Decimal("100")

    async def test_out_of_stock_names_product(self, cart_service, make_product):
        product = await make_product(stock_quantity=2)
        with pytest.raises(OutOfStockException) as exc_info:
            await cart_service.add_item("vendor-1", product.id, 3)
        assert exc_info.value.details["product_id"] == product.id

    async def test_version_increments_on_every_mutation(self, cart_service, make_product):
        product = await make_product()
        initial = await cart_service.view("vendor-1")
        after_add = await cart_service.add_item("vendor-1", product.id, 1)
        after_clear = await cart_service.clear("vendor-1")

        assert after_add.version == initial.version + 1
        assert after_clear.version == initial.version + 2

    async def test_concurrent_adds_do_not_lose_updates(self, cart_service, carts, make_product):
        product = await make_product(stock_quantity=1000)
        await asyncio.gather(*(cart_service.add_item("vendor-1", product.id, 1) for _ in range(10)))

        stored = await carts.find("vendor-1")
        assert stored.items[0].quantity == 10
        assert stored.total_amount == Decimal("100")

    async def test_gives_up_after_repeated_conflicts(self, db, products, users, make_product):
        product = await make_product()
        service = CartService(NeverSavesCartRepository(db), products, users, retries=3)
        with pytest.raises(ConflictException):
            await service.add_item("vendor-1", product.id, 1)


class TestStaleWrites:
    async def test_stale_version_is_rejected(self, cart_service, carts, make_product):
        product = await make_product()
        stale = await cart_service.view("vendor-1")
        await cart_service.add_item("vendor-1", product.id, 1)

        stale.clear()
        assert await carts.save(stale) is False

        stored = await carts.find("vendor-1")
        assert len(stored.items) == 1


class TestRemoveUpdateClear:
    async def test_remove_item(self, cart_service, make_product):
        a = await make_product(price="10")
        b = await make_product(price="20", name="Garlic")
        await cart_service.add_item("vendor-1", a.id, 1)
        cart = await cart_service.add_item("vendor-1", b.id, 1)

        line_a = cart.find_line(a.id)
        cart = await cart_service.remove_item("vendor-1", line_a.id)

        assert [i.product_id for i in cart.items] == [b.id]
        assert cart.total_amount == Decimal("20")

    async def test_remove_missing_item(self, cart_service):
        with pytest.raises(NotFoundException):
            await cart_service.remove_item("vendor-1", "nope")

    async def test_update_quantity(self, cart_service, make_product):
        product = await make_product(price="5")
        cart = await cart_service.add_item("vendor-1", product.id, 1)
        cart = await cart_service.update_quantity("vendor-1", cart.items[0].id, 4)
        assert cart.items[0].quantity == 4
        assert cart.total_amount == Decimal("20")

    async def test_clear_keeps_cart_identity(self, cart_service, carts, make_product):
        product = await make_product()
        cart = await cart_service.add_item("vendor-1", product.id, 2)
        cleared = await cart_service.clear("vendor-1")

        assert cleared.id == cart.id
        stored = await carts.find("vendor-1")
        assert stored.items == []
        assert stored.total_amount == Decimal(0)


class TestDescribe:
    async def test_attaches_product_and_supplier(self, cart_service, make_product, make_user):
        from vendorconnect.auth.models import Role

        supplier = await make_user(role=Role.SUPPLIER, name="Ravi", business_name="Ravi Traders",
                                   business_address="1 Market Rd")
        product = await make_product(supplier_id=supplier.id, name="Tomatoes")
        cart = await cart_service.add_item("vendor-1", product.id, 1)

        view = await cart_service.describe(cart)

        assert view.items[0].product.name == "Tomatoes"
        assert view.items[0].supplier.business_name == "Ravi Traders"

    async def test_deleted_product_shows_as_missing(self, cart_service, products, make_product):
        product = await make_product()
        cart = await cart_service.add_item("vendor-1", product.id, 1)
        await products.delete(product.id, product.supplier_id)

        view = await cart_service.describe(cart)

        assert view.items[0].product is None
        assert view.items[0].subtotal == Decimal("10")
