"""
Cart to order conversion.

A cart may hold products from many suppliers, but an order belongs to exactly
one supplier, so checkout splits the cart into one order per supplier. The
whole conversion is all-or-nothing with respect to the cart:

1. orders are built in memory first (nothing is written if a product is gone),
2. orders are inserted one by one; if any insert fails the ones already
   written are deleted and ``CheckoutFailedException`` is raised,
3. the cart is cleared only if its version is unchanged since it was read;
   otherwise the inserted orders are deleted and ``ConflictException`` is raised,
4. if the clear itself errors, the cart is re-read: a clear that landed keeps
   the orders, an untouched cart rolls them back.

A failed rollback is logged with the ids of the orders left behind.
The cart is therefore emptied exactly when every order exists.
"""
import logging
import uuid
from decimal import Decimal
from typing import Dict, List

from pymongo.errors import PyMongoError

from vendorconnect.cart.models import CartDB, CartItemDB
from vendorconnect.cart.repository import CartRepository
from vendorconnect.catalog.models import ProductDB
from vendorconnect.catalog.repository import ProductRepository
from vendorconnect.orders.models import OrderDB, OrderItemDB, OrderStatus
from vendorconnect.orders.repository import OrderRepository
from vendorconnect.shared.utils import (
    CheckoutFailedException, ConflictException, EmptyCartException, NotFoundException
)

logger = logging.getLogger(__name__)

def partition_by_supplier(items: List[CartItemDB], products: Dict[str, ProductDB]) -> Dict[str, List[CartItemDB]]:
    """Group cart lines by the owning supplier of their product, keeping first-seen order."""
    groups: Dict[str, List[CartItemDB]] = {}
    for item in items:
        product = products.get(item.product_id)
        if product is None:
            raise NotFoundException(
                f"Product {item.product_id} is no longer available, remove it from the cart",
                details={"product_id": item.product_id, "item_id": item.id},
            )
        groups.setdefault(product.supplier_id, []).append(item)
    return groups

def build_order(
    vendor_id: str,
    supplier_id: str,
    items: List[CartItemDB],
    products: Dict[str, ProductDB],
    checkout_id: str,
) -> OrderDB:
    order_items = []
    for item in items:
        product = products[item.product_id]
        order_items.append(OrderItemDB(
            product_id=item.product_id,
            quantity=item.quantity,
            price_at_time=item.price_at_time,
            product_name=product.name,
            product_image=product.image,
        ))
    total = sum((i.subtotal for i in order_items), Decimal(0))
    return OrderDB(
        checkout_id=checkout_id,
        vendor_id=vendor_id,
        supplier_id=supplier_id,
        items=order_items,
        total_amount=total,
        status=OrderStatus.PENDING,
    )

class CheckoutEngine:
    def __init__(self, carts: CartRepository, products: ProductRepository, orders: OrderRepository):
        self.carts = carts
        self.products = products
        self.orders = orders

    async def checkout(self, vendor_id: str) -> List[OrderDB]:
        cart = await self.carts.get_or_create(vendor_id)
        if not cart.items:
            raise EmptyCartException()

        checkout_id = uuid.uuid4().hex
        products = await self.products.get_many(item.product_id for item in cart.items)
        groups = partition_by_supplier(cart.items, products)
        orders = [
            build_order(vendor_id, supplier_id, items, products, checkout_id)
            for supplier_id, items in groups.items()
        ]

        inserted = await self._insert_all(orders, vendor_id, checkout_id)

        try:
            cleared = await self._clear(cart)
        except PyMongoError as exc:
            cleared = await self._recover_clear(cart, inserted, checkout_id, exc)

        if not cleared:
            await self._rollback(inserted, vendor_id, checkout_id)
            logger.warning(
                "Checkout conflicted with a concurrent cart change",
                extra={"vendor_id": vendor_id, "checkout_id": checkout_id},
            )
            raise ConflictException("Cart changed during checkout, review it and retry")

        logger.info(
            "Checkout completed",
            extra={"vendor_id": vendor_id, "checkout_id": checkout_id, "order_count": len(orders)},
        )
        return orders

    async def _insert_all(self, orders: List[OrderDB], vendor_id: str, checkout_id: str) -> List[str]:
        inserted: List[str] = []
        try:
            for order in orders:
                await self.orders.insert(order)
                inserted.append(order.id)
        except PyMongoError as exc:
            logger.error(
                "Checkout failed, rolling back created orders",
                extra={"vendor_id": vendor_id, "checkout_id": checkout_id, "order_count": len(inserted)},
                exc_info=True,
            )
            await self._rollback(inserted, vendor_id, checkout_id)
            raise CheckoutFailedException(exc) from exc
        return inserted

    async def _clear(self, cart: CartDB) -> bool:
        emptied = cart.model_copy(deep=True)
        emptied.clear()
        return await self.carts.save(emptied)

    async def _recover_clear(self, cart: CartDB, inserted: List[str], checkout_id: str, exc: PyMongoError) -> bool:
        """
        The clear write raised, but the server may still have applied it.
        Re-read the cart to find out which way it went.

        Returns True when the clear landed and False when another writer moved
        the cart on. Raises ``CheckoutFailedException`` when the cart is
        untouched (the orders are rolled back first) or cannot be read (the
        orders are kept and logged for reconciliation).
        """
        vendor_id = cart.vendor_id
        try:
            stored = await self.carts.find(vendor_id)
        except PyMongoError:
            logger.error(
                "Checkout outcome unknown, orders kept for reconciliation",
                extra={"vendor_id": vendor_id, "checkout_id": checkout_id, "order_ids": inserted},
                exc_info=True,
            )
            raise CheckoutFailedException(exc) from exc

        if stored is not None and stored.version == cart.version + 1 and not stored.items:
            logger.warning(
                "Cart clear reported an error but was applied",
                extra={"vendor_id": vendor_id, "checkout_id": checkout_id},
            )
            return True

        if stored is not None and stored.version == cart.version:
            logger.error(
                "Checkout failed clearing the cart, rolling back created orders",
                extra={"vendor_id": vendor_id, "checkout_id": checkout_id},
                exc_info=(type(exc), exc, exc.__traceback__),
            )
            await self._rollback(inserted, vendor_id, checkout_id)
            raise CheckoutFailedException(exc) from exc

        return False

    async def _rollback(self, order_ids: List[str], vendor_id: str, checkout_id: str):
        try:
            await self.orders.delete_many(order_ids)
        except PyMongoError:
            logger.error(
                "Checkout rollback failed, orders left behind",
                extra={"vendor_id": vendor_id, "checkout_id": checkout_id, "order_ids": order_ids},
                exc_info=True,
            )
