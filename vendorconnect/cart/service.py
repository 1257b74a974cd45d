import logging
from typing import Awaitable, Callable

from vendorconnect.auth.repository import UserRepository
from vendorconnect.auth.schemas import SupplierSummary
from vendorconnect.cart.models import CartDB
from vendorconnect.cart.repository import CartRepository
from vendorconnect.cart.schemas import CartItemResponse, CartProductSummary, CartResponse
from vendorconnect.catalog.repository import ProductRepository
from vendorconnect.shared.utils import ConflictException, NotFoundException, settings

logger = logging.getLogger(__name__)

class CartService:
    def __init__(
        self,
        carts: CartRepository,
        products: ProductRepository,
        users: UserRepository,
        retries: int = settings.CART_UPDATE_RETRIES,
    ):
        self.carts = carts
        self.products = products
        self.users = users
        self.retries = retries

    async def view(self, vendor_id: str) -> CartDB:
        return await self.carts.get_or_create(vendor_id)

    async def add_item(self, vendor_id: str, product_id: str, quantity: int) -> CartDB:
        product = await self.products.get(product_id)
        if product is None:
            raise NotFoundException(f"Product {product_id} not found", details={"product_id": product_id})

        async def change(cart: CartDB):
            cart.add_item(product, quantity)

        cart = await self._mutate(vendor_id, change)
        logger.info(
            "Cart item added",
            extra={"vendor_id": vendor_id, "product_id": product_id, "supplier_id": product.supplier_id},
        )
        return cart

    async def update_quantity(self, vendor_id: str, item_id: str, quantity: int) -> CartDB:
        async def change(cart: CartDB):
            line = cart.find_item(item_id)
            if line is None:
                raise NotFoundException("Item not found in cart", details={"item_id": item_id})
            product = await self.products.get(line.product_id)
            if product is None:
                raise NotFoundException(
                    f"Product {line.product_id} not found", details={"product_id": line.product_id}
                )
            cart.update_quantity(item_id, product, quantity)

        return await self._mutate(vendor_id, change)

    async def remove_item(self, vendor_id: str, item_id: str) -> CartDB:
        async def change(cart: CartDB):
            cart.remove_item(item_id)

        cart = await self._mutate(vendor_id, change)
        logger.info("Cart item removed", extra={"vendor_id": vendor_id})
        return cart

    async def clear(self, vendor_id: str) -> CartDB:
        async def change(cart: CartDB):
            cart.clear()

        return await self._mutate(vendor_id, change)

    async def _mutate(self, vendor_id: str, change: Callable[[CartDB], Awaitable[None]]) -> CartDB:
        """Read, apply ``change`` and write back, re-reading whenever another writer got there first."""
        for attempt in range(1, self.retries + 1):
            cart = await self.carts.get_or_create(vendor_id)
            await change(cart)
            if await self.carts.save(cart):
                return cart
            logger.warning("Cart write conflict", extra={"vendor_id": vendor_id, "attempt": attempt})
        raise ConflictException("Cart is being modified concurrently, retry the request")

    async def describe(self, cart: CartDB) -> CartResponse:
        """Cart with product and supplier display data attached to each line."""
        products = await self.products.get_many(item.product_id for item in cart.items)
        suppliers = await self.users.get_many(p.supplier_id for p in products.values())

        items = []
        for item in cart.items:
            product = products.get(item.product_id)
            supplier = suppliers.get(product.supplier_id) if product else None
            items.append(CartItemResponse(
                id=item.id,
                product_id=item.product_id,
                quantity=item.quantity,
                price_at_time=item.price_at_time,
                subtotal=item.subtotal,
                product=CartProductSummary.from_db(product) if product else None,
                supplier=SupplierSummary.from_db(supplier) if supplier else None,
            ))

        return CartResponse(
            id=cart.id,
            vendor_id=cart.vendor_id,
            items=items,
            item_count=cart.item_count,
            total_items=cart.total_items,
            total_amount=cart.total_amount,
            version=cart.version,
            updated_at=cart.updated_at,
        )
