from fastapi import APIRouter, Depends, Request

from vendorconnect.auth.models import CurrentUser
from vendorconnect.cart.schemas import CartItemAdd, CartItemUpdate, CartResponse
from vendorconnect.cart.service import CartService
from vendorconnect.deps import get_cart_service, get_checkout_engine, require_vendor
from vendorconnect.orders.checkout import CheckoutEngine
from vendorconnect.orders.schemas import CheckoutOrderSummary, CheckoutResponse
from vendorconnect.shared.security_config import limiter
from vendorconnect.shared.utils import SuccessResponse

router = APIRouter(prefix="/cart", tags=["cart"])

@router.get("", response_model=SuccessResponse[CartResponse])
async def get_cart(
    user: CurrentUser = Depends(require_vendor),
    service: CartService = Depends(get_cart_service),
):
    cart = await service.view(user.user_id)
    return SuccessResponse(data=await service.describe(cart))

@router.post("/add", response_model=SuccessResponse[CartResponse])
@limiter.limit("60/minute")
async def add_to_cart(
    item: CartItemAdd,
    request: Request,
    user: CurrentUser = Depends(require_vendor),
    service: CartService = Depends(get_cart_service),
):
    cart = await service.add_item(user.user_id, item.product_id, item.quantity)
    return SuccessResponse(data=await service.describe(cart), message="Item added to cart")

@router.put("/update/{item_id}", response_model=SuccessResponse[CartResponse])
async def update_cart_item(
    item_id: str,
    update: CartItemUpdate,
    user: CurrentUser = Depends(require_vendor),
    service: CartService = Depends(get_cart_service),
):
    cart = await service.update_quantity(user.user_id, item_id, update.quantity)
    return SuccessResponse(data=await service.describe(cart), message="Cart updated")

@router.delete("/remove/{item_id}", response_model=SuccessResponse[CartResponse])
async def remove_cart_item(
    item_id: str,
    user: CurrentUser = Depends(require_vendor),
    service: CartService = Depends(get_cart_service),
):
    cart = await service.remove_item(user.user_id, item_id)
    return SuccessResponse(data=await service.describe(cart), message="Item removed from cart")

@router.delete("/clear", response_model=SuccessResponse[CartResponse])
async def clear_cart(
    user: CurrentUser = Depends(require_vendor),
    service: CartService = Depends(get_cart_service),
):
    cart = await service.clear(user.user_id)
    return SuccessResponse(data=await service.describe(cart), message="Cart cleared")

@router.post("/checkout", response_model=SuccessResponse[CheckoutResponse])
@limiter.limit("10/minute")
async def checkout(
    request: Request,
    user: CurrentUser = Depends(require_vendor),
    engine: CheckoutEngine = Depends(get_checkout_engine),
):
    orders = await engine.checkout(user.user_id)
    summaries = [CheckoutOrderSummary.from_db(order) for order in orders]
    return SuccessResponse(
        data=CheckoutResponse(orders=summaries),
        message=f"{len(orders)} order(s) placed successfully",
    )
