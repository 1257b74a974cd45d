"""FastAPI dependencies: database handle, resolved identity, repositories and services."""
from fastapi import Depends, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from vendorconnect.auth.models import CurrentUser, Role
from vendorconnect.auth.repository import UserRepository
from vendorconnect.cart.repository import CartRepository
from vendorconnect.cart.service import CartService
from vendorconnect.catalog.repository import ProductRepository
from vendorconnect.orders.checkout import CheckoutEngine
from vendorconnect.orders.repository import OrderRepository
from vendorconnect.orders.service import OrderService
from vendorconnect.shared.utils import ForbiddenException, UnauthorizedException, require_auth

def get_db(request: Request) -> AsyncIOMotorDatabase:
    return request.app.mongodb

async def get_current_user(request: Request, payload: dict = Depends(require_auth)) -> CurrentUser:
    try:
        user = CurrentUser(user_id=payload["sub"], role=payload["role"])
    except (KeyError, ValueError):
        raise UnauthorizedException("Invalid token payload")
    request.state.user_id = user.user_id
    return user

def require_role(*roles: Role):
    async def checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in roles:
            allowed = " or ".join(r.value for r in roles)
            raise ForbiddenException(f"Access denied. Required role: {allowed}")
        return user
    return checker

require_vendor = require_role(Role.VENDOR)
require_supplier = require_role(Role.SUPPLIER)

def get_user_repository(db: AsyncIOMotorDatabase = Depends(get_db)) -> UserRepository:
    return UserRepository(db)

def get_product_repository(db: AsyncIOMotorDatabase = Depends(get_db)) -> ProductRepository:
    return ProductRepository(db)

def get_cart_repository(db: AsyncIOMotorDatabase = Depends(get_db)) -> CartRepository:
    return CartRepository(db)

def get_order_repository(db: AsyncIOMotorDatabase = Depends(get_db)) -> OrderRepository:
    return OrderRepository(db)

def get_cart_service(
    carts: CartRepository = Depends(get_cart_repository),
    products: ProductRepository = Depends(get_product_repository),
    users: UserRepository = Depends(get_user_repository),
) -> CartService:
    return CartService(carts, products, users)

def get_checkout_engine(
    carts: CartRepository = Depends(get_cart_repository),
    products: ProductRepository = Depends(get_product_repository),
    orders: OrderRepository = Depends(get_order_repository),
) -> CheckoutEngine:
    return CheckoutEngine(carts, products, orders)

def get_order_service(orders: OrderRepository = Depends(get_order_repository)) -> OrderService:
    return OrderService(orders)
