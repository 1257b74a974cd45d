"""
Pytest configuration and fixtures.

MongoDB is replaced by mongomock-motor; every test gets its own database.
"""
import uuid
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from vendorconnect.auth.models import Role, UserDB
from vendorconnect.auth.repository import UserRepository
from vendorconnect.cart.repository import CartRepository
from vendorconnect.cart.service import CartService
from vendorconnect.catalog.models import ProductDB, UnitOfMeasure
from vendorconnect.catalog.repository import ProductRepository
from vendorconnect.main import app, ensure_indexes
from vendorconnect.orders.checkout import CheckoutEngine
from vendorconnect.orders.repository import OrderRepository
from vendorconnect.orders.service import OrderService
from vendorconnect.shared.security_config import limiter
from vendorconnect.shared.utils import create_access_token

limiter.enabled = False


@pytest.fixture
async def db():
    client = AsyncMongoMockClient()
    database = client[f"vendorconnect_test_{uuid.uuid4().hex}"]
    await ensure_indexes(database)
    return database


@pytest.fixture
def products(db):
    return ProductRepository(db)


@pytest.fixture
def carts(db):
    return CartRepository(db)


@pytest.fixture
def orders(db):
    return OrderRepository(db)


@pytest.fixture
def users(db):
    return UserRepository(db)


@pytest.fixture
def cart_service(carts, products, users):
    return CartService(carts, products, users)


@pytest.fixture
def checkout_engine(carts, products, orders):
    return CheckoutEngine(carts, products, orders)


@pytest.fixture
def order_service(orders):
    return OrderService(orders)


@pytest.fixture
def make_product(products):
    """Insert a product and return it."""

    async def _make(
        supplier_id="supplier-1",
        price="10",
        name="Onions",
        min_order=1,
        stock_quantity=100,
        unit=UnitOfMeasure.KG,
        **extra,
    ):
        product = ProductDB(
            supplier_id=supplier_id,
            name=name,
            price=Decimal(price),
            unit=unit,
            min_order=min_order,
            stock_quantity=stock_quantity,
            **extra,
        )
        return await products.insert(product)

    return _make


@pytest.fixture
def make_user(users):
    """Insert a user directly (no password hashing round trip) and return it."""

    async def _make(role=Role.VENDOR, name="Test User", **extra):
        user = UserDB(
            name=name,
            email=f"{uuid.uuid4().hex[:8]}@test.com",
            password_hash="not-a-real-hash",
            role=role,
            location=extra.pop("location", "Mumbai"),
            **extra,
        )
        return await users.insert(user)

    return _make


@pytest.fixture
def headers_for():
    """Bearer headers for an identity, as the access layer would issue them."""

    def _headers(user_id: str, role: Role) -> dict:
        token = create_access_token({"sub": user_id, "role": role.value})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
async def client(db):
    app.mongodb = db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
