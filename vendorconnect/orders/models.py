import time
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field

from vendorconnect.shared.utils import InvalidTransitionException, Money, utcnow

class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"

# Forward moves may skip steps; cancelled is reachable from every non-terminal state
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {
        OrderStatus.CONFIRMED,
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.CONFIRMED: {
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

TERMINAL_STATUSES = {status for status, targets in _VALID_TRANSITIONS.items() if not targets}

def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return OrderStatus(target) in _VALID_TRANSITIONS[OrderStatus(current)]

def assert_can_transition(current: OrderStatus, target: OrderStatus):
    if not can_transition(current, target):
        raise InvalidTransitionException(OrderStatus(current).value, OrderStatus(target).value)

def generate_order_number() -> str:
    return f"VND{int(time.time() * 1000)}{uuid.uuid4().hex[:6].upper()}"

class OrderItemDB(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    price_at_time: Money = Field(..., ge=0)
    # Copied at order time so history survives product deletion
    product_name: Optional[str] = None
    product_image: Optional[str] = None

    @property
    def subtotal(self) -> Decimal:
        return self.price_at_time * self.quantity

class OrderDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    order_number: str = Field(default_factory=generate_order_number)
    checkout_id: Optional[str] = None
    vendor_id: str
    supplier_id: str
    items: List[OrderItemDB]
    total_amount: Money
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: Optional[str] = None
    delivery_address: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    actual_delivery: Optional[datetime] = None
    tracking_number: Optional[str] = None
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True

    @classmethod
    def from_mongo(cls, doc: dict) -> "OrderDB":
        doc = dict(doc)
        doc["_id"] = str(doc["_id"])
        return cls(**doc)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
