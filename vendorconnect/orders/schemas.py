from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from decimal import Decimal
from datetime import datetime
from vendorconnect.shared.security_config import sanitize_input
from vendorconnect.orders.models import OrderDB, OrderStatus, PaymentStatus

class OrderItemResponse(BaseModel):
    product_id: str
    quantity: int
    price_at_time: Decimal
    subtotal: Decimal
    product_name: Optional[str] = None
    product_image: Optional[str] = None

class OrderResponse(BaseModel):
    id: str
    order_number: str
    checkout_id: Optional[str] = None
    vendor_id: str
    supplier_id: str
    items: List[OrderItemResponse]
    total_amount: Decimal
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: Optional[str] = None
    delivery_address: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    actual_delivery: Optional[datetime] = None
    tracking_number: Optional[str] = None
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_db(cls, order: OrderDB) -> "OrderResponse":
        data = order.model_dump(exclude={"items"})
        items = [OrderItemResponse(**i.model_dump(), subtotal=i.subtotal) for i in order.items]
        return cls(**data, items=items)

class OrderListResponse(BaseModel):
    orders: List[OrderResponse]
    total: int
    page: int
    limit: int

class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    notes: Optional[str] = None
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[datetime] = None

    @field_validator('notes', 'tracking_number')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class OrderCancel(BaseModel):
    reason: Optional[str] = None

    @field_validator('reason')
    def sanitize_reason(cls, v):
        return sanitize_input(v)

class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus
    payment_method: Optional[str] = None

    @field_validator('payment_method')
    def sanitize_method(cls, v):
        return sanitize_input(v)

class CheckoutOrderSummary(BaseModel):
    order_id: str = Field(..., alias="orderId")
    order_number: str = Field(..., alias="orderNumber")
    supplier: str
    total_amount: Decimal = Field(..., alias="totalAmount")
    status: OrderStatus

    class Config:
        populate_by_name = True

    @classmethod
    def from_db(cls, order: OrderDB) -> "CheckoutOrderSummary":
        return cls(
            order_id=order.id,
            order_number=order.order_number,
            supplier=order.supplier_id,
            total_amount=order.total_amount,
            status=order.status,
        )

class CheckoutResponse(BaseModel):
    orders: List[CheckoutOrderSummary]
