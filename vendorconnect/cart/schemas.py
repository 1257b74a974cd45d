from pydantic import BaseModel, Field
from typing import Optional, List
from decimal import Decimal
from datetime import datetime
from vendorconnect.auth.schemas import SupplierSummary
from vendorconnect.catalog.models import MAX_STOCK, ProductDB, UnitOfMeasure

class CartItemAdd(BaseModel):
    product_id: str = Field(..., alias="productId", min_length=1)
    quantity: int = Field(1, ge=1, le=MAX_STOCK)

    class Config:
        populate_by_name = True

class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=1, le=MAX_STOCK)

class CartProductSummary(BaseModel):
    id: str
    name: str
    unit: UnitOfMeasure
    price: Decimal
    image: str
    min_order: int
    in_stock: bool

    @classmethod
    def from_db(cls, product: ProductDB) -> "CartProductSummary":
        return cls(
            id=product.id,
            name=product.name,
            unit=product.unit,
            price=product.price,
            image=product.image,
            min_order=product.min_order,
            in_stock=product.in_stock,
        )

class CartItemResponse(BaseModel):
    id: str
    product_id: str
    quantity: int
    price_at_time: Decimal
    subtotal: Decimal
    # None once the product has been removed from the catalog
    product: Optional[CartProductSummary] = None
    supplier: Optional[SupplierSummary] = None

class CartResponse(BaseModel):
    id: str
    vendor_id: str
    items: List[CartItemResponse]
    item_count: int
    total_items: int
    total_amount: Decimal
    version: int
    updated_at: datetime
