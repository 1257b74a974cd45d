from pydantic import BaseModel, Field, field_validator
from enum import Enum
from typing import Optional, List, Tuple
from decimal import Decimal
from datetime import datetime
from vendorconnect.shared.security_config import sanitize_input
from vendorconnect.catalog.models import (
    ProductDB, UnitOfMeasure, Category, DEFAULT_IMAGE, MAX_PRICE_DIGITS, MAX_STOCK, PRICE_DECIMAL_PLACES
)
from vendorconnect.auth.schemas import SupplierSummary

class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    price: Decimal = Field(..., ge=0, max_digits=MAX_PRICE_DIGITS, decimal_places=PRICE_DECIMAL_PLACES)
    unit: UnitOfMeasure
    min_order: int = Field(1, ge=1)
    stock_quantity: int = Field(100, ge=0, le=MAX_STOCK)
    category: Category = Category.OTHER
    image: str = DEFAULT_IMAGE

    @field_validator('name', 'description', 'image')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=MAX_PRICE_DIGITS, decimal_places=PRICE_DECIMAL_PLACES)
    unit: Optional[UnitOfMeasure] = None
    min_order: Optional[int] = Field(None, ge=1)
    stock_quantity: Optional[int] = Field(None, ge=0, le=MAX_STOCK)
    category: Optional[Category] = None
    image: Optional[str] = None

    @field_validator('name', 'description', 'image')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class SortField(str, Enum):
    CREATED_AT = "created_at"
    PRICE = "price"
    NAME = "name"
    STOCK_QUANTITY = "stock_quantity"

class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"

class ProductQuery(BaseModel):
    """One listing request; the repository picks the query shape from it."""
    category: Optional[Category] = None
    supplier_id: Optional[str] = None
    search: Optional[str] = None
    # Matched against the supplier's location, not the product
    location: Optional[str] = None
    in_stock_only: bool = True
    sort_by: SortField = SortField.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)

    @field_validator('search', 'location')
    def blank_is_none(cls, v):
        if v is not None and not v.strip():
            return None
        return v

    @property
    def sort(self) -> List[Tuple[str, int]]:
        direction = -1 if self.sort_order == SortOrder.DESC else 1
        return [(self.sort_by.value, direction)]

class ProductResponse(BaseModel):
    id: str
    name: str
    description: str
    price: Decimal
    unit: UnitOfMeasure
    min_order: int
    stock_quantity: int
    in_stock: bool
    price_per_gram: Optional[Decimal] = None
    category: Category
    image: str
    supplier_id: str
    supplier: Optional[SupplierSummary] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_db(cls, product: ProductDB, supplier: Optional[SupplierSummary] = None) -> "ProductResponse":
        return cls(
            **product.model_dump(exclude={"id"}),
            id=product.id,
            in_stock=product.in_stock,
            price_per_gram=product.price_per_gram,
            supplier=supplier,
        )

class ProductListResponse(BaseModel):
    products: List[ProductResponse]
    total: int
    page: int
    limit: int
