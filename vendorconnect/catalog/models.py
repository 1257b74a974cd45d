from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from vendorconnect.shared.utils import Money, utcnow

class UnitOfMeasure(str, Enum):
    KG = "kg"
    GRAM = "gram"
    PIECE = "piece"
    LITER = "liter"
    DOZEN = "dozen"

class Category(str, Enum):
    VEGETABLES = "vegetables"
    SPICES = "spices"
    SEAFOOD = "seafood"
    GRAINS = "grains"
    DAIRY = "dairy"
    MEAT = "meat"
    OTHER = "other"

DEFAULT_IMAGE = "🍽️"

# Keeps every price, line subtotal and cart total inside Decimal128 precision
MAX_PRICE_DIGITS = 12
PRICE_DECIMAL_PLACES = 2
MAX_STOCK = 1_000_000_000

class ProductDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    supplier_id: str
    name: str = Field(..., min_length=1)
    description: str = ""
    price: Money = Field(..., ge=0)
    unit: UnitOfMeasure
    min_order: int = Field(1, ge=1)
    stock_quantity: int = Field(0, ge=0)
    category: Category = Category.OTHER
    image: str = DEFAULT_IMAGE
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True

    @property
    def in_stock(self) -> bool:
        return in_stock(self.stock_quantity)

    @property
    def price_per_gram(self) -> Optional[Decimal]:
        return price_per_gram(self.price, self.unit)

    @classmethod
    def from_mongo(cls, doc: dict) -> "ProductDB":
        doc = dict(doc)
        doc["_id"] = str(doc["_id"])
        return cls(**doc)

def in_stock(stock_quantity: int) -> bool:
    return stock_quantity > 0

def price_per_gram(price: Decimal, unit: UnitOfMeasure) -> Optional[Decimal]:
    if unit == UnitOfMeasure.KG:
        return price / 1000
    if unit == UnitOfMeasure.GRAM:
        return price
    return None
