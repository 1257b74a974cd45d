"""
Cart aggregate.

A cart belongs to exactly one vendor. Lines hold the price the vendor saw when
the product was first added; later catalog price changes do not touch them.
``total_amount`` is always recomputed from the lines, never taken from input.
"""
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional
from bson import ObjectId
from pydantic import BaseModel, Field

from vendorconnect.catalog.models import ProductDB
from vendorconnect.shared.utils import Money, NotFoundException, OutOfStockException, utcnow

class CartItemDB(BaseModel):
    id: str = Field(default_factory=lambda: str(ObjectId()))
    product_id: str
    quantity: int = Field(..., ge=1)
    price_at_time: Money = Field(..., ge=0)
    added_at: datetime = Field(default_factory=utcnow)

    @property
    def subtotal(self) -> Decimal:
        return self.price_at_time * self.quantity

class CartDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    vendor_id: str
    items: List[CartItemDB] = []
    total_amount: Money = Decimal(0)
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Config:
        populate_by_name = True

    @classmethod
    def from_mongo(cls, doc: dict) -> "CartDB":
        doc = dict(doc)
        doc["_id"] = str(doc["_id"])
        return cls(**doc)

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    def find_item(self, item_id: str) -> Optional[CartItemDB]:
        return next((i for i in self.items if i.id == item_id), None)

    def find_line(self, product_id: str) -> Optional[CartItemDB]:
        return next((i for i in self.items if i.product_id == product_id), None)

    def add_item(self, product: ProductDB, quantity: int) -> CartItemDB:
        """Add ``quantity`` of ``product``, merging into an existing line for the same product."""
        added = effective_quantity(quantity, product.min_order)
        line = self.find_line(product.id)
        check_availability(product, added + (line.quantity if line else 0))

        if line:
            line.quantity += added
        else:
            line = CartItemDB(product_id=product.id, quantity=added, price_at_time=product.price)
            self.items.append(line)

        self.recalculate_total()
        return line

    def update_quantity(self, item_id: str, product: ProductDB, quantity: int) -> CartItemDB:
        line = self._require_item(item_id)
        new_quantity = effective_quantity(quantity, product.min_order)
        check_availability(product, new_quantity)
        line.quantity = new_quantity
        self.recalculate_total()
        return line

    def remove_item(self, item_id: str) -> CartItemDB:
        line = self._require_item(item_id)
        self.items = [i for i in self.items if i.id != item_id]
        self.recalculate_total()
        return line

    def clear(self):
        self.items = []
        self.recalculate_total()

    def recalculate_total(self) -> Decimal:
        self.total_amount = cart_total(self.items)
        self.updated_at = utcnow()
        return self.total_amount

    def _require_item(self, item_id: str) -> CartItemDB:
        line = self.find_item(item_id)
        if line is None:
            raise NotFoundException("Item not found in cart", details={"item_id": item_id})
        return line

def effective_quantity(quantity: int, min_order: int) -> int:
    # Supplier minimum order is applied silently
    return max(quantity, min_order)

def check_availability(product: ProductDB, quantity: int):
    if not product.in_stock or quantity > product.stock_quantity:
        raise OutOfStockException(
            product_id=product.id,
            requested=quantity,
            available=product.stock_quantity,
            name=product.name,
        )

def cart_total(items: Iterable[CartItemDB]) -> Decimal:
    return sum((item.subtotal for item in items), Decimal(0))
