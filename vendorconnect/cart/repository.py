from typing import Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from vendorconnect.cart.models import CartDB
from vendorconnect.shared.utils import to_bson

class CartRepository:
    """
    Vendor carts, one document per vendor.

    Writes are optimistic: ``save`` only lands if the stored ``version`` still
    equals the one the cart was read with, and bumps it on success.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db["carts"]

    async def ensure_indexes(self):
        await self.collection.create_index("vendor_id", unique=True)

    async def find(self, vendor_id: str) -> Optional[CartDB]:
        doc = await self.collection.find_one({"vendor_id": vendor_id})
        return CartDB.from_mongo(doc) if doc else None

    async def get_or_create(self, vendor_id: str) -> CartDB:
        cart = await self.find(vendor_id)
        if cart:
            return cart

        fresh = CartDB(vendor_id=vendor_id)
        try:
            await self.collection.update_one(
                {"vendor_id": vendor_id},
                {"$setOnInsert": to_bson(fresh.model_dump(by_alias=True, exclude={"id", "vendor_id"}))},
                upsert=True,
            )
        except DuplicateKeyError:
            # Another request created it first
            pass
        return await self.find(vendor_id)

    async def save(self, cart: CartDB) -> bool:
        result = await self.collection.update_one(
            {"_id": ObjectId(cart.id), "version": cart.version},
            {
                "$set": to_bson({
                    "items": [item.model_dump() for item in cart.items],
                    "total_amount": cart.total_amount,
                    "updated_at": cart.updated_at,
                }),
                "$inc": {"version": 1},
            },
        )
        if result.matched_count == 0:
            return False
        cart.version += 1
        return True
