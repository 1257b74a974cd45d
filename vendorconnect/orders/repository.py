from typing import Iterable, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from vendorconnect.orders.models import OrderDB, OrderStatus
from vendorconnect.shared.utils import to_bson

class OrderRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db["orders"]

    async def ensure_indexes(self):
        await self.collection.create_index("order_number", unique=True)
        await self.collection.create_index("vendor_id")
        await self.collection.create_index("supplier_id")
        await self.collection.create_index("checkout_id")

    async def insert(self, order: OrderDB) -> OrderDB:
        doc = to_bson(order.model_dump(by_alias=True, exclude={"id"}))
        result = await self.collection.insert_one(doc)
        order.id = str(result.inserted_id)
        return order

    async def delete_many(self, order_ids: Iterable[str]) -> int:
        oids = [ObjectId(oid) for oid in order_ids]
        if not oids:
            return 0
        result = await self.collection.delete_many({"_id": {"$in": oids}})
        return result.deleted_count

    async def get(self, order_id: str) -> Optional[OrderDB]:
        if not ObjectId.is_valid(order_id):
            return None
        doc = await self.collection.find_one({"_id": ObjectId(order_id)})
        return OrderDB.from_mongo(doc) if doc else None

    async def list_for_vendor(
        self, vendor_id: str, status: Optional[OrderStatus] = None, page: int = 1, limit: int = 20
    ) -> Tuple[List[OrderDB], int]:
        query = {"vendor_id": vendor_id}
        if status:
            query["status"] = OrderStatus(status).value
        return await self._find_page(query, page, limit)

    async def list_for_supplier(
        self, supplier_id: str, status: Optional[OrderStatus] = None, page: int = 1, limit: int = 20
    ) -> Tuple[List[OrderDB], int]:
        query = {"supplier_id": supplier_id}
        if status:
            query["status"] = OrderStatus(status).value
        return await self._find_page(query, page, limit)

    async def transition(self, order_id: str, expected: OrderStatus, changes: dict) -> Optional[OrderDB]:
        """Compare-and-set on ``status``: applies ``changes`` only if the order is still ``expected``."""
        result = await self.collection.update_one(
            {"_id": ObjectId(order_id), "status": OrderStatus(expected).value},
            {"$set": to_bson(changes)},
        )
        if result.matched_count == 0:
            return None
        return await self.get(order_id)

    async def update_fields(self, order_id: str, changes: dict) -> Optional[OrderDB]:
        result = await self.collection.update_one({"_id": ObjectId(order_id)}, {"$set": to_bson(changes)})
        if result.matched_count == 0:
            return None
        return await self.get(order_id)

    async def _find_page(self, query: dict, page: int, limit: int) -> Tuple[List[OrderDB], int]:
        skip = (page - 1) * limit
        cursor = self.collection.find(query, sort=[("created_at", -1)], skip=skip, limit=limit)
        docs = await cursor.to_list(length=limit)
        total = await self.collection.count_documents(query)
        return [OrderDB.from_mongo(doc) for doc in docs], total
