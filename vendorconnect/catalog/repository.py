"""
Product store backed by the ``products`` collection.

Each listing shape has its own method; ``query`` only decides which one a
``ProductQuery`` maps to.
"""
import re
from typing import Dict, Iterable, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from vendorconnect.catalog.models import ProductDB, Category
from vendorconnect.catalog.schemas import ProductQuery
from vendorconnect.shared.utils import to_bson, utcnow

IN_STOCK = {"stock_quantity": {"$gt": 0}}
DEFAULT_SORT = [("created_at", -1)]

Sort = List[Tuple[str, int]]

class ProductRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db["products"]

    async def ensure_indexes(self):
        await self.collection.create_index("supplier_id")
        await self.collection.create_index("category")

    async def get(self, product_id: str) -> Optional[ProductDB]:
        if not ObjectId.is_valid(product_id):
            return None
        doc = await self.collection.find_one({"_id": ObjectId(product_id)})
        return ProductDB.from_mongo(doc) if doc else None

    async def get_many(self, product_ids: Iterable[str]) -> Dict[str, ProductDB]:
        oids = [ObjectId(pid) for pid in set(product_ids) if ObjectId.is_valid(pid)]
        if not oids:
            return {}
        docs = await self.collection.find({"_id": {"$in": oids}}).to_list(length=None)
        products = [ProductDB.from_mongo(doc) for doc in docs]
        return {p.id: p for p in products}

    async def insert(self, product: ProductDB) -> ProductDB:
        doc = to_bson(product.model_dump(by_alias=True, exclude={"id"}))
        result = await self.collection.insert_one(doc)
        product.id = str(result.inserted_id)
        return product

    async def update(self, product_id: str, supplier_id: str, changes: dict) -> Optional[ProductDB]:
        """Apply ``changes`` to a product owned by ``supplier_id``. Ownership itself never changes."""
        if not ObjectId.is_valid(product_id):
            return None
        changes = {k: v for k, v in changes.items() if k not in ("_id", "id", "supplier_id")}
        changes["updated_at"] = utcnow()
        result = await self.collection.update_one(
            {"_id": ObjectId(product_id), "supplier_id": supplier_id},
            {"$set": to_bson(changes)},
        )
        if result.matched_count == 0:
            return None
        return await self.get(product_id)

    async def delete(self, product_id: str, supplier_id: str) -> bool:
        if not ObjectId.is_valid(product_id):
            return False
        result = await self.collection.delete_one({"_id": ObjectId(product_id), "supplier_id": supplier_id})
        return result.deleted_count == 1

    # --- Listing shapes ---

    async def list_in_stock(self, page: int = 1, limit: int = 20, sort: Sort = DEFAULT_SORT) -> Tuple[List[ProductDB], int]:
        return await self._find_page(dict(IN_STOCK), page, limit, sort)

    async def find_by_supplier(
        self, supplier_id: str, page: int = 1, limit: int = 20, in_stock_only: bool = False, sort: Sort = DEFAULT_SORT
    ) -> Tuple[List[ProductDB], int]:
        query = {"supplier_id": supplier_id}
        if in_stock_only:
            query.update(IN_STOCK)
        return await self._find_page(query, page, limit, sort)

    async def find_by_suppliers(
        self,
        supplier_ids: Iterable[str],
        page: int = 1,
        limit: int = 20,
        in_stock_only: bool = True,
        sort: Sort = DEFAULT_SORT,
    ) -> Tuple[List[ProductDB], int]:
        """Products of any supplier in ``supplier_ids``, e.g. every supplier in one location."""
        query = {"supplier_id": {"$in": list(supplier_ids)}}
        if in_stock_only:
            query.update(IN_STOCK)
        return await self._find_page(query, page, limit, sort)

    async def find_by_category(
        self, category: Category, page: int = 1, limit: int = 20, in_stock_only: bool = True, sort: Sort = DEFAULT_SORT
    ) -> Tuple[List[ProductDB], int]:
        query = {"category": Category(category).value}
        if in_stock_only:
            query.update(IN_STOCK)
        return await self._find_page(query, page, limit, sort)

    async def search_text(
        self, text: str, page: int = 1, limit: int = 20, in_stock_only: bool = True, sort: Sort = DEFAULT_SORT
    ) -> Tuple[List[ProductDB], int]:
        pattern = re.escape(text.strip())
        query = {
            "$or": [
                {"name": {"$regex": pattern, "$options": "i"}},
                {"description": {"$regex": pattern, "$options": "i"}},
            ]
        }
        if in_stock_only:
            query.update(IN_STOCK)
        return await self._find_page(query, page, limit, sort)

    async def query(
        self, q: ProductQuery, located_supplier_ids: Optional[Iterable[str]] = None
    ) -> Tuple[List[ProductDB], int]:
        """
        ``located_supplier_ids`` is the set of suppliers matching ``q.location``;
        the caller resolves it from the user store.
        """
        if q.search:
            return await self.search_text(q.search, q.page, q.limit, q.in_stock_only, q.sort)
        if q.supplier_id:
            return await self.find_by_supplier(q.supplier_id, q.page, q.limit, q.in_stock_only, q.sort)
        if q.category:
            return await self.find_by_category(q.category, q.page, q.limit, q.in_stock_only, q.sort)
        if q.location:
            return await self.find_by_suppliers(located_supplier_ids or [], q.page, q.limit, q.in_stock_only, q.sort)
        if q.in_stock_only:
            return await self.list_in_stock(q.page, q.limit, q.sort)
        return await self._find_page({}, q.page, q.limit, q.sort)

    async def _find_page(self, query: dict, page: int, limit: int, sort: Sort = DEFAULT_SORT) -> Tuple[List[ProductDB], int]:
        skip = (page - 1) * limit
        cursor = self.collection.find(query, sort=list(sort), skip=skip, limit=limit)
        docs = await cursor.to_list(length=limit)
        total = await self.collection.count_documents(query)
        return [ProductDB.from_mongo(doc) for doc in docs], total
