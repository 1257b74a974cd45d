import re
from typing import Dict, Iterable, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from vendorconnect.auth.models import Role, UserDB
from vendorconnect.shared.utils import to_bson

PROFILE_FIELDS = ("name", "phone", "location", "business_name", "business_address")

class UserRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db["users"]

    async def ensure_indexes(self):
        await self.collection.create_index("email", unique=True)

    async def get(self, user_id: str) -> Optional[UserDB]:
        if not ObjectId.is_valid(user_id):
            return None
        doc = await self.collection.find_one({"_id": ObjectId(user_id)})
        return UserDB.from_mongo(doc) if doc else None

    async def get_many(self, user_ids: Iterable[str]) -> Dict[str, UserDB]:
        oids = [ObjectId(uid) for uid in set(user_ids) if ObjectId.is_valid(uid)]
        if not oids:
            return {}
        docs = await self.collection.find({"_id": {"$in": oids}}).to_list(length=None)
        users = [UserDB.from_mongo(doc) for doc in docs]
        return {u.id: u for u in users}

    async def find_by_email(self, email: str) -> Optional[UserDB]:
        doc = await self.collection.find_one({"email": email.lower()})
        return UserDB.from_mongo(doc) if doc else None

    async def insert(self, user: UserDB) -> UserDB:
        doc = to_bson(user.model_dump(by_alias=True, exclude={"id"}))
        result = await self.collection.insert_one(doc)
        user.id = str(result.inserted_id)
        return user

    async def find_supplier_ids_by_location(self, location: str) -> List[str]:
        query = {
            "role": Role.SUPPLIER.value,
            "location": {"$regex": re.escape(location.strip()), "$options": "i"},
        }
        docs = await self.collection.find(query, projection={"_id": 1}).to_list(length=None)
        return [str(doc["_id"]) for doc in docs]

    async def update_profile(self, user_id: str, changes: dict) -> Optional[UserDB]:
        """Contact and business details only; identity and credentials never change here."""
        changes = {k: v for k, v in changes.items() if k in PROFILE_FIELDS}
        if not ObjectId.is_valid(user_id):
            return None
        if changes:
            await self.collection.update_one({"_id": ObjectId(user_id)}, {"$set": to_bson(changes)})
        return await self.get(user_id)

    async def set_password_hash(self, user_id: str, password_hash: str) -> bool:
        result = await self.collection.update_one(
            {"_id": ObjectId(user_id)}, {"$set": {"password_hash": password_hash}}
        )
        return result.matched_count == 1
