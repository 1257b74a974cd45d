from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, EmailStr, Field

from vendorconnect.shared.utils import utcnow

class Role(str, Enum):
    VENDOR = "vendor"
    SUPPLIER = "supplier"

class UserDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    name: str
    email: EmailStr
    password_hash: str
    role: Role
    phone: Optional[str] = None
    location: Optional[str] = None
    business_name: Optional[str] = None
    business_address: Optional[str] = None
    rating: float = Field(4.0, ge=0, le=5)
    verified: bool = False
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)

    class Config:
        populate_by_name = True

    @classmethod
    def from_mongo(cls, doc: dict) -> "UserDB":
        doc = dict(doc)
        doc["_id"] = str(doc["_id"])
        return cls(**doc)

class CurrentUser(BaseModel):
    """Identity resolved from a bearer token; everything downstream trusts it."""
    user_id: str
    role: Role

    @property
    def is_vendor(self) -> bool:
        return self.role == Role.VENDOR

    @property
    def is_supplier(self) -> bool:
        return self.role == Role.SUPPLIER
