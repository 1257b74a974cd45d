from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Optional
from datetime import datetime
from vendorconnect.shared.security_config import validate_password_strength, sanitize_input
from vendorconnect.auth.models import Role, UserDB

class UserRegister(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: Role
    phone: Optional[str] = None
    location: Optional[str] = None
    business_name: Optional[str] = None
    business_address: Optional[str] = None

    @field_validator('password')
    def password_complexity(cls, v):
        if not validate_password_strength(v):
            raise ValueError('Password must be at least 8 characters long and contain letters and numbers')
        return v

    @field_validator('name', 'phone', 'location', 'business_name', 'business_address')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

    @field_validator('email')
    def normalize_email(cls, v):
        return v.lower()

    @model_validator(mode="after")
    def supplier_business_details(self):
        if self.role == Role.SUPPLIER and not (self.business_name and self.business_address):
            raise ValueError('Suppliers must provide business_name and business_address')
        return self

class UserLogin(BaseModel):
    email: EmailStr
    password: str

    @field_validator('email')
    def normalize_email(cls, v):
        return v.lower()

class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = None
    location: Optional[str] = None
    business_name: Optional[str] = None
    business_address: Optional[str] = None

    @field_validator('name', 'phone', 'location', 'business_name', 'business_address')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)

    @field_validator('new_password')
    def password_complexity(cls, v):
        if not validate_password_strength(v):
            raise ValueError('Password must be at least 8 characters long and contain letters and numbers')
        return v

class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str

class RefreshTokenRequest(BaseModel):
    refresh_token: str

class UserResponse(BaseModel):
    id: str
    name: str
    email: EmailStr
    role: Role
    phone: Optional[str] = None
    location: Optional[str] = None
    business_name: Optional[str] = None
    business_address: Optional[str] = None
    rating: float
    verified: bool
    created_at: datetime

    @classmethod
    def from_db(cls, user: UserDB) -> "UserResponse":
        return cls(**user.model_dump(exclude={"password_hash", "is_active"}))

class SupplierSummary(BaseModel):
    """Supplier display data attached to products and cart lines."""
    id: str
    name: str
    business_name: Optional[str] = None
    location: Optional[str] = None
    rating: float = 4.0
    verified: bool = False

    @classmethod
    def from_db(cls, user: UserDB) -> "SupplierSummary":
        return cls(
            id=user.id,
            name=user.name,
            business_name=user.business_name,
            location=user.location,
            rating=user.rating,
            verified=user.verified,
        )
