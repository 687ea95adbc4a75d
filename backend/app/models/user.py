from datetime import datetime
from typing import Optional
from enum import Enum
from pydantic import BaseModel, EmailStr, Field


class UserRole(str, Enum):
    """User role enumeration."""
    BUYER = "buyer"
    FARMER = "farmer"
    ADMIN = "admin"


class User(BaseModel):
    """User model for MongoDB (accounts are managed by the auth service)."""
    id: Optional[str] = Field(None, alias="_id")
    first_name: str
    last_name: str
    email: EmailStr
    phone: Optional[str] = None
    role: UserRole = UserRole.BUYER
    is_active: bool = True
    # Seller aggregates, maintained by the order engine
    total_sales: float = Field(default=0.0, ge=0)
    total_products: int = Field(default=0, ge=0)
    farm_name: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "first_name": "Ravi",
                "last_name": "Kumar",
                "email": "ravi@example.com",
                "phone": "9876543210",
                "role": "farmer",
                "farm_name": "Green Acres",
                "total_sales": 12500.0,
                "total_products": 14
            }
        }


def full_name(user: dict) -> str:
    """Display name for a user document."""
    first = user.get("first_name") or ""
    last = user.get("last_name") or ""
    return f"{first} {last}".strip() or user.get("email", "")
