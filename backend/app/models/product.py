from datetime import datetime
from typing import Optional
from enum import Enum
from pydantic import BaseModel, Field


class ProductStatus(str, Enum):
    """Moderation status of a catalog entry."""
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class Product(BaseModel):
    """Product model for MongoDB."""
    id: Optional[str] = Field(None, alias="_id")
    name: str
    description: str = ""
    price: float = Field(ge=0)
    category: Optional[str] = None  # "Organic" or "Fertilized"
    stock: int = Field(default=0, ge=0)
    unit: str = "kg"
    image: Optional[str] = None

    # Seller snapshot
    seller_id: str
    seller_name: Optional[str] = None
    farm_name: Optional[str] = None
    farm_location: Optional[str] = None

    # Moderation
    status: ProductStatus = ProductStatus.PENDING
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    is_featured: bool = False
    is_available: bool = True

    sales: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "name": "Organic Tomatoes",
                "description": "Vine ripened, pesticide free",
                "price": 60.0,
                "category": "Organic",
                "stock": 120,
                "unit": "kg",
                "seller_id": "665f1c2e9b1e8a3d4c5b6a72",
                "seller_name": "Ravi Kumar",
                "farm_name": "Green Acres",
                "status": "Approved",
                "is_available": True
            }
        }

    @property
    def is_purchasable(self) -> bool:
        """Only approved, available products can be ordered."""
        return self.status == ProductStatus.APPROVED.value and self.is_available
