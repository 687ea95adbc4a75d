from typing import List, Optional
from pydantic import BaseModel, Field

from app.models.order import OrderStatus, ShippingAddress


class OrderItemCreate(BaseModel):
    """Schema for product in order creation."""
    product_id: str
    quantity: int = Field(gt=0)


class OrderCreate(BaseModel):
    """Schema for creating an order."""
    items: List[OrderItemCreate] = Field(min_length=1)
    shipping_address: ShippingAddress
    payment_method: str = "razorpay"
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "items": [
                    {"product_id": "665f1c2e9b1e8a3d4c5b6a71", "quantity": 2}
                ],
                "shipping_address": {
                    "address": "12 MG Road",
                    "city": "Bengaluru",
                    "state": "Karnataka",
                    "zip_code": "560001"
                },
                "payment_method": "razorpay"
            }
        }


class OrderStatusUpdate(BaseModel):
    """Schema for updating order status."""
    status: OrderStatus
    description: Optional[str] = None
    location: Optional[str] = None
    tracking_number: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "status": "Shipped",
                "description": "Handed over to courier",
                "location": "Bengaluru hub",
                "tracking_number": "BLR123456789"
            }
        }


class OrderCancelRequest(BaseModel):
    """Schema for cancelling an order."""
    reason: str = Field(default="Cancelled by customer", min_length=1)
