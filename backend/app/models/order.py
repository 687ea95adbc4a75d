from datetime import datetime
from typing import List, Optional
from enum import Enum
from pydantic import BaseModel, Field

from app.utils.helpers import generate_order_id


class OrderStatus(str, Enum):
    """Order fulfillment status enumeration."""
    PENDING = "Pending"
    CONFIRMED = "Confirmed"  # Payment confirmed, order ready to process
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class PaymentStatus(str, Enum):
    """Payment status enumeration for orders."""
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"
    REFUNDED = "Refunded"


TERMINAL_STATUSES = (OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value)


class LogisticsEntry(BaseModel):
    """One entry of the append-only logistics timeline."""
    status: str  # order status or event label, e.g. "Payment Confirmed"
    description: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    location: Optional[str] = None


class ShippingAddress(BaseModel):
    """Delivery address captured with the order."""
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip_code: str = Field(min_length=1)
    landmark: Optional[str] = None


class OrderItem(BaseModel):
    """Line item snapshot taken from the catalog at order time."""
    product_id: str
    seller_id: str
    product_name: str
    product_image: Optional[str] = None
    unit: Optional[str] = None
    seller_name: Optional[str] = None
    farm_name: Optional[str] = None
    price: float = Field(ge=0)
    quantity: int = Field(ge=1)
    total: float = Field(ge=0)


class Order(BaseModel):
    """Order model for MongoDB."""
    id: Optional[str] = Field(None, alias="_id")
    order_id: str = Field(default_factory=generate_order_id)

    # Buyer snapshot
    buyer_id: str
    buyer_name: str
    buyer_email: str
    buyer_phone: Optional[str] = None

    items: List[OrderItem] = Field(min_length=1)

    # Money
    subtotal: float = Field(ge=0)
    tax: float = Field(default=0.0, ge=0)
    shipping: float = Field(default=0.0, ge=0)
    total_amount: float = Field(ge=0)

    shipping_address: ShippingAddress

    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: str = "razorpay"
    payment_id: Optional[str] = None
    razorpay_order_id: Optional[str] = None  # latest checkout
    razorpay_order_ids: List[str] = Field(default_factory=list)  # every checkout issued
    razorpay_payment_id: Optional[str] = None

    # Logistics
    tracking_number: Optional[str] = None
    logistics: List[LogisticsEntry] = Field(default_factory=list)
    notes: Optional[str] = None

    # Terminal metadata
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "order_id": "ORD12345678AB3K",
                "buyer_id": "665f1c2e9b1e8a3d4c5b6a70",
                "buyer_name": "Asha Rao",
                "buyer_email": "asha@example.com",
                "buyer_phone": "9876543210",
                "items": [
                    {
                        "product_id": "665f1c2e9b1e8a3d4c5b6a71",
                        "seller_id": "665f1c2e9b1e8a3d4c5b6a72",
                        "product_name": "Organic Tomatoes",
                        "price": 100,
                        "quantity": 2,
                        "total": 200
                    }
                ],
                "subtotal": 200,
                "tax": 36,
                "shipping": 100,
                "total_amount": 336,
                "status": "Pending",
                "payment_status": "Pending"
            }
        }
