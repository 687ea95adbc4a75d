"""Payment schemas for API request validation."""

from typing import Optional
from pydantic import BaseModel, Field


class PaymentOrderRequest(BaseModel):
    """Schema for creating a Razorpay order for a local order."""
    order_id: str
    amount: Optional[float] = Field(default=None, gt=0)  # Rupees; defaults to the order total
    currency: str = "INR"

    class Config:
        json_schema_extra = {
            "example": {
                "order_id": "665f1c2e9b1e8a3d4c5b6a73",
                "amount": 395.0,
                "currency": "INR"
            }
        }


class PaymentVerifyRequest(BaseModel):
    """Schema for the checkout handler response forwarded by the client."""
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str
    order_id: str

    class Config:
        json_schema_extra = {
            "example": {
                "razorpay_order_id": "order_IluGWxBm9U8zJ8",
                "razorpay_payment_id": "pay_29QQoUBi66xm2f",
                "razorpay_signature": "9ef4dffbfd84f1318f6739a3ce19f9d85851857ae648f114332d8401e0949a3d",
                "order_id": "665f1c2e9b1e8a3d4c5b6a73"
            }
        }


class RefundRequest(BaseModel):
    """Schema for refund request."""
    reason: str = "Customer request"
