"""Refund model for MongoDB."""

from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field


class Refund(BaseModel):
    """Record of a refund issued through the payment gateway."""
    id: Optional[str] = Field(None, alias="_id")
    refund_id: str  # Gateway refund id (rfnd_...)

    # References
    order_id: str
    razorpay_payment_id: str
    initiated_by: str  # user_id of the buyer or admin

    # Refund Details
    amount: float = Field(gt=0)  # Major currency units
    currency: str = "INR"
    reason: str
    status: str = "processed"
    gateway_response: Dict[str, Any] = Field(default_factory=dict)

    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "refund_id": "rfnd_FP8QHiV938haTz",
                "order_id": "665f1c2e9b1e8a3d4c5b6a73",
                "razorpay_payment_id": "pay_29QQoUBi66xm2f",
                "initiated_by": "665f1c2e9b1e8a3d4c5b6a70",
                "amount": 500.0,
                "currency": "INR",
                "reason": "Customer request",
                "status": "processed"
            }
        }
