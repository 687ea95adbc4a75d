"""
Payment API routes for Razorpay payments.

Handles payment order creation, checkout verification, webhooks and refunds.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Header, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.api.deps import get_db, get_current_user, get_current_buyer, get_payment_service
from app.schemas.common import ApiResponse
from app.schemas.payment import PaymentOrderRequest, PaymentVerifyRequest, RefundRequest
from app.services.payment_service import PaymentService

router = APIRouter()


@router.post("/create-order", response_model=ApiResponse)
async def create_payment_order(
    request: PaymentOrderRequest,
    current_user: dict = Depends(get_current_buyer),
    db: AsyncIOMotorDatabase = Depends(get_db),
    payment_service: PaymentService = Depends(get_payment_service)
):
    """
    Create a Razorpay order for one of the buyer's orders.

    **Validations:**
    - Payment gateway must be configured (503 otherwise)
    - Order must exist and belong to the authenticated user
    - Order must not already be paid

    **Returns:**
    - Razorpay order id, amount in paise, currency and the public key id
      the checkout widget needs
    """
    data = await payment_service.create_payment_order(
        order_id=request.order_id,
        user=current_user,
        db=db,
        amount=request.amount,
        currency=request.currency
    )
    return {"success": True, "data": data}


@router.post("/verify", response_model=ApiResponse)
async def verify_payment(
    request: PaymentVerifyRequest,
    current_user: dict = Depends(get_current_buyer),
    db: AsyncIOMotorDatabase = Depends(get_db),
    payment_service: PaymentService = Depends(get_payment_service)
):
    """
    Verify the signature returned by Razorpay checkout and confirm the order.

    Calling this again for an order that is already paid is harmless.
    """
    data = await payment_service.verify_payment(
        razorpay_order_id=request.razorpay_order_id,
        razorpay_payment_id=request.razorpay_payment_id,
        signature=request.razorpay_signature,
        order_id=request.order_id,
        user=current_user,
        db=db
    )
    return {"success": True, "data": data, "message": "Payment verified successfully"}


@router.get("/details/{order_id}", response_model=ApiResponse)
async def get_payment_details(
    order_id: str,
    current_user: dict = Depends(get_current_buyer),
    db: AsyncIOMotorDatabase = Depends(get_db),
    payment_service: PaymentService = Depends(get_payment_service)
):
    """
    Get the payment status and gateway references of an order.
    """
    data = await payment_service.get_payment_details(order_id, current_user, db)
    return {"success": True, "data": data}


@router.post("/refund/{order_id}", response_model=ApiResponse)
async def refund_payment(
    order_id: str,
    request: Optional[RefundRequest] = None,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
    payment_service: PaymentService = Depends(get_payment_service)
):
    """
    Refund the full amount of a paid order.

    **Conditions:**
    - Payment status must be "Paid"
    - The order must have a captured Razorpay payment id

    The order ends up Refunded and Cancelled.
    """
    reason = request.reason if request else "Customer request"
    data = await payment_service.refund_payment(order_id, current_user, db, reason=reason)
    return {"success": True, "data": data, "message": "Payment refunded successfully"}


@router.post("/webhook", response_model=ApiResponse)
async def payment_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None),
    x_razorpay_event_id: Optional[str] = Header(None),
    db: AsyncIOMotorDatabase = Depends(get_db),
    payment_service: PaymentService = Depends(get_payment_service)
):
    """
    Webhook endpoint for Razorpay events.

    **Security:**
    - HMAC-SHA256 signature of the raw body (X-Razorpay-Signature)
    - No authentication header; the signature is the credential

    **Events:**
    - payment.captured → order Paid / Confirmed
    - payment.failed → payment Failed
    - refund.processed → order Refunded / Cancelled
    - anything else is acknowledged and ignored
    """
    raw_body = await request.body()
    data = await payment_service.handle_webhook(
        raw_body=raw_body,
        signature=x_razorpay_signature,
        db=db,
        event_id=x_razorpay_event_id
    )
    return {"success": True, "data": data}
