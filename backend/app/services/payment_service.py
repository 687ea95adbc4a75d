"""
Payment service - Core business logic for Razorpay payments.

This service creates gateway orders, verifies checkout signatures, reconciles
webhooks and issues refunds. Payment state lives on the order document; every
payment transition is applied with a compare-and-set on the order's current
``status``/``payment_status`` so the synchronous verify path and the webhook
path converge on the same state with a single timeline entry.
"""

import json
import logging
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.config.payment_config import (
    PAYMENT_CONFIG,
    from_minor_units,
    get_gateway_config,
    to_minor_units,
)
from app.core.exceptions import (
    AlreadyPaidError,
    AuthorizationError,
    InvalidStateError,
    MissingPaymentError,
    NotFoundError,
    ServiceUnavailableError,
    SignatureError,
    ValidationError,
)
from app.models.order import OrderStatus, PaymentStatus, TERMINAL_STATUSES
from app.models.refund import Refund
from app.models.user import full_name
from app.services.order_service import OrderService
from app.services.payment_providers.razorpay_service import RazorpayService, verify_signature
from app.utils.helpers import format_document, get_current_timestamp

logger = logging.getLogger(__name__)


class PaymentService:
    """Core payment service handling all payment operations."""

    # Attempts for a compare-and-set before giving up on a contended order
    CAS_ATTEMPTS = 3

    def __init__(
        self,
        gateway: Optional[RazorpayService] = None,
        webhook_secret: str = "",
        currency: str = "INR"
    ):
        self.gateway = gateway
        self.webhook_secret = webhook_secret
        self.currency = currency

    @classmethod
    def from_config(cls) -> "PaymentService":
        """Build the service and its gateway client from PAYMENT_CONFIG."""
        return cls(
            gateway=RazorpayService.from_config(),
            webhook_secret=get_gateway_config().get("webhook_secret", ""),
            currency=PAYMENT_CONFIG["currency"]
        )

    @property
    def is_available(self) -> bool:
        """True when the gateway client has credentials."""
        return self.gateway is not None and bool(self.gateway.key_id and self.gateway.key_secret)

    def _require_gateway(self):
        if not self.is_available:
            raise ServiceUnavailableError()

    @staticmethod
    def _check_owner(order: dict, user: dict):
        if str(order.get("buyer_id")) != str(user.get("_id")):
            raise AuthorizationError()

    async def create_payment_order(
        self,
        order_id: str,
        user: dict,
        db: AsyncIOMotorDatabase,
        amount: Optional[float] = None,
        currency: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create a Razorpay order for a local order.

        Args:
            order_id: Local order identifier
            user: Authenticated buyer
            db: Database connection
            amount: Amount in rupees; defaults to the order total and must match it
            currency: ISO currency code, INR by default

        Returns:
            Gateway order id, amount in paise, currency, receipt and public key id
        """
        self._require_gateway()

        order = await OrderService.get_order_document(order_id, db)
        self._check_owner(order, user)

        if order["payment_status"] == PaymentStatus.PAID.value:
            raise AlreadyPaidError(order_id)

        if order["status"] in TERMINAL_STATUSES:
            raise InvalidStateError(f"Cannot pay for order with status: {order['status']}")

        if amount is None:
            amount = order["total_amount"]
        elif abs(amount - order["total_amount"]) >= 0.01:
            raise ValidationError("Amount does not match order total")

        currency = currency or self.currency
        local_id = str(order["_id"])

        logger.info(f"Creating payment order for order {order.get('order_id')}, amount {amount} {currency}")

        razorpay_order = await self.gateway.create_order(
            amount=to_minor_units(amount),
            currency=currency,
            receipt=f"order_{local_id}",
            notes={
                "order_id": local_id,
                "buyer_id": str(user["_id"]),
                "buyer_name": full_name(user)
            }
        )

        # Earlier checkouts stay valid; the buyer may still pay one of them
        await db.orders.update_one(
            {"_id": order["_id"]},
            {
                "$set": {
                    "razorpay_order_id": razorpay_order["id"],
                    "updated_at": get_current_timestamp()
                },
                "$addToSet": {"razorpay_order_ids": razorpay_order["id"]}
            }
        )

        return {
            "order_id": razorpay_order["id"],
            "amount": razorpay_order.get("amount", to_minor_units(amount)),
            "currency": razorpay_order.get("currency", currency),
            "receipt": razorpay_order.get("receipt", f"order_{local_id}"),
            "key": self.gateway.key_id
        }

    async def verify_payment(
        self,
        razorpay_order_id: str,
        razorpay_payment_id: str,
        signature: str,
        order_id: str,
        user: dict,
        db: AsyncIOMotorDatabase
    ) -> Dict[str, Any]:
        """
        Verify the checkout signature returned to the buyer and mark the order paid.

        Re-verifying an order that is already paid returns it unchanged.
        """
        self._require_gateway()

        order = await OrderService.get_order_document(order_id, db)
        self._check_owner(order, user)

        message = f"{razorpay_order_id}|{razorpay_payment_id}"
        if not verify_signature(message, signature, self.gateway.key_secret):
            logger.warning(f"Invalid payment signature for order {order.get('order_id')}")
            raise SignatureError("Invalid payment signature")

        if not self.issued_gateway_order(order, razorpay_order_id):
            logger.warning(
                f"Razorpay order {razorpay_order_id} was not issued for order {order.get('order_id')}"
            )
            raise ValidationError("Payment does not belong to this order")

        updated_order = await self.mark_paid(order, razorpay_payment_id, db, razorpay_order_id=razorpay_order_id)

        return {
            "order_id": str(updated_order["_id"]),
            "payment_id": razorpay_payment_id,
            "status": updated_order["payment_status"],
            "order": format_document(updated_order)
        }

    @staticmethod
    def issued_gateway_order(order: dict, razorpay_order_id: Optional[str]) -> bool:
        """True if ``razorpay_order_id`` was created for this order by create_payment_order."""
        if not razorpay_order_id:
            return False
        issued = set(order.get("razorpay_order_ids") or [])
        if order.get("razorpay_order_id"):
            issued.add(order["razorpay_order_id"])
        return razorpay_order_id in issued

    @staticmethod
    async def _find_by_gateway_order(razorpay_order_id: str, db: AsyncIOMotorDatabase) -> Optional[dict]:
        return await db.orders.find_one({"$or": [
            {"razorpay_order_ids": razorpay_order_id},
            {"razorpay_order_id": razorpay_order_id}
        ]})

    async def _compare_and_set(self, order: dict, update: Dict[str, Any], db: AsyncIOMotorDatabase) -> Optional[dict]:
        """Apply ``update`` only if the order still has the state we read."""
        return await db.orders.find_one_and_update(
            {
                "_id": order["_id"],
                "status": order["status"],
                "payment_status": order["payment_status"]
            },
            update,
            return_document=ReturnDocument.AFTER
        )

    async def _reload(self, order: dict, db: AsyncIOMotorDatabase) -> dict:
        fresh = await db.orders.find_one({"_id": order["_id"]})
        if not fresh:
            raise NotFoundError("Order", str(order["_id"]))
        return fresh

    async def mark_paid(
        self,
        order: dict,
        razorpay_payment_id: str,
        db: AsyncIOMotorDatabase,
        razorpay_order_id: Optional[str] = None
    ) -> dict:
        """
        Record a captured payment: Paid, Pending orders advance to Confirmed,
        one "Payment Confirmed" entry. No-op if the order is already paid.

        ``razorpay_order_id`` is the checkout that was paid; it becomes the
        order's current gateway order.
        """
        for _ in range(self.CAS_ATTEMPTS):
            if order["payment_status"] == PaymentStatus.PAID.value:
                if order.get("razorpay_payment_id") not in (None, razorpay_payment_id):
                    logger.warning(
                        f"Order {order.get('order_id')} already paid with {order['razorpay_payment_id']}, "
                        f"ignoring payment {razorpay_payment_id}"
                    )
                return order

            if order["payment_status"] == PaymentStatus.REFUNDED.value or order["status"] in TERMINAL_STATUSES:
                logger.error(
                    f"Payment {razorpay_payment_id} captured for order {order.get('order_id')} "
                    f"in status {order['status']}/{order['payment_status']}"
                )
                raise InvalidStateError(f"Cannot confirm payment for order in '{order['status']}' status")

            new_status = order["status"]
            if new_status == OrderStatus.PENDING.value:
                new_status = OrderStatus.CONFIRMED.value

            update_data = {
                "payment_status": PaymentStatus.PAID.value,
                "payment_id": razorpay_payment_id,
                "razorpay_payment_id": razorpay_payment_id,
                "status": new_status,
                "updated_at": get_current_timestamp()
            }
            if razorpay_order_id:
                update_data["razorpay_order_id"] = razorpay_order_id

            updated_order = await self._compare_and_set(order, {
                "$set": update_data,
                "$push": {"logistics": OrderService.build_logistics_entry(
                    "Payment Confirmed",
                    "Payment has been successfully processed",
                    "Online"
                )}
            }, db)

            if updated_order is not None:
                logger.info(f"Payment {razorpay_payment_id} captured, order {order.get('order_id')} confirmed")
                return updated_order

            order = await self._reload(order, db)

        raise InvalidStateError("Order was modified concurrently, please retry")

    async def mark_failed(self, order: dict, description: str, db: AsyncIOMotorDatabase) -> dict:
        """Record a failed payment attempt unless the order is already settled."""
        for _ in range(self.CAS_ATTEMPTS):
            if order["payment_status"] != PaymentStatus.PENDING.value:
                logger.info(
                    f"Ignoring payment failure for order {order.get('order_id')} "
                    f"with payment status {order['payment_status']}"
                )
                return order

            updated_order = await self._compare_and_set(order, {
                "$set": {
                    "payment_status": PaymentStatus.FAILED.value,
                    "updated_at": get_current_timestamp()
                },
                "$push": {"logistics": OrderService.build_logistics_entry(
                    "Payment Failed",
                    f"Payment failed: {description}",
                    "Online"
                )}
            }, db)

            if updated_order is not None:
                logger.info(f"Payment failed for order {order.get('order_id')}: {description}")
                return updated_order

            order = await self._reload(order, db)

        raise InvalidStateError("Order was modified concurrently, please retry")

    async def mark_refunded(self, order: dict, reason: str, db: AsyncIOMotorDatabase) -> dict:
        """Record a refund: Refunded, order Cancelled unless already delivered."""
        for _ in range(self.CAS_ATTEMPTS):
            if order["payment_status"] == PaymentStatus.REFUNDED.value:
                return order

            if order["payment_status"] != PaymentStatus.PAID.value:
                raise InvalidStateError("Order is not paid")

            now = get_current_timestamp()
            update_data = {
                "payment_status": PaymentStatus.REFUNDED.value,
                "updated_at": now
            }
            # Delivered is terminal; the refund is recorded on payment_status only
            if order["status"] not in TERMINAL_STATUSES:
                update_data["status"] = OrderStatus.CANCELLED.value
                update_data["cancelled_at"] = now
                update_data["cancellation_reason"] = reason

            updated_order = await self._compare_and_set(order, {
                "$set": update_data,
                "$push": {"logistics": OrderService.build_logistics_entry(
                    "Payment Refunded",
                    f"Payment refunded: {reason}",
                    "Online"
                )}
            }, db)

            if updated_order is not None:
                logger.info(f"Order {order.get('order_id')} refunded: {reason}")
                return updated_order

            order = await self._reload(order, db)

        raise InvalidStateError("Order was modified concurrently, please retry")

    async def handle_webhook(
        self,
        raw_body: bytes,
        signature: Optional[str],
        db: AsyncIOMotorDatabase,
        event_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Process a Razorpay webhook.

        The signature is checked against the raw request body. Once it
        verifies, the webhook is always acknowledged: failures while applying
        the event are logged rather than returned, so Razorpay does not keep
        retrying a delivery that fails on our side.

        Args:
            raw_body: Request body exactly as received
            signature: X-Razorpay-Signature header
            db: Database connection
            event_id: X-Razorpay-Event-Id header, used to drop redeliveries

        Returns:
            Event name and whether it changed any order
        """
        if not self.webhook_secret:
            logger.error("Webhook received but RAZORPAY_WEBHOOK_SECRET is not configured")
            raise ServiceUnavailableError("Webhook processing is not configured")

        if not signature:
            raise SignatureError("Missing signature")

        if not verify_signature(raw_body, signature, self.webhook_secret):
            logger.warning("Invalid webhook signature")
            raise SignatureError("Invalid webhook signature")

        try:
            event = json.loads(raw_body)
        except ValueError:
            raise ValidationError("Malformed webhook payload")

        if not isinstance(event, dict):
            raise ValidationError("Malformed webhook payload")

        event_type = event.get("event")
        logger.info(f"Processing webhook event {event_type} ({event_id or 'no event id'})")

        if event_id:
            try:
                await db.webhook_events.insert_one({
                    "_id": event_id,
                    "event": event_type,
                    "received_at": get_current_timestamp()
                })
            except DuplicateKeyError:
                logger.info(f"Duplicate webhook event {event_id} ignored")
                return {"event": event_type, "processed": False, "duplicate": True}

        try:
            processed = await self._dispatch_event(event_type, event.get("payload") or {}, db)
        except Exception as e:
            logger.exception(f"Failed to process webhook event {event_type}: {e}")
            processed = False

        return {"event": event_type, "processed": processed}

    async def _dispatch_event(self, event_type: Optional[str], payload: Dict[str, Any], db: AsyncIOMotorDatabase) -> bool:
        """Apply one webhook event. Returns True if an order was found for it."""
        if event_type == "payment.captured":
            payment = payload["payment"]["entity"]
            order = await self._find_by_gateway_order(payment["order_id"], db)
            if not order:
                logger.warning(f"No order found for Razorpay order {payment['order_id']}")
                return False
            await self.mark_paid(order, payment["id"], db, razorpay_order_id=payment["order_id"])
            return True

        if event_type == "payment.failed":
            payment = payload["payment"]["entity"]
            order = await self._find_by_gateway_order(payment["order_id"], db)
            if not order:
                logger.warning(f"No order found for Razorpay order {payment['order_id']}")
                return False
            await self.mark_failed(order, payment.get("error_description") or "Unknown error", db)
            return True

        if event_type == "refund.processed":
            refund = payload["refund"]["entity"]
            order = await db.orders.find_one({"razorpay_payment_id": refund["payment_id"]})
            if not order:
                logger.warning(f"No order found for Razorpay payment {refund['payment_id']}")
                return False
            notes = refund.get("notes")
            # Razorpay sends an empty list when there are no notes
            reason = (notes.get("reason") if isinstance(notes, dict) else None) or "Refund processed"
            await self.mark_refunded(order, reason, db)
            return True

        logger.info(f"Unhandled webhook event: {event_type}")
        return False

    async def refund_payment(
        self,
        order_id: str,
        user: dict,
        db: AsyncIOMotorDatabase,
        reason: str = "Customer request"
    ) -> Dict[str, Any]:
        """
        Refund the full amount of a paid order through Razorpay.

        Args:
            order_id: Local order identifier
            user: Buyer who owns the order, or an admin
            db: Database connection
            reason: Reason stored on the refund and in the timeline

        Returns:
            Refund id, amount in paise, gateway status and the updated order
        """
        self._require_gateway()

        order = await OrderService.get_order_document(order_id, db)
        if not OrderService.can_access_order(order, user):
            raise AuthorizationError()

        if order["payment_status"] != PaymentStatus.PAID.value:
            raise InvalidStateError("Order is not paid")

        if not order.get("razorpay_payment_id"):
            raise MissingPaymentError(order_id)

        local_id = str(order["_id"])
        amount = to_minor_units(order["total_amount"])

        refund = await self.gateway.refund_payment(
            order["razorpay_payment_id"],
            amount,
            notes={"reason": reason, "order_id": local_id},
            speed=PAYMENT_CONFIG.get("refund_speed", "normal")
        )

        refund_record = Refund(
            refund_id=refund["id"],
            order_id=local_id,
            razorpay_payment_id=order["razorpay_payment_id"],
            initiated_by=str(user["_id"]),
            amount=from_minor_units(refund.get("amount", amount)),
            currency=order.get("currency", self.currency),
            reason=reason,
            status=refund.get("status", "processed"),
            gateway_response=refund
        )
        await db.refunds.insert_one(refund_record.model_dump(by_alias=True, exclude={"id"}))

        updated_order = await self.mark_refunded(order, reason, db)

        logger.info(f"Refund {refund['id']} issued for order {order.get('order_id')}")

        return {
            "refund_id": refund["id"],
            "order_id": local_id,
            "amount": refund.get("amount", amount),
            "status": refund.get("status", "processed"),
            "order": format_document(updated_order)
        }

    async def get_payment_details(self, order_id: str, user: dict, db: AsyncIOMotorDatabase) -> Dict[str, Any]:
        """Payment summary of an order for its buyer."""
        order = await OrderService.get_order_document(order_id, db)
        if not OrderService.can_access_order(order, user):
            raise AuthorizationError()

        return {
            "order_id": str(order["_id"]),
            "payment_status": order["payment_status"],
            "payment_method": order.get("payment_method"),
            "razorpay_order_id": order.get("razorpay_order_id"),
            "razorpay_payment_id": order.get("razorpay_payment_id"),
            "total_amount": order["total_amount"],
            "currency": self.currency
        }
