"""
Razorpay REST API client.

Documentation: https://razorpay.com/docs/api/

Amounts sent to and returned by Razorpay are in paise (minor units).
"""

import hashlib
import hmac
import logging
from typing import Any, Dict, Optional, Union

import requests

from app.config.payment_config import PAYMENT_CONFIG, get_gateway_config, is_configured
from app.core.exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)


class RazorpayService:
    """Razorpay payment gateway client (orders, refunds, signatures)."""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: int = 30
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_config(cls) -> Optional["RazorpayService"]:
        """Build a client from PAYMENT_CONFIG, or None if keys are missing."""
        if not is_configured():
            logger.warning(
                "Razorpay API keys not configured. Payment features will be disabled. "
                "Set RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET to enable payments"
            )
            return None

        config = get_gateway_config()
        logger.info("Razorpay initialized successfully")
        return cls(
            key_id=config["key_id"],
            key_secret=config["key_secret"],
            base_url=config.get("api_url", "https://api.razorpay.com/v1"),
            timeout=PAYMENT_CONFIG.get("timeout_seconds", 30)
        )

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST to the Razorpay API and return the decoded JSON body."""
        url = f"{self.base_url}{path}"
        try:
            response = requests.post(
                url,
                auth=(self.key_id, self.key_secret),
                json=payload,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Razorpay request to {path} failed: {str(e)}")
            raise PaymentGatewayError(f"Payment gateway request failed: {str(e)}")

        if response.status_code >= 400:
            description = self._error_description(response)
            logger.error(f"Razorpay {path} returned {response.status_code}: {description}")
            raise PaymentGatewayError(description, status_code=response.status_code)

        return response.json()

    @staticmethod
    def _error_description(response: requests.Response) -> str:
        """Extract Razorpay's error description from an error response."""
        try:
            error = response.json().get("error", {})
            return error.get("description") or f"Payment gateway error ({response.status_code})"
        except ValueError:
            return f"Payment gateway error ({response.status_code})"

    async def create_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """
        Create a Razorpay order.

        Args:
            amount: Amount in paise
            currency: ISO currency code
            receipt: Merchant receipt reference
            notes: Free-form key/value metadata

        Returns:
            Razorpay order entity (``id``, ``amount``, ``currency``, ``receipt``, ...)
        """
        logger.info(f"Creating Razorpay order for receipt {receipt}, amount {amount} {currency}")
        return self._post("/orders", {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {}
        })

    async def refund_payment(
        self,
        payment_id: str,
        amount: int,
        notes: Optional[Dict[str, str]] = None,
        speed: str = "normal"
    ) -> Dict[str, Any]:
        """
        Refund a captured payment.

        Args:
            payment_id: Razorpay payment id (pay_...)
            amount: Amount to refund in paise
            notes: Free-form key/value metadata
            speed: "normal" or "optimum"

        Returns:
            Razorpay refund entity (``id``, ``amount``, ``status``, ...)
        """
        logger.info(f"Refunding Razorpay payment {payment_id}, amount {amount}")
        return self._post(f"/payments/{payment_id}/refund", {
            "amount": amount,
            "speed": speed,
            "notes": notes or {}
        })


def generate_signature(message: Union[str, bytes], secret: str) -> str:
    """HMAC-SHA256 hex digest of ``message`` keyed with ``secret``."""
    if isinstance(message, str):
        message = message.encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify_signature(message: Union[str, bytes], signature: Optional[str], secret: str) -> bool:
    """
    Check a Razorpay signature.

    Used both for the checkout signature (``"{order_id}|{payment_id}"`` keyed
    with the key secret) and for webhooks (raw body keyed with the webhook
    secret).
    """
    if not signature or not secret:
        return False
    expected_signature = generate_signature(message, secret)
    return hmac.compare_digest(expected_signature.encode(), signature.encode())
