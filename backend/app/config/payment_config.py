"""
Payment system configuration for the Razorpay gateway.

Credentials come from the environment. When the key id or key secret is
missing the payment features are disabled and the payment endpoints answer
with 503 instead of failing at import time.
"""

import os
from typing import Dict, Any


# Payment configuration
PAYMENT_CONFIG: Dict[str, Any] = {
    # Razorpay Configuration
    "razorpay": {
        "api_url": os.getenv("RAZORPAY_API_URL", "https://api.razorpay.com/v1"),
        "key_id": os.getenv("RAZORPAY_KEY_ID", ""),
        "key_secret": os.getenv("RAZORPAY_KEY_SECRET", ""),
        "webhook_secret": os.getenv("RAZORPAY_WEBHOOK_SECRET", ""),
    },

    # Payment Settings
    "currency": "INR",
    "minor_unit_factor": 100,  # rupees -> paise
    "timeout_seconds": int(os.getenv("PAYMENT_TIMEOUT_SECONDS", "30")),
    "refund_speed": os.getenv("RAZORPAY_REFUND_SPEED", "normal"),
}


def get_gateway_config() -> Dict[str, Any]:
    """
    Get the Razorpay configuration section.

    Returns:
        Gateway configuration dictionary
    """
    return PAYMENT_CONFIG.get("razorpay", {})


def is_configured() -> bool:
    """Return True when both the key id and the key secret are set."""
    config = get_gateway_config()
    return bool(config.get("key_id") and config.get("key_secret"))


def to_minor_units(amount: float) -> int:
    """
    Convert an amount in major currency units to gateway minor units.

    Args:
        amount: Amount in rupees

    Returns:
        Amount in paise, rounded to the nearest paisa
    """
    return int(round(amount * PAYMENT_CONFIG["minor_unit_factor"]))


def from_minor_units(amount: int) -> float:
    """Convert gateway minor units back to major currency units."""
    return amount / PAYMENT_CONFIG["minor_unit_factor"]
