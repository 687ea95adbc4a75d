"""Domain exceptions for the marketplace backend.

Services raise these; the handlers registered in ``app.main`` turn them into
the ``{"success": false, "error": ...}`` response envelope.
"""
from typing import Dict, Optional, Type


class MarketplaceError(Exception):
    """Base exception for all marketplace errors."""

    def __init__(self, message: str = "Request failed"):
        self.message = message
        super().__init__(message)


class ValidationError(MarketplaceError):
    """Raised for bad input or an unmet business precondition."""

    pass


class StockError(ValidationError):
    """Raised when a requested quantity exceeds the available stock."""

    def __init__(self, product_name: str, requested: Optional[int] = None, available: Optional[int] = None):
        self.product_name = product_name
        self.requested = requested
        self.available = available
        super().__init__(f"Insufficient stock for {product_name}")


class InvalidStateError(ValidationError):
    """Raised when an order is not in a state that allows the operation."""

    pass


class AlreadyPaidError(InvalidStateError):
    """Raised when creating a payment for an order that is already paid."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__("Order is already paid")


class MissingPaymentError(ValidationError):
    """Raised when a refund is requested but no captured payment exists."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__("No payment ID found for refund")


class SignatureError(MarketplaceError):
    """Raised when a payment or webhook signature does not match."""

    pass


class AuthorizationError(MarketplaceError):
    """Raised when the caller lacks the role or ownership required."""

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class NotFoundError(MarketplaceError):
    """Raised when a referenced resource does not exist."""

    def __init__(self, resource: str, identifier: Optional[str] = None):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found")


class ServiceUnavailableError(MarketplaceError):
    """Raised when the payment gateway is not configured."""

    def __init__(self, message: str = "Payment service is currently unavailable. Please contact support."):
        super().__init__(message)


class PaymentGatewayError(MarketplaceError):
    """Raised when the payment gateway rejects or fails a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.gateway_status_code = status_code
        super().__init__(message)


# Subclasses resolve through their bases (see status_code_for)
ERROR_STATUS_CODES: Dict[Type[MarketplaceError], int] = {
    ValidationError: 400,
    SignatureError: 400,
    AuthorizationError: 403,
    NotFoundError: 404,
    PaymentGatewayError: 502,
    ServiceUnavailableError: 503,
}


def status_code_for(exc: MarketplaceError) -> int:
    """Resolve the HTTP status code for an exception, honouring subclasses."""
    for klass in type(exc).__mro__:
        if klass in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[klass]
    return 500
