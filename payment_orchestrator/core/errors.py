"""
Unified error taxonomy for payment orchestration.

Every component boundary raises a ``PaymentError`` subclass carrying an
``ErrorKind``. The kind decides the category and the HTTP status returned to
the storefront, so callers branch on ``error.kind`` instead of provider wire
formats.
"""
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCategory(Enum):
    """Broad classification of an error kind."""

    VALIDATION = "validation"
    PROVIDER = "provider"
    INFRASTRUCTURE = "infrastructure"
    SIGNATURE = "signature"


class ErrorKind(Enum):
    """Internal error kinds with their category and HTTP status."""

    # Locally detected, never forwarded to a provider
    EMPTY_CART = ("EMPTY_CART", ErrorCategory.VALIDATION, 400)
    MALFORMED_CART = ("MALFORMED_CART", ErrorCategory.VALIDATION, 400)
    INVALID_AMOUNT = ("INVALID_AMOUNT", ErrorCategory.VALIDATION, 400)
    INVALID_QUANTITY = ("INVALID_QUANTITY", ErrorCategory.VALIDATION, 400)
    INVALID_CURRENCY = ("INVALID_CURRENCY", ErrorCategory.VALIDATION, 400)
    MIXED_CURRENCY_CART = ("MIXED_CURRENCY_CART", ErrorCategory.VALIDATION, 400)
    MISSING_ITEMS = ("MISSING_ITEMS", ErrorCategory.VALIDATION, 400)
    INVALID_PRODUCT_ID = ("INVALID_PRODUCT_ID", ErrorCategory.VALIDATION, 400)
    PRODUCT_NOT_FOUND = ("PRODUCT_NOT_FOUND", ErrorCategory.VALIDATION, 404)
    OUT_OF_STOCK = ("OUT_OF_STOCK", ErrorCategory.VALIDATION, 400)
    INVALID_PRICE = ("INVALID_PRICE", ErrorCategory.VALIDATION, 400)

    # Derived from a real provider response
    INVALID_REQUEST = ("INVALID_REQUEST", ErrorCategory.PROVIDER, 400)
    UNPROCESSABLE = ("UNPROCESSABLE", ErrorCategory.PROVIDER, 422)
    ALREADY_CAPTURED = ("ALREADY_CAPTURED", ErrorCategory.PROVIDER, 422)
    NOT_APPROVED = ("NOT_APPROVED", ErrorCategory.PROVIDER, 422)
    ORDER_NOT_FOUND = ("ORDER_NOT_FOUND", ErrorCategory.PROVIDER, 404)
    UPSTREAM_UNAVAILABLE = ("UPSTREAM_UNAVAILABLE", ErrorCategory.PROVIDER, 502)
    UPSTREAM_ERROR = ("UPSTREAM_ERROR", ErrorCategory.PROVIDER, 502)

    # Infrastructure
    AUTH_ERROR = ("AUTH_ERROR", ErrorCategory.INFRASTRUCTURE, 500)
    TIMEOUT = ("TIMEOUT", ErrorCategory.INFRASTRUCTURE, 504)
    MALFORMED_EVENT = ("MALFORMED_EVENT", ErrorCategory.INFRASTRUCTURE, 400)

    SIGNATURE_INVALID = ("SIGNATURE_INVALID", ErrorCategory.SIGNATURE, 400)

    def __init__(self, code: str, category: ErrorCategory, http_status: int):
        self.code = code
        self.category = category
        self.http_status = http_status


class PaymentError(Exception):
    """Base exception for every orchestration failure."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        debug_id: Optional[str] = None,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        """
        Initialize payment error.

        Args:
            kind: Internal error kind
            message: Human readable message
            debug_id: Opaque provider identifier for support escalation
            details: Raw provider detail list, for diagnostics only
        """
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.debug_id = debug_id
        self.details = details

    @property
    def http_status(self) -> int:
        return self.kind.http_status

    def to_response(self, include_details: bool = False) -> Dict[str, Any]:
        """
        Render the error as a response body.

        Args:
            include_details: Attach the raw provider detail list

        Returns:
            Dict[str, Any]: JSON-serializable error body
        """
        body: Dict[str, Any] = {"error": self.message, "code": self.kind.code}
        if self.debug_id:
            body["debug_id"] = self.debug_id
        if include_details and self.details:
            body["details"] = self.details
        return body

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.code}, message={self.message!r})"


class PaymentValidationError(PaymentError):
    """Raised when client input fails local validation."""

    pass


class ProviderError(PaymentError):
    """Raised when a provider rejects or fails a request."""

    pass


class InfrastructureError(PaymentError):
    """Raised on authentication failures, timeouts and unreadable events."""

    pass


class SignatureVerificationError(PaymentError):
    """Raised when a webhook signature cannot be verified."""

    def __init__(self, reason: str):
        # The reason is kept for logs only, never sent to the caller
        super().__init__(ErrorKind.SIGNATURE_INVALID, "Webhook verification failed")
        self.reason = reason
