"""Core orchestration logic: validation, error taxonomy and provider flows."""
from .cart import CartLine, ValidatedCart, validate_cart
from .checkout import CheckoutOrchestrator, CheckoutSession
from .error_mapping import map_provider_error
from .errors import (
    ErrorCategory,
    ErrorKind,
    InfrastructureError,
    PaymentError,
    PaymentValidationError,
    ProviderError,
    SignatureVerificationError,
)
from .orders import OrderOrchestrator

__all__ = [
    "CartLine",
    "CheckoutOrchestrator",
    "CheckoutSession",
    "ErrorCategory",
    "ErrorKind",
    "InfrastructureError",
    "OrderOrchestrator",
    "PaymentError",
    "PaymentValidationError",
    "ProviderError",
    "SignatureVerificationError",
    "ValidatedCart",
    "map_provider_error",
    "validate_cart",
]
