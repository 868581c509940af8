"""External provider integrations."""
from .paypal_client import PayPalClient, ProviderAuthCache
from .stripe_client import StripeCheckoutClient
from .webhook_handler import WebhookHandler
from .webhook_verifier import WebhookEvent, construct_event, verify_signature

__all__ = [
    "PayPalClient",
    "ProviderAuthCache",
    "StripeCheckoutClient",
    "WebhookEvent",
    "WebhookHandler",
    "construct_event",
    "verify_signature",
]
