"""
Stripe hosted checkout client.

Wraps the async Stripe SDK behind the narrow ``create_session`` interface and
classifies SDK failures into the internal taxonomy. Automatic network retries
are disabled; retry policy belongs to the caller.
"""
from typing import Any, Dict, Optional

import stripe
import structlog

from ..core.checkout import CheckoutSession
from ..core.errors import ErrorKind, InfrastructureError, ProviderError

logger = structlog.get_logger(__name__)


class StripeCheckoutClient:
    """Creates Stripe Checkout sessions."""

    def __init__(
        self,
        api_key: str,
        timeout: float = 20.0,
        client: Optional[stripe.StripeClient] = None,
    ) -> None:
        """
        Initialize Stripe client.

        Args:
            api_key: Stripe secret key
            timeout: Transport timeout for each request (seconds)
            client: Preconfigured SDK client (tests)
        """
        self.client = client or stripe.StripeClient(
            api_key,
            http_client=stripe.HTTPXClient(timeout=timeout),
            max_network_retries=0,
        )
        logger.info(
            "stripe_client_initialized",
            test_mode=api_key.startswith("sk_test_"),
        )

    @staticmethod
    def _handle_stripe_error(error: stripe.StripeError) -> None:
        """
        Classify and re-raise a Stripe SDK error.

        Raises:
            InfrastructureError: AUTH_ERROR for rejected API keys
            ProviderError: UPSTREAM_ERROR carrying the provider message
        """
        message = getattr(error, "user_message", None) or str(error) or "Stripe request failed"
        logger.error(
            "stripe_api_error",
            error_type=type(error).__name__,
            error_code=getattr(error, "code", None),
            request_id=getattr(error, "request_id", None),
            error_message=message,
        )

        if isinstance(error, stripe.AuthenticationError):
            raise InfrastructureError(ErrorKind.AUTH_ERROR, "Stripe authentication failed")

        raise ProviderError(
            ErrorKind.UPSTREAM_ERROR,
            message,
            debug_id=getattr(error, "request_id", None),
        )

    async def create_session(self, params: Dict[str, Any]) -> CheckoutSession:
        """
        Create a hosted checkout session.

        Args:
            params: Checkout session parameters

        Returns:
            CheckoutSession: Session id, redirect URL and status
        """
        try:
            session = await self.client.checkout.sessions.create_async(params=params)
        except stripe.StripeError as e:
            self._handle_stripe_error(e)
            raise  # For type checker

        logger.info("stripe_checkout_session_created", session_id=session.id)
        return CheckoutSession(
            id=session.id,
            url=getattr(session, "url", None),
            status=getattr(session, "status", None),
        )
