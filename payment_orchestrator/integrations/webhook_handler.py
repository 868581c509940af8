"""
Stripe webhook handler with signature verification and event routing.

Implements:
- Signature verification on the raw request body
- Event type routing to registered handlers
- Acknowledgement of every verified delivery, handled or not
"""
import time
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import structlog

from ..core.collaborators import FulfillmentHandler
from ..core.errors import ErrorKind, PaymentError
from ..monitoring.metrics import metrics
from .webhook_verifier import CHECKOUT_COMPLETED, DEFAULT_TOLERANCE_SECONDS, construct_event

logger = structlog.get_logger(__name__)

EventCallback = Callable[[Mapping[str, Any]], Awaitable[Any]]

ACKNOWLEDGEMENT: Dict[str, Any] = {"received": True}


class WebhookHandler:
    """
    Handles Stripe webhook deliveries.

    Unverified deliveries are rejected without side effects; the provider will
    redeliver. Verified deliveries are always acknowledged so that events this
    service ignores do not exhaust the provider's retry budget.
    """

    def __init__(
        self,
        secret: str,
        tolerance: int = DEFAULT_TOLERANCE_SECONDS,
        fulfillment: Optional[FulfillmentHandler] = None,
    ):
        """
        Initialize webhook handler.

        Args:
            secret: Endpoint signing secret
            tolerance: Signature timestamp tolerance (seconds)
            fulfillment: Collaborator notified of completed checkouts
        """
        self.secret = secret
        self.tolerance = tolerance
        self.event_handlers: Dict[str, EventCallback] = {}

        if fulfillment is not None:
            self.register_handler(CHECKOUT_COMPLETED, fulfillment.on_checkout_completed)

        logger.info("webhook_handler_initialized")

    def register_handler(self, event_type: str, handler: EventCallback) -> None:
        """
        Register a handler for a specific event type.

        Args:
            event_type: Stripe event type (e.g., 'checkout.session.completed')
            handler: Async callable receiving the event's data object
        """
        self.event_handlers[event_type] = handler
        logger.info("webhook_handler_registered", event_type=event_type)

    async def handle(
        self, payload: bytes, signature: Optional[str], now: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Verify and dispatch one webhook delivery.

        Args:
            payload: Raw request body as bytes
            signature: Stripe-Signature header value
            now: Current unix time override (tests)

        Returns:
            Dict[str, Any]: ``{"received": True}``

        Raises:
            SignatureVerificationError: If the signature does not verify
            InfrastructureError: MALFORMED_EVENT if the verified body is not an event
        """
        start_time = time.time()
        try:
            event = construct_event(
                payload, signature, self.secret, tolerance=self.tolerance, now=now
            )
        except PaymentError as e:
            reason = "malformed" if e.kind is ErrorKind.MALFORMED_EVENT else "signature"
            metrics.record_webhook_rejected(reason)
            logger.warning(
                "webhook_rejected",
                reason=getattr(e, "reason", e.message),
                error_kind=e.kind.code,
            )
            raise

        event_type = event.type or "unknown"
        logger.info("webhook_signature_verified", event_id=event.id, event_type=event_type)

        handler = self.event_handlers.get(event_type)
        if handler is None:
            logger.info("webhook_event_ignored", event_id=event.id, event_type=event_type)
            metrics.record_webhook_event("other", "ignored", time.time() - start_time)
            return dict(ACKNOWLEDGEMENT)

        try:
            result = await handler(event.data_object)
        except Exception:
            # Acknowledged anyway; the failure is for operators, not the provider
            logger.exception(
                "webhook_event_processing_failed", event_id=event.id, event_type=event_type
            )
            metrics.record_webhook_event(event_type, "failed", time.time() - start_time)
            return dict(ACKNOWLEDGEMENT)

        logger.info(
            "webhook_event_processed_successfully",
            event_id=event.id,
            event_type=event_type,
            result=result,
        )
        metrics.record_webhook_event(event_type, "handled", time.time() - start_time)
        return dict(ACKNOWLEDGEMENT)
