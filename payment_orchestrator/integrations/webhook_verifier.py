"""
Webhook signature verification.

The signature header has the form ``t=<unix ts>,v1=<hex digest>[,v1=...][,v0=...]``.
Digests are checked by the Stripe SDK (``stripe.WebhookSignature``); any ``v1``
digest may match. The timestamp must lie within the tolerance window on either
side of now. The payload is parsed only after the signature checks out.
"""
import json
import time
from typing import Any, Dict, Optional

import stripe
import structlog
from pydantic import BaseModel, ConfigDict, Field

from ..core.errors import ErrorKind, InfrastructureError, SignatureVerificationError

logger = structlog.get_logger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300
CHECKOUT_COMPLETED = "checkout.session.completed"


class WebhookEvent(BaseModel):
    """Verified provider notification."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    type: Optional[str] = None
    created: Optional[int] = None
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_checkout_completed(self) -> bool:
        return self.type == CHECKOUT_COMPLETED

    @property
    def data_object(self) -> Dict[str, Any]:
        obj = self.data.get("object")
        return obj if isinstance(obj, dict) else {}


def signature_timestamp(header: str) -> int:
    """
    Timestamp (``t=``) carried by a signature header.

    Raises:
        SignatureVerificationError: If the header has no integer timestamp
    """
    for part in header.split(","):
        key, _, value = part.partition("=")
        if key == "t":
            try:
                return int(value)
            except ValueError:
                break
    raise SignatureVerificationError("header has no valid timestamp")


def verify_signature(
    payload: bytes,
    header: Optional[str],
    secret: str,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
    now: Optional[float] = None,
) -> None:
    """
    Check a webhook signature without parsing the payload.

    Args:
        payload: Raw request body, exactly as received
        header: Signature header value
        secret: Endpoint signing secret
        tolerance: Accepted distance between header timestamp and now (seconds)
        now: Current unix time, defaults to the system clock

    Raises:
        SignatureVerificationError: On any verification failure
    """
    if not header:
        raise SignatureVerificationError("missing signature header")
    if not payload:
        raise SignatureVerificationError("empty payload")
    if not secret:
        raise SignatureVerificationError("no signing secret configured")
    # Digests are compared as str, which only supports ASCII
    if not header.isascii():
        raise SignatureVerificationError("header is not ASCII")

    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError:
        raise SignatureVerificationError("payload is not UTF-8")

    try:
        # Tolerance is applied below so it can be checked against ``now``
        stripe.WebhookSignature.verify_header(text, header, secret, tolerance=None)
    except stripe.SignatureVerificationError as e:
        raise SignatureVerificationError(str(e))

    current = time.time() if now is None else now
    if abs(current - signature_timestamp(header)) > tolerance:
        raise SignatureVerificationError("timestamp outside tolerance")


def construct_event(
    payload: bytes,
    header: Optional[str],
    secret: str,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
    now: Optional[float] = None,
) -> WebhookEvent:
    """
    Verify a webhook delivery and parse it into an event.

    Raises:
        SignatureVerificationError: If the signature does not verify
        InfrastructureError: MALFORMED_EVENT if a verified payload is not an event
    """
    verify_signature(payload, header, secret, tolerance=tolerance, now=now)

    try:
        data = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        raise InfrastructureError(ErrorKind.MALFORMED_EVENT, "Webhook payload is not valid JSON")
    if not isinstance(data, dict):
        raise InfrastructureError(ErrorKind.MALFORMED_EVENT, "Webhook payload is not an object")

    try:
        return WebhookEvent.model_validate(data)
    except ValueError:
        raise InfrastructureError(ErrorKind.MALFORMED_EVENT, "Webhook payload is not an event")
