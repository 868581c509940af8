"""
Maps order-provider error responses onto the internal error taxonomy.
"""
from typing import Any, Dict, List, Mapping, Optional

from .errors import ErrorKind, ProviderError

# 422 issue codes that callers must react to individually
ISSUE_KINDS: Dict[str, ErrorKind] = {
    "ORDER_ALREADY_CAPTURED": ErrorKind.ALREADY_CAPTURED,
    "DUPLICATE_INVOICE_ID": ErrorKind.ALREADY_CAPTURED,
    "ORDER_NOT_APPROVED": ErrorKind.NOT_APPROVED,
    "PAYER_ACTION_REQUIRED": ErrorKind.NOT_APPROVED,
    "ORDER_NOT_FOUND": ErrorKind.ORDER_NOT_FOUND,
    "INVALID_RESOURCE_ID": ErrorKind.ORDER_NOT_FOUND,
}

DEFAULT_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.INVALID_REQUEST: "Request was rejected by the payment provider",
    ErrorKind.UNPROCESSABLE: "The requested action could not be performed",
    ErrorKind.ALREADY_CAPTURED: "Order has already been captured",
    ErrorKind.NOT_APPROVED: "Order has not been approved by the payer",
    ErrorKind.ORDER_NOT_FOUND: "Order not found",
    ErrorKind.UPSTREAM_UNAVAILABLE: "Payment provider is unavailable",
}


def _details(body: Mapping[str, Any]) -> List[Dict[str, Any]]:
    details = body.get("details")
    if not isinstance(details, list):
        return []
    return [d for d in details if isinstance(d, dict)]


def _issue_kind(details: List[Dict[str, Any]]) -> Optional[ErrorKind]:
    for detail in details:
        kind = ISSUE_KINDS.get(str(detail.get("issue", "")).upper())
        if kind is not None:
            return kind
    return None


def map_provider_error(status_code: int, body: Any) -> ProviderError:
    """
    Convert a non-2xx provider response into a ProviderError.

    Args:
        status_code: Provider HTTP status
        body: Decoded provider body (any shape, including None)

    Returns:
        ProviderError: Mapped error preserving the provider debug id
    """
    payload: Mapping[str, Any] = body if isinstance(body, Mapping) else {}
    details = _details(payload)

    if status_code >= 500:
        kind = ErrorKind.UPSTREAM_UNAVAILABLE
    elif status_code == 422:
        kind = _issue_kind(details) or ErrorKind.UNPROCESSABLE
    elif status_code == 404:
        kind = ErrorKind.ORDER_NOT_FOUND
    else:
        kind = ErrorKind.INVALID_REQUEST

    debug_id = payload.get("debug_id")
    message = payload.get("message")
    if not isinstance(message, str) or not message:
        message = DEFAULT_MESSAGES[kind]

    return ProviderError(
        kind,
        message,
        debug_id=str(debug_id) if debug_id else None,
        details=details or None,
    )
