"""
Order/capture orchestration for the PayPal-style provider.

Flow per order:
1. Validate the cart locally (no network on failure)
2. Obtain an access token from the shared auth cache
3. Create the order under a fixed timeout
4. Later, capture the payer-approved order under the same timeout

Nothing here retries. Order creation is not idempotent at the provider, so a
timed-out create must be checked for existence before the caller retries.
"""
import asyncio
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Awaitable, Dict, List, Mapping, Optional, Protocol, Sequence

import structlog

from ..monitoring.metrics import metrics
from .cart import ValidatedCart, validate_cart
from .currency import to_decimal
from .error_mapping import map_provider_error
from .errors import ErrorKind, InfrastructureError, PaymentError, ProviderError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ProviderResponse:
    """Raw provider reply: HTTP status plus decoded JSON body."""

    status_code: int
    body: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class TokenSource(Protocol):
    async def get_token(self) -> str:
        ...


class OrderProvider(Protocol):
    """Narrow interface onto the order/capture provider."""

    async def create_order(self, cart: ValidatedCart, access_token: str) -> ProviderResponse:
        ...

    async def capture_order(self, order_id: str, access_token: str) -> ProviderResponse:
        ...


@dataclass(frozen=True)
class CreatedOrder:
    id: str
    status: str
    approve_url: Optional[str]
    links: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class CaptureRecord:
    """Proof that funds moved."""

    id: str
    status: str
    amount: Optional[Decimal]
    currency_code: Optional[str]


@dataclass(frozen=True)
class CapturedOrder:
    id: str
    status: str
    captures: List[CaptureRecord]
    purchase_units: List[Dict[str, Any]] = field(default_factory=list)


def _links(body: Mapping[str, Any]) -> List[Dict[str, Any]]:
    links = body.get("links")
    if not isinstance(links, list):
        return []
    return [link for link in links if isinstance(link, dict)]


def _approve_url(links: Sequence[Mapping[str, Any]]) -> Optional[str]:
    for link in links:
        if link.get("rel") in ("approve", "payer-action"):
            href = link.get("href")
            return str(href) if href else None
    return None


def _capture_records(purchase_units: Sequence[Mapping[str, Any]]) -> List[CaptureRecord]:
    records: List[CaptureRecord] = []
    for unit in purchase_units:
        payments = unit.get("payments")
        if not isinstance(payments, dict):
            continue
        captures = payments.get("captures")
        for capture in captures if isinstance(captures, list) else []:
            if not isinstance(capture, dict):
                continue
            amount = capture.get("amount")
            if not isinstance(amount, dict):
                amount = {}
            records.append(
                CaptureRecord(
                    id=str(capture.get("id", "")),
                    status=str(capture.get("status", "")),
                    amount=to_decimal(amount.get("value")),
                    currency_code=amount.get("currency_code"),
                )
            )
    return records


class OrderOrchestrator:
    """
    Creates and captures provider orders.

    Collaborators are injected so the provider client can be swapped out in
    tests; the orchestrator never sees provider wire types beyond the JSON body.
    """

    def __init__(
        self,
        provider: OrderProvider,
        auth: TokenSource,
        request_timeout: float,
    ):
        """
        Initialize order orchestrator.

        Args:
            provider: Order/capture provider client
            auth: Shared access token cache
            request_timeout: Bound on each create/capture call (seconds)
        """
        self.provider = provider
        self.auth = auth
        self.request_timeout = request_timeout

    async def _call(self, operation: str, call: Awaitable[ProviderResponse]) -> ProviderResponse:
        start_time = time.time()
        try:
            # wait_for cancels the underlying request on expiry
            response = await asyncio.wait_for(call, timeout=self.request_timeout)
        except asyncio.TimeoutError:
            metrics.record_provider_call("paypal", operation, "timeout", time.time() - start_time)
            logger.error(
                "order_provider_timeout",
                operation=operation,
                timeout_seconds=self.request_timeout,
            )
            raise InfrastructureError(
                ErrorKind.TIMEOUT, f"Payment provider timed out during {operation}"
            )
        except PaymentError as e:
            metrics.record_provider_call(
                "paypal", operation, e.kind.code.lower(), time.time() - start_time
            )
            raise

        outcome = "success" if response.ok else "error"
        metrics.record_provider_call("paypal", operation, outcome, time.time() - start_time)
        return response

    def _raise_mapped(self, operation: str, response: ProviderResponse) -> None:
        error = map_provider_error(response.status_code, response.body)
        logger.error(
            "order_provider_error",
            operation=operation,
            provider_status=response.status_code,
            error_kind=error.kind.code,
            debug_id=error.debug_id,
        )
        raise error

    async def create(self, cart: Any) -> CreatedOrder:
        """
        Create a pending order from a client cart.

        Args:
            cart: Raw cart lines from the storefront

        Returns:
            CreatedOrder: Provider order id, status and approval link

        Raises:
            PaymentValidationError: If the cart fails local validation
            ProviderError: Mapped provider rejection
            InfrastructureError: AUTH_ERROR or TIMEOUT
        """
        validated = validate_cart(cart)

        logger.info(
            "creating_order",
            line_count=len(validated.lines),
            currency=validated.currency_code,
            total=str(validated.total),
        )

        access_token = await self.auth.get_token()
        response = await self._call(
            "create_order", self.provider.create_order(validated, access_token)
        )
        if not response.ok:
            metrics.record_order("create", "failed")
            self._raise_mapped("create_order", response)

        body = response.body if isinstance(response.body, Mapping) else {}
        order_id = body.get("id")
        if not order_id:
            metrics.record_order("create", "failed")
            raise ProviderError(
                ErrorKind.UPSTREAM_UNAVAILABLE, "Payment provider returned no order id"
            )

        links = _links(body)
        order = CreatedOrder(
            id=str(order_id),
            status=str(body.get("status", "")),
            approve_url=_approve_url(links),
            links=links,
        )

        metrics.record_order("create", "success")
        logger.info("order_created", order_id=order.id, status=order.status)
        return order

    async def capture(self, order_id: str) -> CapturedOrder:
        """
        Capture payment for a payer-approved order.

        Args:
            order_id: Provider order id returned by ``create``

        Returns:
            CapturedOrder: Order status and capture records

        Raises:
            ProviderError: ALREADY_CAPTURED, NOT_APPROVED, ORDER_NOT_FOUND, ...
            InfrastructureError: AUTH_ERROR or TIMEOUT
        """
        logger.info("capturing_order", order_id=order_id)

        access_token = await self.auth.get_token()
        response = await self._call(
            "capture_order", self.provider.capture_order(order_id, access_token)
        )
        if not response.ok:
            metrics.record_order("capture", "failed")
            self._raise_mapped("capture_order", response)

        body = response.body if isinstance(response.body, Mapping) else {}
        purchase_units = [u for u in body.get("purchase_units") or [] if isinstance(u, dict)]
        captured = CapturedOrder(
            id=str(body.get("id", order_id)),
            status=str(body.get("status", "")),
            captures=_capture_records(purchase_units),
            purchase_units=purchase_units,
        )

        metrics.record_order("capture", "success")
        logger.info(
            "order_captured",
            order_id=captured.id,
            status=captured.status,
            capture_ids=[c.id for c in captured.captures],
        )
        return captured
