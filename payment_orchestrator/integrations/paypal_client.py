"""
PayPal REST client and access token cache.

Implements:
- OAuth2 client-credentials exchange with a process-wide token cache
- Single-flight refresh (concurrent callers share one in-flight request)
- Order creation and capture over a shared httpx.AsyncClient
"""
import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

import httpx
import structlog

from ..core.cart import ValidatedCart
from ..core.currency import quantize_amount
from ..core.errors import ErrorKind, InfrastructureError, ProviderError
from ..core.orders import ProviderResponse
from ..monitoring.metrics import metrics

logger = structlog.get_logger(__name__)

DEFAULT_TOKEN_LIFETIME_SECONDS = 300


@dataclass(frozen=True)
class AccessToken:
    """Bearer token and the monotonic instant after which it must be refreshed."""

    value: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


class ProviderAuthCache:
    """
    Single-slot cache for the PayPal access token.

    ``get_token`` is the only entry point. The cached token is replaced
    atomically, so readers never see a partial value, and an expired token
    triggers at most one refresh call no matter how many callers are waiting.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        client_id: str,
        client_secret: str,
        timeout: float = 10.0,
        expiry_margin: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize token cache.

        Args:
            http_client: Shared async HTTP client
            base_url: PayPal API base URL
            client_id: REST client id
            client_secret: REST client secret
            timeout: Bound on the credential exchange (seconds)
            expiry_margin: Refresh this many seconds before provider expiry
            clock: Monotonic clock, injectable for tests
        """
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self.expiry_margin = expiry_margin
        self.clock = clock
        self._token: Optional[AccessToken] = None
        self._inflight: Optional["asyncio.Task[AccessToken]"] = None

    def has_valid_token(self) -> bool:
        token = self._token
        return token is not None and token.is_valid(self.clock())

    async def get_token(self) -> str:
        """
        Return a valid access token, refreshing it if needed.

        Raises:
            InfrastructureError: AUTH_ERROR if the credential exchange fails
        """
        token = self._token
        if token is not None and token.is_valid(self.clock()):
            return token.value

        # No await between the check and the assignment, so only one task is created
        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._refresh())
            self._inflight.add_done_callback(self._clear_inflight)

        # Shielded so one cancelled caller does not abort the shared refresh
        token = await asyncio.shield(self._inflight)
        return token.value

    def _clear_inflight(self, task: "asyncio.Task[AccessToken]") -> None:
        if self._inflight is task:
            self._inflight = None
        if not task.cancelled():
            task.exception()

    async def _refresh(self) -> AccessToken:
        if not self.client_id or not self.client_secret:
            metrics.record_token_refresh("missing_credentials")
            logger.error("paypal_credentials_missing")
            raise InfrastructureError(ErrorKind.AUTH_ERROR, "Missing PayPal API credentials")

        logger.info("paypal_token_refresh_started")
        start_time = time.time()
        try:
            response = await self.http_client.post(
                f"{self.base_url}/v1/oauth2/token",
                auth=(self.client_id, self.client_secret),
                data={"grant_type": "client_credentials"},
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except httpx.TimeoutException:
            metrics.record_token_refresh("timeout")
            logger.error("paypal_token_refresh_timeout", timeout_seconds=self.timeout)
            raise InfrastructureError(ErrorKind.AUTH_ERROR, "PayPal authentication timed out")
        except httpx.HTTPError as e:
            metrics.record_token_refresh("network_error")
            logger.error("paypal_token_refresh_network_error", error=str(e))
            raise InfrastructureError(ErrorKind.AUTH_ERROR, "PayPal authentication failed")

        body = _decode_body(response)
        access_token = body.get("access_token") if isinstance(body, dict) else None
        if response.status_code != 200 or not access_token:
            metrics.record_token_refresh("rejected")
            logger.error(
                "paypal_token_refresh_rejected",
                status_code=response.status_code,
                debug_id=body.get("debug_id") if isinstance(body, dict) else None,
            )
            raise InfrastructureError(ErrorKind.AUTH_ERROR, "PayPal authentication failed")

        try:
            lifetime = float(body.get("expires_in", DEFAULT_TOKEN_LIFETIME_SECONDS))
        except (TypeError, ValueError):
            lifetime = DEFAULT_TOKEN_LIFETIME_SECONDS

        token = AccessToken(
            value=str(access_token),
            expires_at=self.clock() + max(lifetime - self.expiry_margin, 0.0),
        )
        self._token = token

        metrics.record_token_refresh("success")
        logger.info(
            "paypal_token_refreshed",
            expires_in=lifetime,
            duration_seconds=time.time() - start_time,
        )
        return token


def _decode_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {"message": response.text} if response.text else {}


def build_order_payload(
    cart: ValidatedCart,
    return_url: str,
    cancel_url: str,
    brand_name: str,
) -> Dict[str, Any]:
    """Build the v2 orders request body for a validated cart."""
    currency = cart.currency_code
    total = str(cart.total)
    return {
        "intent": "CAPTURE",
        "purchase_units": [
            {
                "amount": {
                    "currency_code": currency,
                    "value": total,
                    "breakdown": {
                        "item_total": {"currency_code": currency, "value": total},
                    },
                },
                "items": [
                    {
                        "name": line.display_name,
                        "unit_amount": {
                            "currency_code": currency,
                            "value": str(quantize_amount(line.unit_amount)),
                        },
                        "quantity": str(line.quantity),
                    }
                    for line in cart.lines
                ],
            }
        ],
        "application_context": {
            "return_url": return_url,
            "cancel_url": cancel_url,
            "user_action": "PAY_NOW",
            "brand_name": brand_name,
        },
    }


class PayPalClient:
    """
    PayPal v2 orders API.

    Returns raw status + body; mapping errors to the internal taxonomy is the
    orchestrator's job. Transport timeouts surface as TIMEOUT, other transport
    failures as UPSTREAM_UNAVAILABLE.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        return_url: str,
        cancel_url: str,
        brand_name: str,
        timeout: float = 20.0,
    ):
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.return_url = return_url
        self.cancel_url = cancel_url
        self.brand_name = brand_name
        self.timeout = timeout

    async def _post(
        self, operation: str, url: str, access_token: str, payload: Optional[Dict[str, Any]]
    ) -> ProviderResponse:
        try:
            response = await self.http_client.post(
                url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        except httpx.TimeoutException:
            logger.error("paypal_request_timeout", operation=operation)
            raise InfrastructureError(ErrorKind.TIMEOUT, f"PayPal timed out during {operation}")
        except httpx.HTTPError as e:
            logger.error("paypal_request_network_error", operation=operation, error=str(e))
            raise ProviderError(ErrorKind.UPSTREAM_UNAVAILABLE, "Payment provider is unavailable")

        return ProviderResponse(status_code=response.status_code, body=_decode_body(response))

    async def create_order(self, cart: ValidatedCart, access_token: str) -> ProviderResponse:
        payload = build_order_payload(cart, self.return_url, self.cancel_url, self.brand_name)
        return await self._post(
            "create_order", f"{self.base_url}/v2/checkout/orders", access_token, payload
        )

    async def capture_order(self, order_id: str, access_token: str) -> ProviderResponse:
        url = f"{self.base_url}/v2/checkout/orders/{quote(order_id, safe='')}/capture"
        return await self._post("capture_order", url, access_token, None)
