"""
Pytest configuration and fixtures.

Provider HTTP traffic is served by ``httpx.MockTransport`` handlers, so no
test touches the network.
"""
import asyncio
import hashlib
import hmac
import json
import time
from decimal import Decimal
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio

from payment_orchestrator.api.dependencies import PaymentServices
from payment_orchestrator.api.main import create_app
from payment_orchestrator.config import Settings
from payment_orchestrator.core.checkout import (
    CheckoutOptions,
    CheckoutOrchestrator,
    CheckoutSession,
    default_shipping_options,
)
from payment_orchestrator.core.collaborators import (
    CatalogProduct,
    InMemoryCatalog,
    InventoryFulfillment,
    StaticExchangeRate,
)
from payment_orchestrator.core.orders import OrderOrchestrator
from payment_orchestrator.integrations.paypal_client import PayPalClient, ProviderAuthCache
from payment_orchestrator.integrations.webhook_handler import WebhookHandler
from payment_orchestrator.monitoring.health import HealthCheck

PAYPAL_SANDBOX_URL = "https://api-m.sandbox.paypal.com"
TEST_WEBHOOK_SECRET = "whsec_test_secret_123"


def compute_signature(payload: bytes, timestamp: int, secret: str) -> str:
    """Stripe v1 digest: HMAC-SHA256 of ``"{timestamp}.{payload}"``."""
    signed_payload = str(timestamp).encode("utf-8") + b"." + payload
    return hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


class PayPalSandbox:
    """Stand-in for the PayPal REST API, served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.token_response: Tuple[int, Dict[str, Any]] = (
            200,
            {"access_token": "test-access-token", "token_type": "Bearer", "expires_in": 32400},
        )
        self.create_response: Tuple[int, Dict[str, Any]] = self.order_created("PAYPAL-ORDER-123")
        self.capture_responses: Dict[str, Tuple[int, Dict[str, Any]]] = {}
        self.delays: Dict[str, float] = {}

    @staticmethod
    def order_created(order_id: str, status: str = "CREATED") -> Tuple[int, Dict[str, Any]]:
        return (
            201,
            {
                "id": order_id,
                "status": status,
                "links": [
                    {
                        "rel": "approve",
                        "href": f"https://www.sandbox.paypal.com/checkoutnow?token={order_id}",
                    },
                    {
                        "rel": "capture",
                        "href": f"{PAYPAL_SANDBOX_URL}/v2/checkout/orders/{order_id}/capture",
                    },
                ],
            },
        )

    @staticmethod
    def order_captured(
        order_id: str, capture_id: str = "CAPTURE-123", value: str = "100.00"
    ) -> Tuple[int, Dict[str, Any]]:
        return (
            201,
            {
                "id": order_id,
                "status": "COMPLETED",
                "purchase_units": [
                    {
                        "payments": {
                            "captures": [
                                {
                                    "id": capture_id,
                                    "status": "COMPLETED",
                                    "amount": {"value": value, "currency_code": "USD"},
                                }
                            ]
                        }
                    }
                ],
            },
        )

    def calls_to(self, suffix: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(suffix)]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/v1/oauth2/token":
            await asyncio.sleep(self.delays.get("token", 0))
            status_code, body = self.token_response
        elif path == "/v2/checkout/orders":
            await asyncio.sleep(self.delays.get("create", 0))
            status_code, body = self.create_response
        elif path.endswith("/capture"):
            await asyncio.sleep(self.delays.get("capture", 0))
            order_id = path.split("/")[-2]
            status_code, body = self.capture_responses.get(
                order_id,
                (404, {"name": "RESOURCE_NOT_FOUND", "message": "Not found", "debug_id": "dbg"}),
            )
        else:
            status_code, body = 404, {}

        return httpx.Response(status_code, json=body)


class FakeCheckoutProvider:
    """Records session parameters instead of calling Stripe."""

    def __init__(self) -> None:
        self.sessions: List[Dict[str, Any]] = []
        self.error: Optional[Exception] = None
        self.delay = 0.0

    async def create_session(self, params: Dict[str, Any]) -> CheckoutSession:
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.sessions.append(params)
        session_id = f"cs_test_{len(self.sessions)}"
        return CheckoutSession(
            id=session_id, url=f"https://checkout.stripe.com/c/pay/{session_id}", status="open"
        )


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        paypal_client_id="test-client-id",
        paypal_client_secret="test-client-secret",
        paypal_base_url=PAYPAL_SANDBOX_URL,
        stripe_secret_key="sk_test_fake_key_for_testing",
        stripe_webhook_secret=TEST_WEBHOOK_SECRET,
        storefront_url="https://shop.example.com",
        api_url="https://api.example.com",
        app_name="payment-orchestrator-test",
        app_env="test",
        log_level="DEBUG",
        provider_request_timeout=2.0,
        token_request_timeout=2.0,
    )


@pytest.fixture
def paypal_sandbox() -> PayPalSandbox:
    return PayPalSandbox()


@pytest_asyncio.fixture
async def paypal_http(paypal_sandbox: PayPalSandbox) -> AsyncGenerator[httpx.AsyncClient, Any]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(paypal_sandbox)) as client:
        yield client


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def auth_cache(paypal_http: httpx.AsyncClient, fake_clock: FakeClock) -> ProviderAuthCache:
    return ProviderAuthCache(
        paypal_http,
        base_url=PAYPAL_SANDBOX_URL,
        client_id="test-client-id",
        client_secret="test-client-secret",
        timeout=2.0,
        expiry_margin=60,
        clock=fake_clock,
    )


@pytest.fixture
def paypal_client(paypal_http: httpx.AsyncClient) -> PayPalClient:
    return PayPalClient(
        paypal_http,
        base_url=PAYPAL_SANDBOX_URL,
        return_url="https://api.example.com/complete-order",
        cancel_url="https://shop.example.com/html/cart.html",
        brand_name="Test Jewelry",
        timeout=2.0,
    )


@pytest.fixture
def order_orchestrator(
    paypal_client: PayPalClient, auth_cache: ProviderAuthCache
) -> OrderOrchestrator:
    return OrderOrchestrator(provider=paypal_client, auth=auth_cache, request_timeout=2.0)


@pytest.fixture
def catalog() -> InMemoryCatalog:
    """Catalog with a handful of products, including broken price data."""
    return InMemoryCatalog(
        [
            CatalogProduct(
                id=1001, name="Silver Necklace", quantity=10, usd_price=75, ils_price=280
            ),
            CatalogProduct(id=1002, name="Gold Ring", quantity=3, usd_price="120.50"),
            CatalogProduct(id=1006, name="Out of Stock", quantity=0, usd_price=50),
            CatalogProduct(id=1012, name="Zero Price", quantity=10, usd_price=0),
            CatalogProduct(id=1013, name="Negative Price", quantity=5, usd_price=-10),
            CatalogProduct(id=1014, name="Missing Price", quantity=5, usd_price=None),
            CatalogProduct(id=1015, name="Excessive Price", quantity=5, usd_price=10000000),
            CatalogProduct(id=1016, name="Corrupted Price", quantity=5, usd_price="1e30"),
        ]
    )


@pytest.fixture
def checkout_provider() -> FakeCheckoutProvider:
    return FakeCheckoutProvider()


@pytest.fixture
def checkout_orchestrator(
    checkout_provider: FakeCheckoutProvider, catalog: InMemoryCatalog
) -> CheckoutOrchestrator:
    return CheckoutOrchestrator(
        provider=checkout_provider,
        catalog=catalog,
        rates=StaticExchangeRate(Decimal("3.7")),
        options=CheckoutOptions(
            success_url="https://shop.example.com/index.html",
            cancel_url="https://shop.example.com/html/cart.html",
            price_ceiling=Decimal("1000000"),
            shipping_countries=("US", "IL"),
            shipping_options=default_shipping_options(1500, 2000),
        ),
        request_timeout=2.0,
    )


@pytest.fixture
def webhook_handler(catalog: InMemoryCatalog) -> WebhookHandler:
    return WebhookHandler(
        secret=TEST_WEBHOOK_SECRET,
        tolerance=300,
        fulfillment=InventoryFulfillment(catalog),
    )


@pytest.fixture
def sign_payload() -> Callable[..., str]:
    """Build a ``t=...,v1=...`` header for a payload."""

    def _sign(
        payload: bytes,
        secret: str = TEST_WEBHOOK_SECRET,
        timestamp: Optional[int] = None,
    ) -> str:
        ts = int(time.time()) if timestamp is None else timestamp
        return f"t={ts},v1={compute_signature(payload, ts, secret)}"

    return _sign


@pytest.fixture
def signature_digest() -> Callable[[bytes, int, str], str]:
    """Raw v1 digest, for hand-built signature headers."""
    return compute_signature


@pytest.fixture
def make_event() -> Callable[..., bytes]:
    def _make(event_type: Optional[str] = "checkout.session.completed", **data: Any) -> bytes:
        event: Dict[str, Any] = {
            "id": "evt_test_123",
            "object": "event",
            "data": {"object": data},
            "created": int(time.time()),
        }
        if event_type is not None:
            event["type"] = event_type
        return json.dumps(event).encode("utf-8")

    return _make


@pytest_asyncio.fixture
async def client(
    test_settings: Settings,
    order_orchestrator: OrderOrchestrator,
    checkout_orchestrator: CheckoutOrchestrator,
    webhook_handler: WebhookHandler,
    auth_cache: ProviderAuthCache,
) -> AsyncGenerator[httpx.AsyncClient, Any]:
    """Create test HTTP client against an app wired with sandbox providers."""
    services = PaymentServices(
        orders=order_orchestrator,
        checkout=checkout_orchestrator,
        webhooks=webhook_handler,
        health=HealthCheck(test_settings, auth_cache),
    )
    app = create_app(settings=test_settings, services=services)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def sample_cart() -> List[Dict[str, Any]]:
    return [
        {
            "name": "Ring",
            "unit_amount": {"value": "50.00", "currency_code": "USD"},
            "quantity": "1",
        }
    ]
