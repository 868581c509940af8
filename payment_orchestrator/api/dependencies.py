"""
Service wiring.

All long-lived collaborators are built once per application and stored on
``app.state.services``; route handlers fetch them through ``get_services``.
"""
from dataclasses import dataclass, field
from typing import Optional

import httpx
from fastapi import Request

from ..config import Settings
from ..core.checkout import CheckoutOptions, CheckoutOrchestrator, default_shipping_options
from ..core.collaborators import InMemoryCatalog, InventoryFulfillment, StaticExchangeRate
from ..core.orders import OrderOrchestrator
from ..integrations.paypal_client import PayPalClient, ProviderAuthCache
from ..integrations.stripe_client import StripeCheckoutClient
from ..integrations.webhook_handler import WebhookHandler
from ..monitoring.health import HealthCheck


@dataclass
class PaymentServices:
    """Everything the routes need, built once at startup."""

    orders: OrderOrchestrator
    checkout: CheckoutOrchestrator
    webhooks: WebhookHandler
    health: HealthCheck
    http_client: Optional[httpx.AsyncClient] = field(default=None)

    async def close(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()


def build_services(
    settings: Settings,
    catalog: Optional[InMemoryCatalog] = None,
) -> PaymentServices:
    """
    Build the default service graph from settings.

    Args:
        settings: Application settings
        catalog: Product catalog; an empty in-memory catalog if omitted
    """
    http_client = httpx.AsyncClient(timeout=settings.provider_request_timeout)
    catalog = catalog or InMemoryCatalog()

    auth_cache = ProviderAuthCache(
        http_client,
        base_url=settings.paypal_base_url,
        client_id=settings.paypal_client_id,
        client_secret=settings.paypal_client_secret,
        timeout=settings.token_request_timeout,
        expiry_margin=settings.token_expiry_margin_seconds,
    )
    paypal = PayPalClient(
        http_client,
        base_url=settings.paypal_base_url,
        return_url=f"{settings.api_url}/complete-order",
        cancel_url=f"{settings.storefront_url}/html/cart.html",
        brand_name=settings.paypal_brand_name,
        timeout=settings.provider_request_timeout,
    )
    orders = OrderOrchestrator(
        provider=paypal,
        auth=auth_cache,
        request_timeout=settings.provider_request_timeout,
    )

    checkout = CheckoutOrchestrator(
        provider=StripeCheckoutClient(
            settings.stripe_secret_key, timeout=settings.provider_request_timeout
        ),
        catalog=catalog,
        rates=StaticExchangeRate(settings.usd_ils_rate),
        options=CheckoutOptions(
            success_url=f"{settings.storefront_url}/index.html",
            cancel_url=f"{settings.storefront_url}/html/cart.html",
            price_ceiling=settings.price_ceiling,
            shipping_countries=tuple(settings.get_shipping_countries_list()),
            shipping_options=default_shipping_options(
                settings.standard_shipping_cents, settings.expedited_shipping_cents
            ),
        ),
        request_timeout=settings.provider_request_timeout,
    )

    webhooks = WebhookHandler(
        secret=settings.stripe_webhook_secret,
        tolerance=settings.webhook_tolerance_seconds,
        fulfillment=InventoryFulfillment(catalog),
    )

    return PaymentServices(
        orders=orders,
        checkout=checkout,
        webhooks=webhooks,
        health=HealthCheck(settings, auth_cache),
        http_client=http_client,
    )


def get_services(request: Request) -> PaymentServices:
    return request.app.state.services
