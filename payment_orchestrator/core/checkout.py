"""
Hosted checkout session creation for the Stripe-style provider.

Client supplied prices are never trusted: each item is resolved against the
catalog and priced in the requested currency before a session is created.
"""
import asyncio
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

import structlog

from ..monitoring.metrics import metrics
from .collaborators import CatalogProduct, ExchangeRateSource, ProductCatalog
from .currency import ILS, USD, normalize_currency, to_decimal, to_minor_units, usd_to_ils
from .errors import ErrorKind, InfrastructureError, PaymentError, PaymentValidationError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CheckoutSession:
    """Provider-managed payment page."""

    id: str
    url: Optional[str]
    status: Optional[str] = None


class CheckoutProvider(Protocol):
    """Narrow interface onto the hosted checkout provider."""

    async def create_session(self, params: Dict[str, Any]) -> CheckoutSession:
        ...


@dataclass(frozen=True)
class ShippingOption:
    display_name: str
    amount_usd_cents: int
    delivery_unit: str
    delivery_min: int
    delivery_max: int


@dataclass(frozen=True)
class CheckoutOptions:
    """Static session settings taken from configuration."""

    success_url: str
    cancel_url: str
    price_ceiling: Decimal = Decimal("1000000")
    shipping_countries: Tuple[str, ...] = ("US", "IL")
    shipping_options: Tuple[ShippingOption, ...] = field(default_factory=tuple)


def default_shipping_options(
    standard_cents: int, expedited_cents: int
) -> Tuple[ShippingOption, ...]:
    return (
        ShippingOption("Standard Shipping", standard_cents, "week", 2, 4),
        ShippingOption("Expedited Shipping", expedited_cents, "business_day", 10, 12),
    )


@dataclass(frozen=True)
class PricedItem:
    product: CatalogProduct
    unit_amount: Decimal
    quantity: int


def parse_product_id(raw: Any) -> int:
    """
    Parse a client supplied product id.

    Raises:
        PaymentValidationError: If the id is not a positive integer
    """
    product_id: Optional[int] = None
    if isinstance(raw, int) and not isinstance(raw, bool):
        product_id = raw
    elif isinstance(raw, float) and raw.is_integer():
        product_id = int(raw)
    elif isinstance(raw, str) and raw.strip().isdecimal():
        product_id = int(raw.strip())

    if product_id is None or product_id <= 0:
        raise PaymentValidationError(ErrorKind.INVALID_PRODUCT_ID, "Invalid product id")
    return product_id


def _parse_item_quantity(item: Mapping[str, Any]) -> int:
    raw = item.get("amount", item.get("quantity", 1))
    if isinstance(raw, bool):
        raw = None
    if isinstance(raw, str) and raw.strip().isdecimal():
        raw = int(raw.strip())
    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)
    if not isinstance(raw, int) or raw <= 0:
        raise PaymentValidationError(ErrorKind.INVALID_QUANTITY, "Invalid item quantity")
    return raw


class CheckoutOrchestrator:
    """Validates items against the catalog and opens hosted checkout sessions."""

    def __init__(
        self,
        provider: CheckoutProvider,
        catalog: ProductCatalog,
        rates: ExchangeRateSource,
        options: CheckoutOptions,
        request_timeout: float,
    ):
        self.provider = provider
        self.catalog = catalog
        self.rates = rates
        self.options = options
        self.request_timeout = request_timeout

    async def _usd_ils_rate(self) -> Decimal:
        rate = to_decimal(await self.rates.get_usd_ils_rate())
        if rate is None or rate <= 0:
            logger.error("checkout_invalid_exchange_rate", rate=str(rate))
            raise PaymentValidationError(ErrorKind.INVALID_PRICE, "Exchange rate unavailable")
        return rate

    async def resolve_unit_price(self, product: CatalogProduct, currency: str) -> Decimal:
        """
        Price a catalog product in the requested currency.

        ILS uses the catalog's own ILS price when present, otherwise the USD
        price converted at the current rate.

        Raises:
            PaymentValidationError: INVALID_PRICE if the price is missing,
                non-positive or above the configured ceiling
        """
        price: Optional[Decimal]
        if currency == ILS:
            price = to_decimal(product.ils_price)
            if price is None:
                usd_price = to_decimal(product.usd_price)
                price = usd_to_ils(usd_price, await self._usd_ils_rate()) if usd_price else None
        else:
            price = to_decimal(product.usd_price)

        if price is None or price <= 0 or price > self.options.price_ceiling:
            logger.error(
                "checkout_invalid_catalog_price",
                product_id=product.id,
                currency=currency,
                price=str(price),
            )
            raise PaymentValidationError(
                ErrorKind.INVALID_PRICE, f"Invalid price for product {product.id}"
            )
        return price

    async def _price_items(self, items: Sequence[Any], currency: str) -> List[PricedItem]:
        priced: List[PricedItem] = []
        for item in items:
            if not isinstance(item, Mapping):
                raise PaymentValidationError(ErrorKind.INVALID_PRODUCT_ID, "Invalid product id")
            product_id = parse_product_id(item.get("id"))
            quantity = _parse_item_quantity(item)

            product = await self.catalog.get_product(product_id)
            if product is None:
                raise PaymentValidationError(ErrorKind.PRODUCT_NOT_FOUND, "Product not found")
            if product.quantity <= 0:
                raise PaymentValidationError(ErrorKind.OUT_OF_STOCK, "Product is out of stock")

            unit_amount = await self.resolve_unit_price(product, currency)
            priced.append(PricedItem(product=product, unit_amount=unit_amount, quantity=quantity))
        return priced

    async def _shipping_options(self, currency: str) -> List[Dict[str, Any]]:
        rate = None
        if currency == ILS and self.options.shipping_options:
            rate = await self._usd_ils_rate()
        options = []
        for option in self.options.shipping_options:
            amount = option.amount_usd_cents
            if rate is not None:
                amount = to_minor_units(usd_to_ils(Decimal(amount) / 100, rate))
            options.append(
                {
                    "shipping_rate_data": {
                        "type": "fixed_amount",
                        "fixed_amount": {"amount": amount, "currency": currency.lower()},
                        "display_name": option.display_name,
                        "delivery_estimate": {
                            "minimum": {"unit": option.delivery_unit, "value": option.delivery_min},
                            "maximum": {"unit": option.delivery_unit, "value": option.delivery_max},
                        },
                    }
                }
            )
        return options

    async def build_session_params(
        self, priced: Sequence[PricedItem], currency: str
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "payment_method_types": ["card"],
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": currency.lower(),
                        "product_data": {"name": item.product.name},
                        "unit_amount": to_minor_units(item.unit_amount),
                    },
                    "quantity": item.quantity,
                }
                for item in priced
            ],
            "success_url": self.options.success_url,
            "cancel_url": self.options.cancel_url,
            "metadata": {
                "product_ids": ",".join(str(item.product.id) for item in priced),
                "quantities": ",".join(str(item.quantity) for item in priced),
            },
        }
        if self.options.shipping_countries:
            params["shipping_address_collection"] = {
                "allowed_countries": list(self.options.shipping_countries)
            }
        shipping = await self._shipping_options(currency)
        if shipping:
            params["shipping_options"] = shipping
        return params

    async def create_session(self, items: Any, currency: Any) -> CheckoutSession:
        """
        Create a hosted checkout session.

        Args:
            items: Raw items ``[{"id", "amount"}]`` from the storefront
            currency: Requested currency code or symbol

        Returns:
            CheckoutSession: Session id and redirect URL

        Raises:
            PaymentValidationError: MISSING_ITEMS, INVALID_PRODUCT_ID,
                PRODUCT_NOT_FOUND, OUT_OF_STOCK, INVALID_PRICE, ...
            ProviderError: UPSTREAM_ERROR with the provider message
            InfrastructureError: TIMEOUT
        """
        if not isinstance(items, list) or not items:
            raise PaymentValidationError(ErrorKind.MISSING_ITEMS, "No items provided")

        iso_currency = normalize_currency(currency if currency is not None else USD)
        if iso_currency is None:
            raise PaymentValidationError(
                ErrorKind.INVALID_CURRENCY, f"Unsupported currency: {currency}"
            )

        priced = await self._price_items(items, iso_currency)
        params = await self.build_session_params(priced, iso_currency)

        logger.info(
            "creating_checkout_session",
            currency=iso_currency,
            product_ids=params["metadata"]["product_ids"],
        )

        start_time = time.time()
        try:
            session = await asyncio.wait_for(
                self.provider.create_session(params), timeout=self.request_timeout
            )
        except asyncio.TimeoutError:
            metrics.record_provider_call(
                "stripe", "create_session", "timeout", time.time() - start_time
            )
            logger.error("checkout_provider_timeout", timeout_seconds=self.request_timeout)
            raise InfrastructureError(ErrorKind.TIMEOUT, "Payment provider timed out")
        except PaymentError as e:
            metrics.record_provider_call(
                "stripe", "create_session", e.kind.code.lower(), time.time() - start_time
            )
            logger.error("checkout_session_failed", error_kind=e.kind.code, error=e.message)
            raise

        metrics.record_provider_call(
            "stripe", "create_session", "success", time.time() - start_time
        )
        metrics.record_checkout_session(iso_currency)
        logger.info("checkout_session_created", session_id=session.id)
        return session
