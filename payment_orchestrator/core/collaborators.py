"""
Interfaces to the systems this service depends on but does not own.

The product catalog, the exchange-rate source and order fulfillment live
elsewhere; the orchestrators only see these narrow protocols. In-memory
implementations back local development and tests.
"""
import asyncio
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CatalogProduct:
    """Catalog record as supplied by the product service."""

    id: int
    name: str
    quantity: int
    usd_price: Optional[Any] = None
    ils_price: Optional[Any] = None


class ProductCatalog(Protocol):
    """Read access to authoritative product prices and stock."""

    async def get_product(self, product_id: int) -> Optional[CatalogProduct]:
        ...


class ExchangeRateSource(Protocol):
    """Supplies the current USD to ILS rate."""

    async def get_usd_ils_rate(self) -> Decimal:
        ...


class FulfillmentHandler(Protocol):
    """Reacts to a completed hosted checkout."""

    async def on_checkout_completed(self, session: Mapping[str, Any]) -> Dict[str, Any]:
        ...


class InMemoryCatalog:
    """Dictionary backed catalog with stock decrements."""

    def __init__(self, products: Iterable[CatalogProduct] = ()):
        self._products: Dict[int, CatalogProduct] = {p.id: p for p in products}
        self._lock = asyncio.Lock()

    def add(self, product: CatalogProduct) -> None:
        self._products[product.id] = product

    async def get_product(self, product_id: int) -> Optional[CatalogProduct]:
        return self._products.get(product_id)

    async def decrement_quantity(self, product_id: int, amount: int = 1) -> Optional[int]:
        """
        Reduce stock for a product.

        Returns:
            Optional[int]: New quantity, or None if the product is unknown
        """
        async with self._lock:
            product = self._products.get(product_id)
            if product is None:
                return None
            updated = replace(product, quantity=max(product.quantity - amount, 0))
            self._products[product_id] = updated
            return updated.quantity


class StaticExchangeRate:
    """Fixed exchange rate, used when no live rate service is wired in."""

    def __init__(self, rate: Decimal):
        if not rate.is_finite() or rate <= 0:
            raise ValueError(f"Invalid rate value: {rate}")
        self.rate = rate

    async def get_usd_ils_rate(self) -> Decimal:
        return self.rate


def parse_product_metadata(metadata: Mapping[str, Any]) -> List[Tuple[int, int]]:
    """
    Read ``(product_id, quantity)`` pairs from checkout session metadata.

    Metadata written by the checkout orchestrator has the form
    ``{"product_ids": "12,15", "quantities": "1,2"}``. Entries that do not
    parse are skipped.
    """
    ids = str(metadata.get("product_ids") or "").split(",")
    quantities = str(metadata.get("quantities") or "").split(",")
    pairs: List[Tuple[int, int]] = []
    for index, raw_id in enumerate(ids):
        raw_id = raw_id.strip()
        if not raw_id.isdecimal():
            continue
        raw_qty = quantities[index].strip() if index < len(quantities) else "1"
        quantity = int(raw_qty) if raw_qty.isdecimal() else 1
        pairs.append((int(raw_id), quantity))
    return pairs


class InventoryFulfillment:
    """Decrements catalog stock for every product in a completed session."""

    def __init__(self, catalog: InMemoryCatalog):
        self.catalog = catalog

    async def on_checkout_completed(self, session: Mapping[str, Any]) -> Dict[str, Any]:
        metadata = session.get("metadata") or {}
        if not isinstance(metadata, Mapping):
            metadata = {}

        items = parse_product_metadata(metadata)
        if not items:
            logger.warning("fulfillment_no_products", session_id=session.get("id"))
            return {"updated": []}

        updated = []
        for product_id, quantity in items:
            remaining = await self.catalog.decrement_quantity(product_id, quantity)
            if remaining is None:
                logger.warning("fulfillment_product_not_found", product_id=product_id)
                continue
            logger.info(
                "fulfillment_stock_reduced",
                product_id=product_id,
                quantity=quantity,
                remaining=remaining,
            )
            updated.append({"product_id": product_id, "remaining": remaining})

        return {"updated": updated}
