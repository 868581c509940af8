"""
Unit tests for hosted checkout session creation.
"""
from decimal import Decimal
from typing import Any

import pytest

from payment_orchestrator.core.checkout import (
    CheckoutOptions,
    CheckoutOrchestrator,
    parse_product_id,
)
from payment_orchestrator.core.collaborators import StaticExchangeRate
from payment_orchestrator.core.errors import (
    ErrorKind,
    InfrastructureError,
    PaymentValidationError,
    ProviderError,
)


class TestCreateSession:
    """Test suite for CheckoutOrchestrator.create_session."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_create_session_usd(self, checkout_orchestrator, checkout_provider) -> None:
        """Test a USD session is priced from the catalog."""
        session = await checkout_orchestrator.create_session(
            [{"id": 1001, "amount": 2}, {"id": "1002", "amount": 1}], "USD"
        )

        assert session.id == "cs_test_1"
        assert session.url == "https://checkout.stripe.com/c/pay/cs_test_1"

        [params] = checkout_provider.sessions
        assert params["mode"] == "payment"
        assert params["payment_method_types"] == ["card"]
        assert params["line_items"] == [
            {
                "price_data": {
                    "currency": "usd",
                    "product_data": {"name": "Silver Necklace"},
                    "unit_amount": 7500,
                },
                "quantity": 2,
            },
            {
                "price_data": {
                    "currency": "usd",
                    "product_data": {"name": "Gold Ring"},
                    "unit_amount": 12050,
                },
                "quantity": 1,
            },
        ]
        assert params["metadata"] == {"product_ids": "1001,1002", "quantities": "2,1"}
        assert params["success_url"] == "https://shop.example.com/index.html"
        assert params["cancel_url"] == "https://shop.example.com/html/cart.html"
        assert params["shipping_address_collection"] == {"allowed_countries": ["US", "IL"]}

        standard, expedited = params["shipping_options"]
        assert standard["shipping_rate_data"]["fixed_amount"] == {"amount": 1500, "currency": "usd"}
        assert expedited["shipping_rate_data"]["display_name"] == "Expedited Shipping"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_client_prices_ignored(self, checkout_orchestrator, checkout_provider) -> None:
        """Test a client supplied price never reaches the session."""
        await checkout_orchestrator.create_session([{"id": 1001, "amount": 1, "price": 1}], "USD")

        [params] = checkout_provider.sessions
        assert params["line_items"][0]["price_data"]["unit_amount"] == 7500

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("currency", ["ILS", "₪", "nis"])
    async def test_create_session_ils(
        self, checkout_orchestrator, checkout_provider, currency: str
    ) -> None:
        """Test ILS sessions use the ILS price or convert the USD price."""
        await checkout_orchestrator.create_session(
            [{"id": 1001, "amount": 1}, {"id": 1002, "amount": 1}], currency
        )

        [params] = checkout_provider.sessions
        amounts = [item["price_data"]["unit_amount"] for item in params["line_items"]]
        # 1001 has its own ILS price; 1002 is 120.50 USD at 3.7, rounded to whole shekels
        assert amounts == [28000, 44600]
        assert {item["price_data"]["currency"] for item in params["line_items"]} == {"ils"}

        fixed = [o["shipping_rate_data"]["fixed_amount"] for o in params["shipping_options"]]
        assert fixed == [{"amount": 5600, "currency": "ils"}, {"amount": 7400, "currency": "ils"}]

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("items", [None, [], "1001", {"id": 1001}])
    async def test_missing_items(
        self, checkout_orchestrator, checkout_provider, items: Any
    ) -> None:
        """Test requests without an item list are rejected."""
        with pytest.raises(PaymentValidationError) as exc_info:
            await checkout_orchestrator.create_session(items, "USD")

        assert exc_info.value.kind is ErrorKind.MISSING_ITEMS
        assert checkout_provider.sessions == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("currency", ["EUR", "", 5])
    async def test_unsupported_currency(self, checkout_orchestrator, currency: Any) -> None:
        """Test only USD and ILS are accepted."""
        with pytest.raises(PaymentValidationError) as exc_info:
            await checkout_orchestrator.create_session([{"id": 1001, "amount": 1}], currency)

        assert exc_info.value.kind is ErrorKind.INVALID_CURRENCY

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_currency_defaults_to_usd(self, checkout_orchestrator, checkout_provider) -> None:
        """Test a missing currency means USD."""
        await checkout_orchestrator.create_session([{"id": 1001, "amount": 1}], None)

        assert checkout_provider.sessions[0]["line_items"][0]["price_data"]["currency"] == "usd"

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "product_id,kind,message",
        [
            (1012, ErrorKind.INVALID_PRICE, "Invalid price"),
            (1013, ErrorKind.INVALID_PRICE, "Invalid price"),
            (1014, ErrorKind.INVALID_PRICE, "Invalid price"),
            (1015, ErrorKind.INVALID_PRICE, "Invalid price"),
            (1016, ErrorKind.INVALID_PRICE, "Invalid price"),
            (1006, ErrorKind.OUT_OF_STOCK, "Product is out of stock"),
            (9999, ErrorKind.PRODUCT_NOT_FOUND, "Product not found"),
        ],
    )
    async def test_catalog_rejections(
        self,
        checkout_orchestrator,
        checkout_provider,
        product_id: int,
        kind: ErrorKind,
        message: str,
    ) -> None:
        """Test broken catalog data stops session creation."""
        with pytest.raises(PaymentValidationError, match=message) as exc_info:
            await checkout_orchestrator.create_session([{"id": product_id, "amount": 1}], "USD")

        assert exc_info.value.kind is kind
        assert checkout_provider.sessions == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_not_found_status(self, checkout_orchestrator) -> None:
        """Test an unknown product maps to 404."""
        with pytest.raises(PaymentValidationError) as exc_info:
            await checkout_orchestrator.create_session([{"id": 9999, "amount": 1}], "USD")

        assert exc_info.value.http_status == 404

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_corrupted_usd_price_in_ils(
        self, checkout_orchestrator, checkout_provider
    ) -> None:
        """Test an absurd USD price converted to ILS is INVALID_PRICE, not an error."""
        with pytest.raises(PaymentValidationError, match="Invalid price") as exc_info:
            await checkout_orchestrator.create_session([{"id": 1016, "amount": 1}], "ILS")

        assert exc_info.value.kind is ErrorKind.INVALID_PRICE
        assert checkout_provider.sessions == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("item", [{"id": "abc"}, {"id": -1}, {"id": None}, "1001"])
    async def test_invalid_product_id(self, checkout_orchestrator, item: Any) -> None:
        """Test malformed product ids are rejected."""
        with pytest.raises(PaymentValidationError, match="Invalid product id") as exc_info:
            await checkout_orchestrator.create_session([item], "USD")

        assert exc_info.value.kind is ErrorKind.INVALID_PRODUCT_ID

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -2, "two", 1.5, True, "\u00b2"])
    async def test_invalid_quantity(self, checkout_orchestrator, amount: Any) -> None:
        """Test item quantities must be positive integers."""
        with pytest.raises(PaymentValidationError) as exc_info:
            await checkout_orchestrator.create_session([{"id": 1001, "amount": amount}], "USD")

        assert exc_info.value.kind is ErrorKind.INVALID_QUANTITY

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_upstream_error_propagates(
        self, checkout_orchestrator, checkout_provider
    ) -> None:
        """Test provider failures surface with the provider message."""
        checkout_provider.error = ProviderError(
            ErrorKind.UPSTREAM_ERROR, "No such price", debug_id="req_123"
        )

        with pytest.raises(ProviderError) as exc_info:
            await checkout_orchestrator.create_session([{"id": 1001, "amount": 1}], "USD")

        assert exc_info.value.kind is ErrorKind.UPSTREAM_ERROR
        assert exc_info.value.message == "No such price"
        assert exc_info.value.debug_id == "req_123"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout(self, checkout_provider, catalog) -> None:
        """Test a slow provider is cut off with TIMEOUT."""
        checkout_provider.delay = 1.0
        orchestrator = CheckoutOrchestrator(
            provider=checkout_provider,
            catalog=catalog,
            rates=StaticExchangeRate(Decimal("3.7")),
            options=CheckoutOptions(success_url="https://s", cancel_url="https://c"),
            request_timeout=0.05,
        )

        with pytest.raises(InfrastructureError) as exc_info:
            await orchestrator.create_session([{"id": 1001, "amount": 1}], "USD")

        assert exc_info.value.kind is ErrorKind.TIMEOUT

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_shipping_options_configured(self, checkout_provider, catalog) -> None:
        """Test sessions omit shipping options when none are configured."""
        orchestrator = CheckoutOrchestrator(
            provider=checkout_provider,
            catalog=catalog,
            rates=StaticExchangeRate(Decimal("3.7")),
            options=CheckoutOptions(
                success_url="https://s", cancel_url="https://c", shipping_countries=()
            ),
            request_timeout=1.0,
        )

        await orchestrator.create_session([{"id": 1001, "amount": 1}], "USD")

        [params] = checkout_provider.sessions
        assert "shipping_options" not in params
        assert "shipping_address_collection" not in params


class TestParseProductId:
    """Test suite for parse_product_id."""

    @pytest.mark.unit
    @pytest.mark.parametrize("raw,expected", [(12, 12), ("12", 12), (" 7 ", 7), (3.0, 3)])
    def test_valid_ids(self, raw: Any, expected: int) -> None:
        """Test integer-like ids are accepted."""
        assert parse_product_id(raw) == expected

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", [0, -3, "1.5", 2.5, True, None, "", [1], "\u00b2", "1\u00b2"])
    def test_invalid_ids(self, raw: Any) -> None:
        """Test anything but a positive integer is rejected."""
        with pytest.raises(PaymentValidationError):
            parse_product_id(raw)
