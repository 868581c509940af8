"""
Cart validation for order/capture checkouts.

Validation is strict about shape and currency homogeneity, but deliberately
leaves amount bounds (zero, negative, very large) to the provider. Fractional
quantities are truncated toward zero, so "1.5" becomes 1.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, List, Mapping, Optional, Sequence, Tuple

import structlog

from .currency import quantize_amount
from .errors import ErrorKind, PaymentValidationError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CartLine:
    """One purchasable cart entry."""

    display_name: str
    unit_amount: Decimal
    currency_code: str
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return self.unit_amount * self.quantity


@dataclass(frozen=True)
class ValidatedCart:
    """A cart that passed local validation; all lines share one currency."""

    lines: Tuple[CartLine, ...]
    currency_code: str

    @property
    def total(self) -> Decimal:
        """Sum of unit amount times quantity, rounded to cents."""
        total = sum((line.line_total for line in self.lines), Decimal("0"))
        return quantize_amount(total)


def _parse_amount(raw: Any, index: int) -> Decimal:
    if isinstance(raw, bool) or raw is None:
        raise PaymentValidationError(
            ErrorKind.INVALID_AMOUNT, f"Cart line {index}: unit amount is missing"
        )
    try:
        amount = Decimal(str(raw).strip())
    except InvalidOperation:
        raise PaymentValidationError(
            ErrorKind.INVALID_AMOUNT, f"Cart line {index}: unit amount is not a number"
        )
    if not amount.is_finite():
        raise PaymentValidationError(
            ErrorKind.INVALID_AMOUNT, f"Cart line {index}: unit amount is not finite"
        )
    return amount


def _parse_quantity(raw: Any, index: int) -> int:
    if isinstance(raw, bool) or raw is None:
        raise PaymentValidationError(
            ErrorKind.INVALID_QUANTITY, f"Cart line {index}: quantity is missing"
        )
    try:
        parsed = Decimal(str(raw).strip())
    except InvalidOperation:
        raise PaymentValidationError(
            ErrorKind.INVALID_QUANTITY, f"Cart line {index}: quantity is not a number"
        )
    if not parsed.is_finite():
        raise PaymentValidationError(
            ErrorKind.INVALID_QUANTITY, f"Cart line {index}: quantity is not finite"
        )
    quantity = int(parsed)  # truncates toward zero
    if quantity <= 0:
        raise PaymentValidationError(
            ErrorKind.INVALID_QUANTITY, f"Cart line {index}: quantity must be positive"
        )
    return quantity


def _parse_currency(raw: Any, index: int) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise PaymentValidationError(
            ErrorKind.INVALID_CURRENCY, f"Cart line {index}: currency code is missing"
        )
    return raw.strip().upper()


def parse_cart_line(raw: Any, index: int = 0) -> CartLine:
    """
    Parse one client supplied line.

    Accepts the storefront wire shape
    ``{"name", "unit_amount": {"value", "currency_code"}, "quantity"}``.

    Raises:
        PaymentValidationError: If the line is malformed
    """
    if not isinstance(raw, Mapping):
        raise PaymentValidationError(
            ErrorKind.MALFORMED_CART, f"Cart line {index} is not an object"
        )

    unit_amount = raw.get("unit_amount")
    if not isinstance(unit_amount, Mapping):
        raise PaymentValidationError(
            ErrorKind.INVALID_AMOUNT, f"Cart line {index}: unit amount is missing"
        )

    name = raw.get("name")
    return CartLine(
        display_name="" if name is None else str(name),
        unit_amount=_parse_amount(unit_amount.get("value"), index),
        currency_code=_parse_currency(unit_amount.get("currency_code"), index),
        quantity=_parse_quantity(raw.get("quantity"), index),
    )


def validate_cart(cart: Optional[Sequence[Any]]) -> ValidatedCart:
    """
    Validate a client cart before any money moves.

    Args:
        cart: Sequence of raw cart lines

    Returns:
        ValidatedCart: Parsed lines sharing one currency

    Raises:
        PaymentValidationError: EMPTY_CART, MALFORMED_CART, INVALID_AMOUNT,
            INVALID_QUANTITY, INVALID_CURRENCY or MIXED_CURRENCY_CART
    """
    if cart is None:
        raise PaymentValidationError(ErrorKind.EMPTY_CART, "Invalid cart data: cart is empty")
    if isinstance(cart, (str, bytes, Mapping)) or not isinstance(cart, Sequence):
        raise PaymentValidationError(
            ErrorKind.MALFORMED_CART, "Invalid cart data: cart must be a list"
        )
    if len(cart) == 0:
        raise PaymentValidationError(ErrorKind.EMPTY_CART, "Invalid cart data: cart is empty")

    lines: List[CartLine] = [parse_cart_line(raw, index) for index, raw in enumerate(cart)]

    currencies = sorted({line.currency_code for line in lines})
    if len(currencies) > 1:
        logger.warning("cart_mixed_currencies", currencies=currencies)
        raise PaymentValidationError(
            ErrorKind.MIXED_CURRENCY_CART,
            f"Invalid cart data: mixed currencies {', '.join(currencies)}",
        )

    return ValidatedCart(lines=tuple(lines), currency_code=currencies[0])
