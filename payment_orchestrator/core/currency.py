"""
Currency normalization and conversion helpers.

The storefront prices in USD and ILS. Conversions round to whole units
(half up), matching how catalog prices are displayed.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Any, Optional

USD = "USD"
ILS = "ILS"

SUPPORTED_CURRENCIES = (USD, ILS)

CENTS = Decimal("0.01")
WHOLE = Decimal("1")

_ALIASES = {
    "$": USD,
    "USD": USD,
    "₪": ILS,
    "ILS": ILS,
    "NIS": ILS,
}


def normalize_currency(value: Any) -> Optional[str]:
    """Map a currency symbol or code to its ISO code, or None if unsupported."""
    if not isinstance(value, str):
        return None
    return _ALIASES.get(value.strip().upper())


def to_decimal(value: Any) -> Optional[Decimal]:
    """Coerce a catalog number to a finite Decimal, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        return None
    return result if result.is_finite() else None


def quantize_amount(amount: Decimal, exponent: Decimal = CENTS) -> Decimal:
    """
    Round half up to ``exponent``.

    Precision is widened for the call, so amounts past the default 28 digits
    are still rounded instead of raising InvalidOperation.
    """
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, amount.adjusted() - exponent.as_tuple().exponent + 2)
        return amount.quantize(exponent, rounding=ROUND_HALF_UP)


def usd_to_ils(amount: Decimal, rate: Decimal) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, amount.adjusted() + rate.adjusted() + 4)
        return quantize_amount(amount * rate, WHOLE)


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount to cents/agorot."""
    return int(quantize_amount(amount.scaleb(2), WHOLE))
