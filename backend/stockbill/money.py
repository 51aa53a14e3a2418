# Overview: Conversions between stored integer cents and API currency amounts.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def decimal_to_cents(amount: Decimal) -> int:
    """Quantize a currency Decimal to whole cents, halves rounded up."""
    return int((amount.quantize(CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())


def from_cents(cents: int | None) -> float:
    """Integer cents to a currency float for JSON responses."""
    if cents is None:
        return 0.0
    return float(Decimal(int(cents)) / 100)


def round_half_up(value) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
