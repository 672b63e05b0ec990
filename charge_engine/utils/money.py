"""Monetary precision helpers"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def quantize_amount(amount: Decimal) -> Decimal:
    """Round an amount to 2 decimal places, half-up"""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def percentage_of(amount: Decimal, rate_percent: Decimal) -> Decimal:
    """`rate_percent` percent of `amount`, unrounded"""
    return amount * rate_percent / HUNDRED


def format_inr(amount: Decimal) -> str:
    return f"₹{quantize_amount(amount)}"
