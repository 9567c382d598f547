"""
Money - fixed two-decimal amounts with deterministic rounding
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

Amount = Union[Decimal, int, float, str, None]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
BALANCE_EPSILON = CENT


def to_money(value: Amount) -> Decimal:
    """Quantize any numeric input to two decimals (half-up). None is zero."""
    if value is None:
        return ZERO
    if isinstance(value, float):
        # go through str so 0.1 stays 0.1
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money_sum(values: Iterable[Amount]) -> Decimal:
    """Sum amounts, quantizing each term"""
    total = ZERO
    for v in values:
        total += to_money(v)
    return total


def percent_of(amount: Amount, percent: Amount) -> Decimal:
    """amount * percent / 100, rounded to the cent"""
    return to_money(Decimal(to_money(amount)) * Decimal(str(percent)) / Decimal("100"))


def format_money(value: Amount, label: str = "Bs.") -> str:
    return f"{label} {to_money(value):.2f}"
