"""
Late-checkout calculator - pure computation, no I/O, no locks

hours_late = ceil((now - expected_checkout) / 1h)
charge     = hours_late * hourly_rate  (0 when no rate is configured)
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from innkeeper.core.money import to_money, ZERO, Amount

ONE_HOUR = timedelta(hours=1)


@dataclass(frozen=True)
class LateCheckoutQuote:
    is_late: bool
    hours_late: int
    hourly_rate: Decimal
    charge: Decimal


def calculate_late_checkout(
    expected_checkout: datetime,
    now: datetime,
    hourly_rate: Optional[Amount],
) -> LateCheckoutQuote:
    """
    Quote the late-checkout surcharge at `now`.

    A room without an hourly rate never produces a fee; the stay is still
    reported as late.
    """
    rate = to_money(hourly_rate)
    if now <= expected_checkout:
        return LateCheckoutQuote(is_late=False, hours_late=0, hourly_rate=rate, charge=ZERO)

    whole_hours, remainder = divmod(now - expected_checkout, ONE_HOUR)
    hours_late = whole_hours + (1 if remainder else 0)
    charge = to_money(rate * hours_late) if rate > 0 else ZERO
    return LateCheckoutQuote(is_late=True, hours_late=hours_late, hourly_rate=rate, charge=charge)
