"""
Late-checkout calculator
"""
from datetime import datetime, timedelta
from decimal import Decimal

from innkeeper.services.late_checkout import calculate_late_checkout

EXPECTED = datetime(2026, 3, 1, 12, 0)


class TestCalculateLateCheckout:

    def test_on_time(self):
        quote = calculate_late_checkout(EXPECTED, EXPECTED, Decimal("20"))
        assert quote.is_late is False
        assert quote.hours_late == 0
        assert quote.charge == Decimal("0.00")

    def test_early(self):
        quote = calculate_late_checkout(EXPECTED, EXPECTED - timedelta(hours=2), Decimal("20"))
        assert quote.is_late is False
        assert quote.charge == Decimal("0.00")

    def test_partial_hours_round_up(self):
        quote = calculate_late_checkout(EXPECTED, datetime(2026, 3, 1, 14, 10), Decimal("20"))
        assert quote.is_late is True
        assert quote.hours_late == 3
        assert quote.charge == Decimal("60.00")

    def test_exactly_one_hour(self):
        quote = calculate_late_checkout(EXPECTED, EXPECTED + timedelta(hours=1), Decimal("20"))
        assert quote.hours_late == 1
        assert quote.charge == Decimal("20.00")

    def test_one_second_late_is_one_hour(self):
        quote = calculate_late_checkout(EXPECTED, EXPECTED + timedelta(seconds=1), Decimal("20"))
        assert quote.hours_late == 1
        assert quote.charge == Decimal("20.00")

    def test_no_rate_still_late(self):
        for rate in (None, Decimal("0")):
            quote = calculate_late_checkout(EXPECTED, EXPECTED + timedelta(hours=5), rate)
            assert quote.is_late is True
            assert quote.hours_late == 5
            assert quote.charge == Decimal("0.00")

    def test_charge_never_decreases(self):
        charges = [
            calculate_late_checkout(EXPECTED, EXPECTED + timedelta(minutes=m), Decimal("17.50")).charge
            for m in range(0, 600, 7)
        ]
        assert charges == sorted(charges)

    def test_same_inputs_same_quote(self):
        now = datetime(2026, 3, 1, 18, 30)
        assert calculate_late_checkout(EXPECTED, now, 20) == calculate_late_checkout(EXPECTED, now, 20)
