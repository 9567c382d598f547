"""
Tests for LedgerService late-checkout preview, checkout and read side
"""
import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal

from innkeeper.errors import BookingAlreadyProcessed, OutstandingBalance, ValidationFailed
from innkeeper.models.events import EventType
from innkeeper.models.ontology import BookingStatus, Payment, PaymentMethod, RoomStatus
from innkeeper.models.schemas import ChargeItem, CheckInRequest, PaymentCreate

from conftest import NOON

# expected checkout of the `booking` fixture is 2026-03-02 12:00
LATE = datetime(2026, 3, 2, 14, 10)


def _pay(ledger, booking, cashier, amount, method=PaymentMethod.CASH):
    return ledger.record_payment(
        PaymentCreate(booking_id=booking.id, amount=Decimal(amount), payment_method=method),
        cashier.id, now=NOON
    )


class TestPreviewLateCheckout:

    def test_on_time(self, ledger, booking):
        preview = ledger.preview_late_checkout(booking.id, now=NOON + timedelta(hours=5))
        assert preview.is_late is False
        assert preview.late_checkout_charge == Decimal("0.00")
        assert preview.new_total == Decimal("200.00")
        assert preview.committed is False

    def test_late_quote_is_read_only(self, ledger, booking, cashier):
        _pay(ledger, booking, cashier, "200")
        preview = ledger.preview_late_checkout(booking.id, now=LATE)
        assert preview.is_late is True
        assert preview.hours_late == 3
        assert preview.hourly_rate == Decimal("20.00")
        assert preview.late_checkout_charge == Decimal("60.00")
        assert preview.new_total == Decimal("260.00")
        assert preview.new_balance == Decimal("60.00")

        refreshed = ledger.get_booking(booking.id)
        assert refreshed.total_amount == Decimal("200.00")
        assert refreshed.late_checkout_committed is False

    def test_preview_after_checkout_is_frozen(self, ledger, booking, cashier):
        _pay(ledger, booking, cashier, "200")
        ledger.checkout(booking.id, cashier.id, now=LATE, settle_with=PaymentMethod.CASH)
        preview = ledger.preview_late_checkout(booking.id, now=LATE + timedelta(hours=10))
        assert preview.committed is True
        assert preview.hours_late == 3
        assert preview.late_checkout_charge == Decimal("60.00")
        assert preview.new_total == Decimal("260.00")
        assert preview.new_balance == Decimal("0.00")


class TestCheckout:

    def test_paid_and_on_time(self, ledger, db_session, booking, room, cashier, events, notifier):
        _pay(ledger, booking, cashier, "200")
        result = ledger.checkout(booking.id, cashier.id, now=NOON + timedelta(hours=20))

        assert result.final_total == Decimal("200.00")
        assert result.late_checkout_charge == Decimal("0.00")
        assert result.settled_amount == Decimal("0.00")
        assert result.notification_sent is True

        refreshed = ledger.get_booking(booking.id)
        assert refreshed.status == BookingStatus.CHECKED_OUT
        assert refreshed.check_out == NOON + timedelta(hours=20)
        db_session.refresh(room)
        assert room.status == RoomStatus.CLEANING

        kinds = [e.event_type for e in events]
        assert kinds[-2:] == [EventType.GUEST_CHECKED_OUT, EventType.ROOM_STATUS_CHANGED]
        assert notifier.kinds()[-1] == "checkout_completed"

    def test_unpaid_late_fee_blocks_checkout(self, ledger, db_session, booking, room, cashier):
        _pay(ledger, booking, cashier, "200")
        with pytest.raises(OutstandingBalance) as exc_info:
            ledger.checkout(booking.id, cashier.id, now=LATE)
        assert exc_info.value.balance == Decimal("60.00")
        assert "60.00" in exc_info.value.message

        refreshed = ledger.get_booking(booking.id)
        assert refreshed.status == BookingStatus.CHECKED_IN
        assert refreshed.late_checkout_committed is False
        assert refreshed.late_checkout_charge == Decimal("0")
        assert refreshed.total_amount == Decimal("200.00")
        db_session.refresh(room)
        assert room.status == RoomStatus.OCCUPIED

    def test_settle_with_pays_late_fee(self, ledger, db_session, booking, cashier, events):
        _pay(ledger, booking, cashier, "200")
        result = ledger.checkout(booking.id, cashier.id, now=LATE, settle_with=PaymentMethod.CASH)

        assert result.late_checkout_charge == Decimal("60.00")
        assert result.final_total == Decimal("260.00")
        assert result.settled_amount == Decimal("60.00")
        settlement = db_session.query(Payment).filter(Payment.id == result.settlement_payment_id).one()
        assert settlement.payment_date == LATE
        assert settlement.payment_method == PaymentMethod.CASH
        assert events[-1].event_type == EventType.PAYMENT_RECEIVED

        refreshed = ledger.get_booking(booking.id)
        assert refreshed.amount_paid == Decimal("260.00")
        assert refreshed.balance == Decimal("0.00")

    def test_settle_with_needs_cashier(self, ledger, booking):
        with pytest.raises(ValidationFailed):
            ledger.checkout(booking.id, None, now=LATE, settle_with=PaymentMethod.CASH)

    def test_unpaid_base_price(self, ledger, booking, cashier):
        with pytest.raises(OutstandingBalance) as exc_info:
            ledger.checkout(booking.id, cashier.id, now=NOON + timedelta(hours=1))
        assert exc_info.value.balance == Decimal("200.00")

    def test_second_checkout(self, ledger, booking, cashier):
        _pay(ledger, booking, cashier, "200")
        ledger.checkout(booking.id, cashier.id, now=NOON)
        with pytest.raises(BookingAlreadyProcessed):
            ledger.checkout(booking.id, cashier.id, now=NOON)

    def test_customer_stats(self, ledger, db_session, booking, customer, cashier):
        _pay(ledger, booking, cashier, "200")
        ledger.checkout(booking.id, cashier.id, now=LATE, settle_with=PaymentMethod.CARD)
        db_session.refresh(customer)
        assert customer.total_stays == 1
        assert customer.total_spent == Decimal("260.00")
        assert customer.last_stay_date == date(2026, 3, 2)
        assert customer.is_frequent is False

    def test_third_stay_makes_guest_frequent(self, ledger, db_session, room, customer, cashier):
        for day in range(3):
            start = NOON + timedelta(days=day)
            booking = ledger.check_in(CheckInRequest(customer_id=customer.id, room_id=room.id),
                                      cashier.id, now=start)
            ledger.record_payment(PaymentCreate(booking_id=booking.id, amount=Decimal("200"),
                                                payment_method=PaymentMethod.CASH),
                                  cashier.id, now=start)
            ledger.checkout(booking.id, cashier.id, now=start + timedelta(hours=2))
            ledger.rooms.mark_clean(room.id, cashier.id)

        db_session.refresh(customer)
        assert customer.total_stays == 3
        assert customer.total_spent == Decimal("600.00")
        assert customer.is_frequent is True

    def test_admin_message_lists_extras(self, ledger, booking, cashier, notifier):
        ledger.add_charges(booking.id, [
            ChargeItem(description="Extra towel", quantity=2, unit_price=Decimal("5.00"))
        ], cashier.id)
        _pay(ledger, booking, cashier, "210")
        ledger.checkout(booking.id, cashier.id, now=NOON)

        kind, payload = notifier.sent[-1]
        assert kind == "checkout_completed"
        assert payload["customer_name"] == "Ana Rojas"
        assert payload["room_number"] == "101"
        assert "Extra towel (x2): Bs. 10.00" in payload["charges_detail"]

    def test_room_goes_through_cleaning(self, ledger, db_session, booking, room, cashier):
        _pay(ledger, booking, cashier, "200")
        ledger.checkout(booking.id, cashier.id, now=NOON)
        db_session.refresh(room)
        assert room.status == RoomStatus.CLEANING
        ledger.rooms.mark_clean(room.id, cashier.id)
        db_session.refresh(room)
        assert room.status == RoomStatus.AVAILABLE


class TestReadSide:

    def test_booking_detail(self, ledger, booking, cashier):
        _pay(ledger, booking, cashier, "50")
        detail = ledger.get_booking_detail(booking.id)
        assert detail["room_number"] == "101"
        assert detail["customer_name"] == "Ana Rojas"
        assert len(detail["payments"]) == 1
        assert detail["charges"] == []

    def test_active_bookings_carry_live_late_quote(self, ledger, booking, cashier):
        _pay(ledger, booking, cashier, "200")
        [item] = ledger.list_active_bookings(now=LATE)
        assert item["id"] == booking.id
        assert item["is_late"] is True
        assert item["late_checkout_hours"] == 3
        assert item["pending_late_checkout_charge"] == Decimal("60.00")
        assert item["current_balance"] == Decimal("60.00")

    def test_checked_out_bookings_are_not_active(self, ledger, booking, cashier):
        _pay(ledger, booking, cashier, "200")
        ledger.checkout(booking.id, cashier.id, now=NOON)
        assert ledger.list_active_bookings(now=NOON) == []

    def test_search(self, ledger, booking):
        assert [b.id for b in ledger.search_bookings(room_number="101")] == [booking.id]
        assert [b.id for b in ledger.search_bookings(document_number="4455667")] == [booking.id]
        assert ledger.search_bookings(status=BookingStatus.CHECKED_OUT) == []
