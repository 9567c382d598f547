"""
Tests for LedgerService check-in and walk-in registration
Covers: pricing per stay kind, room occupation, blacklist gate,
        additional income line, customer reuse, published events
"""
import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from innkeeper.errors import RoomUnavailable, RoomNotFound, CustomerNotFound, CustomerBlocked
from innkeeper.models.events import EventType
from innkeeper.models.ontology import (
    BlacklistEntry, BookingCharge, BookingStatus, ChargeType, Customer, RoomStatus, StayKind
)
from innkeeper.models.schemas import CheckInRequest, GuestRegistration

from conftest import NOON


def _blacklist(db, document_number="4455667", reason="Damaged the room"):
    db.add(BlacklistEntry(document_number=document_number, full_name="Ana Rojas", reason=reason))
    db.commit()


class TestCheckIn:
    """check_in"""

    def test_daily_two_nights(self, ledger, db_session, room, customer, cashier):
        booking = ledger.check_in(
            CheckInRequest(customer_id=customer.id, room_id=room.id, number_of_nights=2),
            cashier.id, now=NOON
        )
        assert booking.status == BookingStatus.CHECKED_IN
        assert booking.base_price == Decimal("400.00")
        assert booking.total_amount == Decimal("400.00")
        assert booking.amount_paid == Decimal("0")
        assert booking.check_in == NOON
        assert booking.expected_checkout == NOON + timedelta(days=2)
        assert booking.booking_code.startswith("BK")
        db_session.refresh(room)
        assert room.status == RoomStatus.OCCUPIED

    def test_hourly_is_prorated_from_three_hour_price(self, ledger, room, customer, cashier):
        booking = ledger.check_in(
            CheckInRequest(customer_id=customer.id, room_id=room.id,
                           stay_kind=StayKind.HOURLY, number_of_hours=5),
            cashier.id, now=NOON
        )
        assert booking.base_price == Decimal("50.00")
        assert booking.expected_checkout == NOON + timedelta(hours=5)

    def test_three_hour_bucket(self, ledger, room, customer, cashier):
        booking = ledger.check_in(
            CheckInRequest(customer_id=customer.id, room_id=room.id, stay_kind=StayKind.HOURS_3),
            cashier.id, now=NOON
        )
        assert booking.base_price == Decimal("30.00")
        assert booking.expected_checkout == NOON + timedelta(hours=3)

    def test_explicit_expected_checkout(self, ledger, room, customer, cashier):
        expected = datetime(2026, 3, 2, 10, 0)
        booking = ledger.check_in(
            CheckInRequest(customer_id=customer.id, room_id=room.id, expected_checkout=expected),
            cashier.id, now=NOON
        )
        assert booking.expected_checkout == expected

    def test_additional_income_is_a_charge_line(self, ledger, db_session, room, customer, cashier):
        booking = ledger.check_in(
            CheckInRequest(customer_id=customer.id, room_id=room.id,
                           additional_income=Decimal("15")),
            cashier.id, now=NOON
        )
        assert booking.additional_charges == Decimal("15.00")
        assert booking.total_amount == Decimal("215.00")
        lines = db_session.query(BookingCharge).filter(BookingCharge.booking_id == booking.id).all()
        assert len(lines) == 1
        assert lines[0].charge_type == ChargeType.ADDITIONAL_INCOME

    def test_occupied_room_is_rejected(self, ledger, booking, room, customer, cashier):
        with pytest.raises(RoomUnavailable) as exc_info:
            ledger.check_in(
                CheckInRequest(customer_id=customer.id, room_id=room.id),
                cashier.id, now=NOON
            )
        assert exc_info.value.extra["room_status"] == "occupied"

    def test_unknown_room(self, ledger, customer, cashier):
        with pytest.raises(RoomNotFound):
            ledger.check_in(CheckInRequest(customer_id=customer.id, room_id=999), cashier.id, now=NOON)

    def test_unknown_customer(self, ledger, room, cashier):
        with pytest.raises(CustomerNotFound):
            ledger.check_in(CheckInRequest(customer_id=999, room_id=room.id), cashier.id, now=NOON)

    def test_blacklisted_customer_leaves_room_available(self, ledger, db_session, room, customer, cashier):
        _blacklist(db_session)
        with pytest.raises(CustomerBlocked) as exc_info:
            ledger.check_in(
                CheckInRequest(customer_id=customer.id, room_id=room.id),
                cashier.id, now=NOON
            )
        assert exc_info.value.reason == "Damaged the room"
        db_session.refresh(room)
        assert room.status == RoomStatus.AVAILABLE

    def test_events_after_commit(self, booking, events, room):
        assert [e.event_type for e in events] == [
            EventType.GUEST_CHECKED_IN, EventType.ROOM_STATUS_CHANGED
        ]
        assert events[0].data["booking_id"] == booking.id
        assert events[1].data["new_status"] == "occupied"

    def test_booking_codes_are_unique(self, ledger, room, room_102, customer, cashier):
        first = ledger.check_in(CheckInRequest(customer_id=customer.id, room_id=room.id), cashier.id, now=NOON)
        second = ledger.check_in(
            CheckInRequest(customer_id=customer.id, room_id=room_102.id),
            cashier.id, now=NOON + timedelta(seconds=1)
        )
        assert first.booking_code != second.booking_code


class TestRegisterGuest:
    """register_guest"""

    def _registration(self, room, **overrides):
        data = dict(
            full_name="Luis Paz",
            document_number="9988776",
            phone="+59170000002",
            age=41,
            nationality="Peru",
            origin="Lima",
            room_id=room.id,
        )
        data.update(overrides)
        return GuestRegistration(**data)

    def test_creates_customer_and_booking(self, ledger, db_session, room, cashier):
        booking = ledger.register_guest(self._registration(room), cashier.id, now=NOON)
        customer = db_session.query(Customer).filter(Customer.document_number == "9988776").one()
        assert booking.customer_id == customer.id
        assert customer.whatsapp == "+59170000002"
        assert booking.base_price == Decimal("200.00")

    def test_short_hourly_request_books_three_hour_bucket(self, ledger, room, cashier):
        booking = ledger.register_guest(
            self._registration(room, stay_kind=StayKind.HOURLY, number_of_hours=2),
            cashier.id, now=NOON
        )
        assert booking.stay_kind == StayKind.HOURS_3
        assert booking.base_price == Decimal("30.00")

    def test_long_hourly_request_books_six_hour_bucket(self, ledger, room, cashier):
        booking = ledger.register_guest(
            self._registration(room, stay_kind=StayKind.HOURLY, number_of_hours=5),
            cashier.id, now=NOON
        )
        assert booking.stay_kind == StayKind.HOURS_6
        assert booking.base_price == Decimal("20.00")

    def test_prorated_hours(self, ledger, room, cashier):
        booking = ledger.register_guest(
            self._registration(room, stay_kind=StayKind.HOURLY, number_of_hours=5, prorate_hours=True),
            cashier.id, now=NOON
        )
        assert booking.stay_kind == StayKind.HOURLY
        assert booking.base_price == Decimal("50.00")

    def test_existing_document_reuses_customer(self, ledger, db_session, room, customer, cashier):
        booking = ledger.register_guest(
            self._registration(room, full_name="Ana Rojas", document_number="4455667",
                               phone="+59170000009"),
            cashier.id, now=NOON
        )
        assert booking.customer_id == customer.id
        assert db_session.query(Customer).count() == 1
        db_session.refresh(customer)
        assert customer.whatsapp == "+59170000009"

    def test_blacklisted_document_creates_nothing(self, ledger, db_session, room, cashier):
        _blacklist(db_session, document_number="9988776")
        with pytest.raises(CustomerBlocked):
            ledger.register_guest(self._registration(room), cashier.id, now=NOON)
        assert db_session.query(Customer).count() == 0
        db_session.refresh(room)
        assert room.status == RoomStatus.AVAILABLE

    def test_occupied_room_rolls_back_new_customer(self, ledger, db_session, booking, room, cashier):
        with pytest.raises(RoomUnavailable):
            ledger.register_guest(self._registration(room), cashier.id, now=NOON)
        assert db_session.query(Customer).filter(Customer.document_number == "9988776").count() == 0
