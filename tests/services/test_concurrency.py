"""
Concurrent front-desk operations against a file-backed database
"""
from concurrent.futures import ThreadPoolExecutor
from contextlib import nullcontext
from decimal import Decimal
import threading
from unittest.mock import patch

import pytest
from sqlalchemy.orm import sessionmaker

from innkeeper.core.locks import resource_locks
from innkeeper.database import make_engine, init_db
from innkeeper.errors import PaymentExceedsBalance, RoomUnavailable, SessionAlreadyOpen
from innkeeper.models.ontology import (
    Booking, CashierSession, CashierSessionStatus, Customer, Employee, EmployeeRole, Payment,
    PaymentMethod, Room, RoomStatus
)
from innkeeper.models.schemas import CheckInRequest, PaymentCreate
from innkeeper.services.cashier_service import CashierSessionService
from innkeeper.services.ledger_service import LedgerService

from conftest import NOON, RecordingNotifier


@pytest.fixture
def file_db(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'frontdesk.db'}")
    init_db(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    with Session() as db:
        db.add(Employee(username="cashier1", password_hash="x", full_name="Front Desk",
                        role=EmployeeRole.CASHIER, is_active=True))
        db.add(Room(room_number="101", status=RoomStatus.AVAILABLE, daily_price=Decimal("200"),
                    short_stay_3h_price=Decimal("30"), short_stay_6h_price=Decimal("20")))
        for n in range(2):
            db.add(Customer(full_name=f"Guest {n}", document_number=f"DOC{n}", total_stays=0,
                            total_spent=0, is_frequent=False))
        db.commit()

    yield Session
    engine.dispose()


def _ledger(db):
    return LedgerService(db, event_publisher=lambda event: None, notifier=RecordingNotifier())


class TestConcurrentCheckIn:

    def test_one_room_two_guests(self, file_db):
        start = threading.Barrier(2)

        def attempt(customer_id):
            with file_db() as db:
                ledger = _ledger(db)
                start.wait(5)
                try:
                    ledger.check_in(CheckInRequest(customer_id=customer_id, room_id=room_id),
                                    cashier_id=1, now=NOON)
                    return "ok"
                except RoomUnavailable:
                    return "unavailable"

        with file_db() as db:
            customer_ids = [c.id for c in db.query(Customer).order_by(Customer.id).all()]
            room_id = db.query(Room).one().id

        with ThreadPoolExecutor(max_workers=2) as pool:
            outcomes = sorted(pool.map(attempt, customer_ids))

        assert outcomes == ["ok", "unavailable"]
        with file_db() as db:
            assert db.query(Booking).count() == 1
            assert db.query(Room).one().status == RoomStatus.OCCUPIED


class TestConcurrentPayments:

    def test_parallel_payments_never_overpay(self, file_db):
        with file_db() as db:
            customer = db.query(Customer).first()
            room = db.query(Room).one()
            booking_id = _ledger(db).check_in(
                CheckInRequest(customer_id=customer.id, room_id=room.id), cashier_id=1, now=NOON
            ).id

        start = threading.Barrier(4)

        def pay(_):
            with file_db() as db:
                start.wait(5)
                try:
                    _ledger(db).record_payment(
                        PaymentCreate(booking_id=booking_id, amount=Decimal("80"),
                                      payment_method=PaymentMethod.CASH),
                        cashier_id=1, now=NOON
                    )
                    return True
                except PaymentExceedsBalance:
                    return False

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(pay, range(4)))

        assert results.count(True) == 2
        with file_db() as db:
            booking = db.query(Booking).one()
            assert booking.amount_paid == Decimal("160.00")
            assert db.query(Payment).count() == 2


class TestConcurrentShiftOpen:

    def test_workers_without_shared_locks_open_one_shift(self, file_db):
        with file_db() as db:
            cashier_id = db.query(Employee).one().id

        start = threading.Barrier(2)

        def open_shift(_):
            with file_db() as db:
                service = CashierSessionService(db, event_publisher=lambda event: None)
                start.wait(5)
                try:
                    service.open(cashier_id, Decimal("10"), now=NOON)
                    return "ok"
                except SessionAlreadyOpen:
                    return "already_open"

        # separate worker processes never share the in-process lock registry
        with patch.object(resource_locks, "hold", lambda *keys, **kwargs: nullcontext()):
            with ThreadPoolExecutor(max_workers=2) as pool:
                outcomes = sorted(pool.map(open_shift, range(2)))

        assert outcomes == ["already_open", "ok"]
        with file_db() as db:
            assert db.query(CashierSession).filter(
                CashierSession.status == CashierSessionStatus.OPEN
            ).count() == 1
