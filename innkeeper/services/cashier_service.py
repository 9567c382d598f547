"""
Cashier session service - shift open / running totals / close

Per-method totals are never stored while a session is open; they are summed
from the cashier's payments inside [opening_time, now]. Closing freezes them
into the session row and moves it to pending_approval.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple
import logging

from sqlalchemy import func, distinct
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from innkeeper.core.locks import resource_locks
from innkeeper.core.money import to_money, money_sum, ZERO
from innkeeper.core.state_machine import CASHIER_SESSION_LIFECYCLE
from innkeeper.database import atomic
from innkeeper.errors import SessionAlreadyOpen, NoOpenSession, NotFound, ValidationFailed
from innkeeper.models.events import EventType, CashRegisterOpenedData, CashRegisterClosedData
from innkeeper.models.ontology import CashierSession, CashierSessionStatus, Payment, PaymentMethod
from innkeeper.services.event_bus import event_bus, Event

logger = logging.getLogger(__name__)


@dataclass
class SessionSnapshot:
    session_id: int
    cashier_id: int
    opening_time: datetime
    initial_cash: Decimal
    totals_by_method: Dict[PaymentMethod, Decimal]
    total_transactions: int
    expected_cash: Decimal
    total_collected: Decimal


@dataclass
class SessionCloseResult:
    session_id: int
    status: CashierSessionStatus
    closing_time: datetime
    totals_by_method: Dict[PaymentMethod, Decimal]
    expected_cash: Decimal
    actual_cash: Decimal
    difference: Decimal


class CashierSessionService:
    """Cash register shifts"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        self._publish_event = event_publisher or event_bus.publish

    def open(self, cashier_id: int, initial_cash: Decimal,
             now: Optional[datetime] = None) -> CashierSession:
        """Start a shift; one open session per cashier"""
        now = now or datetime.now()
        initial_cash = to_money(initial_cash)
        if initial_cash < 0:
            raise ValidationFailed("Initial cash cannot be negative", initial_cash=initial_cash)

        with resource_locks.hold(("cashier", cashier_id)):
            try:
                with atomic(self.db):
                    existing = self._open_session(cashier_id)
                    if existing:
                        raise SessionAlreadyOpen(cashier_id, existing.id)
                    session = CashierSession(
                        cashier_id=cashier_id,
                        opening_time=now,
                        initial_cash=initial_cash,
                        status=CashierSessionStatus.OPEN,
                    )
                    self.db.add(session)
            except IntegrityError:
                # another worker opened a shift after our check
                existing = self._open_session(cashier_id)
                logger.warning(f"Cashier {cashier_id} open raced with session {existing.id if existing else None}")
                raise SessionAlreadyOpen(cashier_id, existing.id if existing else None)
            self.db.refresh(session)

        logger.info(f"Cash register {session.id} opened by cashier {cashier_id} with {initial_cash}")
        self._publish_event(Event(
            event_type=EventType.CASH_REGISTER_OPENED,
            timestamp=datetime.now(),
            data=CashRegisterOpenedData(
                session_id=session.id,
                cashier_id=cashier_id,
                initial_cash=initial_cash
            ).to_dict(),
            source="cashier_service"
        ))
        return session

    def current(self, cashier_id: int, now: Optional[datetime] = None) -> SessionSnapshot:
        """Running totals of the open session"""
        now = now or datetime.now()
        session = self._open_session(cashier_id)
        if not session:
            raise NoOpenSession(cashier_id)

        totals, transactions = self._payment_totals(cashier_id, session.opening_time, now)
        initial_cash = to_money(session.initial_cash)
        return SessionSnapshot(
            session_id=session.id,
            cashier_id=cashier_id,
            opening_time=session.opening_time,
            initial_cash=initial_cash,
            totals_by_method=totals,
            total_transactions=transactions,
            expected_cash=initial_cash + totals[PaymentMethod.CASH],
            total_collected=money_sum(totals.values()),
        )

    def close(self, cashier_id: int, actual_cash: Decimal, notes: Optional[str] = None,
              now: Optional[datetime] = None) -> SessionCloseResult:
        """
        Freeze totals and hand the shift over for approval.
        The cash difference is recorded, never enforced.
        """
        now = now or datetime.now()
        actual_cash = to_money(actual_cash)
        if actual_cash < 0:
            raise ValidationFailed("Actual cash cannot be negative", actual_cash=actual_cash)

        with resource_locks.hold(("cashier", cashier_id)):
            with atomic(self.db):
                session = self._open_session(cashier_id, for_update=True)
                if not session:
                    raise NoOpenSession(cashier_id)

                totals, _ = self._payment_totals(cashier_id, session.opening_time, now)
                expected_cash = to_money(session.initial_cash) + totals[PaymentMethod.CASH]
                difference = actual_cash - expected_cash

                session.total_cash_payments = totals[PaymentMethod.CASH]
                session.total_card_payments = totals[PaymentMethod.CARD]
                session.total_transfer_payments = totals[PaymentMethod.TRANSFER]
                session.total_check_payments = totals[PaymentMethod.CHECK]
                session.total_other_payments = totals[PaymentMethod.OTHER]
                session.expected_cash = expected_cash
                session.actual_cash = actual_cash
                session.difference = difference
                session.notes = notes
                session.closing_time = now
                session.status = CashierSessionStatus(
                    CASHIER_SESSION_LIFECYCLE.fire(session.status, "close")
                )
                session_id = session.id

        if difference != 0:
            logger.warning(f"Cash register {session_id} closed with difference {difference}")
        else:
            logger.info(f"Cash register {session_id} closed, expected cash {expected_cash}")
        self._publish_event(Event(
            event_type=EventType.CASH_REGISTER_CLOSED,
            timestamp=datetime.now(),
            data=CashRegisterClosedData(
                session_id=session_id,
                cashier_id=cashier_id,
                expected_cash=expected_cash,
                actual_cash=actual_cash,
                difference=difference
            ).to_dict(),
            source="cashier_service"
        ))
        return SessionCloseResult(
            session_id=session_id,
            status=CashierSessionStatus.PENDING_APPROVAL,
            closing_time=now,
            totals_by_method=totals,
            expected_cash=expected_cash,
            actual_cash=actual_cash,
            difference=difference,
        )

    def get_session(self, session_id: int) -> CashierSession:
        session = self.db.query(CashierSession).filter(CashierSession.id == session_id).first()
        if not session:
            raise NotFound(f"Cash register {session_id} not found", session_id=session_id)
        return session

    def list_sessions(self, cashier_id: Optional[int] = None, limit: int = 50) -> List[CashierSession]:
        query = self.db.query(CashierSession)
        if cashier_id is not None:
            query = query.filter(CashierSession.cashier_id == cashier_id)
        return query.order_by(CashierSession.opening_time.desc()).limit(limit).all()

    def _open_session(self, cashier_id: int, for_update: bool = False) -> Optional[CashierSession]:
        query = self.db.query(CashierSession).filter(
            CashierSession.cashier_id == cashier_id,
            CashierSession.status == CashierSessionStatus.OPEN
        ).populate_existing()
        if for_update:
            query = query.with_for_update()
        return query.first()

    def _payment_totals(self, cashier_id: int, start: datetime,
                        end: datetime) -> Tuple[Dict[PaymentMethod, Decimal], int]:
        """Per-method sums and distinct bookings for payments in [start, end]"""
        window = (
            Payment.cashier_id == cashier_id,
            Payment.payment_date >= start,
            Payment.payment_date <= end,
        )
        rows = self.db.query(
            Payment.payment_method, func.sum(Payment.amount)
        ).filter(*window).group_by(Payment.payment_method).all()

        totals = {method: ZERO for method in PaymentMethod}
        for method, amount in rows:
            totals[PaymentMethod(method)] = to_money(amount)

        transactions = self.db.query(
            func.count(distinct(Payment.booking_id))
        ).filter(*window).scalar() or 0
        return totals, transactions
