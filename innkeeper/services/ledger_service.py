"""
Booking ledger service
Owns a booking's financial state from check-in to checkout:
base price, extra charges, discounts, late-checkout fee, payments, refunds.

Every mutating operation:
1. takes the resource locks for the booking (and room, where it changes)
2. re-reads the rows, validates, mutates, and commits as one atomic unit
3. publishes domain events and sends notifications only after the commit

After each committed mutation
    total_amount == base_price + additional_charges - discounts + late_checkout_charge
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional
import logging
import secrets

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from innkeeper.config import settings
from innkeeper.core.locks import resource_locks
from innkeeper.core.money import to_money, money_sum, percent_of, ZERO, BALANCE_EPSILON
from innkeeper.core.state_machine import BOOKING_LIFECYCLE
from innkeeper.database import atomic
from innkeeper.errors import (
    BookingNotFound, BookingNotActive, BookingAlreadyProcessed, CustomerBlocked,
    CustomerNotFound, Conflict, ValidationFailed, DiscountExceedsTotal,
    PaymentExceedsBalance, RefundExceedsPaid, OutstandingBalance, AuthorizationFailed
)
from innkeeper.models.events import (
    EventType, GuestCheckedInData, ChargesAddedData, DiscountAppliedData,
    PaymentReceivedData, RefundIssuedData, GuestCheckedOutData, RoomStatusChangedData
)
from innkeeper.models.ontology import (
    Booking, BookingStatus, BookingCharge, ChargeType, Customer, Discount,
    DiscountType, Payment, PaymentMethod, PaymentSplit, Refund, RefundStatus, Room,
    RoomStatus, StayKind
)
from innkeeper.models.schemas import (
    CheckInRequest, GuestRegistration, ChargeItem, DiscountRequest, PaymentCreate, RefundCreate
)
from innkeeper.security.auth import find_authorizing_admin
from innkeeper.services.catalog_service import CatalogService
from innkeeper.services.customer_service import CustomerService
from innkeeper.services.event_bus import event_bus, Event
from innkeeper.services.guard_gate import GuardGate, BlacklistGuardGate
from innkeeper.services.late_checkout import calculate_late_checkout
from innkeeper.services.notification_service import (
    NotificationEmitter, CHARGE_ADDED, PAYMENT_CONFIRMATION, CHECKOUT_COMPLETED
)
from innkeeper.services.room_service import RoomService

logger = logging.getLogger(__name__)


# ============== Results ==============

@dataclass
class ChargesResult:
    booking_id: int
    charge_ids: List[int]
    total_added: Decimal
    new_total: Decimal
    replayed: bool = False
    notification_sent: bool = False
    warnings: List[str] = field(default_factory=list)


@dataclass
class DiscountResult:
    discount_id: int
    discount_amount: Decimal
    new_total: Decimal


@dataclass
class PaymentReceipt:
    payment_id: int
    new_balance: Decimal
    replayed: bool = False
    notification_sent: bool = False
    warnings: List[str] = field(default_factory=list)


@dataclass
class LateCheckoutPreview:
    is_late: bool
    hours_late: int
    hourly_rate: Decimal
    late_checkout_charge: Decimal
    new_total: Decimal
    new_balance: Decimal
    committed: bool


@dataclass
class CheckoutResult:
    booking_id: int
    late_checkout_charge: Decimal
    final_total: Decimal
    notification_sent: bool
    settled_amount: Decimal = ZERO
    settlement_payment_id: Optional[int] = None
    warnings: List[str] = field(default_factory=list)


# ============== Service ==============

class LedgerService:
    """Booking ledger"""

    def __init__(
        self,
        db: Session,
        event_publisher: Callable[[Event], None] = None,
        notifier: Optional[NotificationEmitter] = None,
        guard_gate: Optional[GuardGate] = None,
        catalog: Optional[CatalogService] = None,
    ):
        self.db = db
        self._publish_event = event_publisher or event_bus.publish
        self.notifier = notifier or NotificationEmitter.from_settings()
        self.guard_gate = guard_gate or BlacklistGuardGate(db)
        self.catalog = catalog or CatalogService(db)
        self.rooms = RoomService(db, self._publish_event)
        self.customers = CustomerService(db)

    # ---------- check-in ----------

    def check_in(self, data: CheckInRequest, cashier_id: Optional[int],
                 now: Optional[datetime] = None) -> Booking:
        """
        Check a known customer into an available room.
        Blacklist check, room occupation and booking insert commit together.
        """
        now = now or datetime.now()
        with resource_locks.hold(("room", data.room_id)):
            with atomic(self.db):
                booking = self._create_booking(data, cashier_id, now)
            self.db.refresh(booking)

        logger.info(
            f"Check-in {booking.booking_code}: room {booking.room.room_number}, "
            f"customer {booking.customer_id}, base {booking.base_price}"
        )
        self._publish_checked_in(booking, cashier_id)
        return booking

    def register_guest(self, data: GuestRegistration, cashier_id: Optional[int],
                       now: Optional[datetime] = None) -> Booking:
        """
        Walk-in registration: find or create the customer by document number
        and check in, in one atomic unit.

        Hourly requests are booked as the 3-hour bucket up to 3 hours and as
        the 6-hour bucket above that, unless prorate_hours is set.
        """
        now = now or datetime.now()
        document_number = data.document_number.strip()

        stay_kind = data.stay_kind
        if stay_kind == StayKind.HOURLY:
            if not data.number_of_hours:
                raise ValidationFailed("number_of_hours is required for hourly stays")
            if not data.prorate_hours:
                stay_kind = StayKind.HOURS_3 if data.number_of_hours <= 3 else StayKind.HOURS_6

        with resource_locks.hold(("room", data.room_id)):
            with atomic(self.db):
                decision = self.guard_gate.is_blocked(document_number)
                if decision.blocked:
                    logger.warning(f"Blocked registration for document {document_number}")
                    raise CustomerBlocked(document_number, decision.reason)

                customer = self.customers.find_by_document(document_number)
                if customer is None:
                    customer = Customer(
                        full_name=data.full_name,
                        document_number=document_number,
                        phone=data.phone,
                        whatsapp=data.whatsapp or data.phone,
                        age=data.age,
                        nationality=data.nationality or "Bolivia",
                        origin=data.origin,
                        total_stays=0,
                        total_spent=0,
                        is_frequent=False,
                    )
                    self.db.add(customer)
                    self.db.flush()
                else:
                    for attr in ("phone", "age", "nationality", "origin"):
                        value = getattr(data, attr)
                        if value is not None:
                            setattr(customer, attr, value)
                    if data.whatsapp or data.phone:
                        customer.whatsapp = data.whatsapp or data.phone

                request = CheckInRequest(
                    customer_id=customer.id,
                    room_id=data.room_id,
                    stay_kind=stay_kind,
                    check_in=data.check_in,
                    expected_checkout=data.expected_checkout,
                    number_of_nights=data.number_of_nights,
                    number_of_hours=data.number_of_hours,
                    notes=data.notes,
                    additional_income=data.additional_income,
                )
                booking = self._create_booking(request, cashier_id, now)
            self.db.refresh(booking)

        logger.info(f"Guest {customer.full_name} registered, booking {booking.booking_code}")
        self._publish_checked_in(booking, cashier_id)
        return booking

    def _create_booking(self, data: CheckInRequest, cashier_id: Optional[int],
                        now: datetime) -> Booking:
        customer = self.db.query(Customer).filter(Customer.id == data.customer_id).first()
        if not customer:
            raise CustomerNotFound(data.customer_id)

        decision = self.guard_gate.is_blocked(customer.document_number)
        if decision.blocked:
            logger.warning(f"Blocked check-in for customer {customer.id}")
            raise CustomerBlocked(customer.document_number, decision.reason)

        room = self.rooms.get_room(data.room_id)
        nights = data.number_of_nights or 1
        base_price = self.rooms.price_for(room, data.stay_kind, nights, data.number_of_hours)

        check_in_at = data.check_in or now
        expected_checkout = data.expected_checkout or self.default_expected_checkout(
            check_in_at, data.stay_kind, nights, data.number_of_hours
        )
        if expected_checkout <= check_in_at:
            raise ValidationFailed("Expected checkout must be after check-in")

        self.rooms.occupy(room.id)

        booking = Booking(
            booking_code=self._new_booking_code(now),
            room_id=room.id,
            customer_id=customer.id,
            cashier_id=cashier_id,
            status=BookingStatus(BOOKING_LIFECYCLE.fire(BookingStatus.RESERVED, "check_in")),
            stay_kind=data.stay_kind,
            check_in=check_in_at,
            expected_checkout=expected_checkout,
            number_of_nights=nights if data.stay_kind == StayKind.DAILY else 1,
            number_of_hours=data.number_of_hours,
            number_of_guests=data.number_of_guests,
            notes=data.notes,
            base_price=base_price,
            additional_charges=ZERO,
            discounts=ZERO,
            late_checkout_charge=ZERO,
            late_checkout_hours=0,
            late_checkout_committed=False,
            amount_paid=ZERO,
        )
        self.db.add(booking)
        self.db.flush()

        additional_income = to_money(data.additional_income)
        if additional_income > 0:
            self.db.add(BookingCharge(
                booking_id=booking.id,
                cashier_id=cashier_id,
                charge_type=ChargeType.ADDITIONAL_INCOME,
                description="Additional income",
                quantity=1,
                unit_price=additional_income,
                tax_amount=ZERO,
                total_amount=additional_income,
            ))
            booking.additional_charges = additional_income

        booking.total_amount = booking.computed_total()
        self.db.flush()
        return booking

    @staticmethod
    def default_expected_checkout(check_in: datetime, stay_kind: StayKind,
                                  nights: int = 1, hours: Optional[int] = None) -> datetime:
        if stay_kind == StayKind.HOURS_3:
            return check_in + timedelta(hours=3)
        if stay_kind == StayKind.HOURS_6:
            return check_in + timedelta(hours=6)
        if stay_kind == StayKind.HOURLY:
            return check_in + timedelta(hours=hours or 1)
        return check_in + timedelta(days=nights or 1)

    def _new_booking_code(self, now: datetime) -> str:
        millis = int(now.timestamp() * 1000)
        return f"{settings.BOOKING_CODE_PREFIX}{millis}{secrets.token_hex(2).upper()}"

    # ---------- charges / discounts ----------

    def add_charges(self, booking_id: int, items: List[ChargeItem], cashier_id: Optional[int],
                    idempotency_key: Optional[str] = None) -> ChargesResult:
        """
        Append charge lines to an active booking.
        Product lines pay the product's tax rate and take stock when the product
        tracks inventory; a shortage rolls back every line of the call.
        """
        if not items:
            raise ValidationFailed("At least one charge item is required")

        with resource_locks.hold(("booking", booking_id)):
            if idempotency_key:
                replay = self._replay_charges(booking_id, idempotency_key)
                if replay is not None:
                    return replay

            with atomic(self.db):
                booking = self._load_booking(booking_id, for_update=True)
                self._require_active(booking)

                charges = []
                for item in items:
                    if item.quantity < 1:
                        raise ValidationFailed("Quantity must be at least 1", quantity=item.quantity)
                    unit_price = to_money(item.unit_price)
                    if unit_price < 0:
                        raise ValidationFailed("Unit price cannot be negative", unit_price=unit_price)

                    subtotal = to_money(unit_price * item.quantity)
                    tax = ZERO
                    if item.product_id is not None:
                        product = self.catalog.decrement_stock(item.product_id, item.quantity)
                        tax = percent_of(subtotal, product.tax_rate or 0)

                    charge = BookingCharge(
                        booking_id=booking.id,
                        product_id=item.product_id,
                        cashier_id=cashier_id,
                        charge_type=item.charge_type,
                        description=item.description,
                        quantity=item.quantity,
                        unit_price=unit_price,
                        tax_amount=tax,
                        total_amount=subtotal + tax,
                        idempotency_key=idempotency_key,
                    )
                    self.db.add(charge)
                    charges.append(charge)

                total_added = money_sum(c.total_amount for c in charges)
                booking.additional_charges = to_money(booking.additional_charges) + total_added
                booking.total_amount = booking.computed_total()
                self.db.flush()
                charge_ids = [c.id for c in charges]
            self.db.refresh(booking)

        logger.info(f"Booking {booking.booking_code}: {len(charge_ids)} charge(s), +{total_added}")
        self._publish_event(Event(
            event_type=EventType.CHARGES_ADDED,
            timestamp=datetime.now(),
            data=ChargesAddedData(
                booking_id=booking.id,
                booking_code=booking.booking_code,
                charge_ids=charge_ids,
                total_added=total_added,
                total_amount=to_money(booking.total_amount),
                cashier_id=cashier_id
            ).to_dict(),
            source="ledger_service"
        ))

        result = ChargesResult(
            booking_id=booking.id,
            charge_ids=charge_ids,
            total_added=total_added,
            new_total=to_money(booking.total_amount),
        )
        phone = self._guest_phone(booking)
        if phone:
            result.notification_sent = self._notify(CHARGE_ADDED, {
                "phone": phone,
                "name": booking.customer.full_name,
                "booking_code": booking.booking_code,
                "charge_amount": total_added,
                "total_amount": booking.total_amount,
            }, result.warnings)
        return result

    def _replay_charges(self, booking_id: int, idempotency_key: str) -> Optional[ChargesResult]:
        previous = self.db.query(BookingCharge).filter(
            BookingCharge.booking_id == booking_id,
            BookingCharge.idempotency_key == idempotency_key
        ).order_by(BookingCharge.id).all()
        if not previous:
            return None
        booking = self._load_booking(booking_id)
        logger.info(f"Replayed charges for booking {booking_id} (key {idempotency_key})")
        return ChargesResult(
            booking_id=booking_id,
            charge_ids=[c.id for c in previous],
            total_added=money_sum(c.total_amount for c in previous),
            new_total=to_money(booking.total_amount),
            replayed=True,
        )

    def apply_discount(self, booking_id: int, data: DiscountRequest,
                       cashier_id: Optional[int]) -> DiscountResult:
        """Percentage discounts apply to the current total; no discount may exceed it"""
        value = to_money(data.discount_value)
        if value < 0:
            raise ValidationFailed("Discount value cannot be negative", discount_value=value)
        if data.discount_type == DiscountType.PERCENTAGE and value > 100:
            raise ValidationFailed("Percentage discount cannot exceed 100", discount_value=value)

        with resource_locks.hold(("booking", booking_id)):
            with atomic(self.db):
                booking = self._load_booking(booking_id, for_update=True)
                self._require_active(booking)

                total = to_money(booking.total_amount)
                if data.discount_type == DiscountType.PERCENTAGE:
                    amount = percent_of(total, value)
                else:
                    amount = value
                if amount > total:
                    raise DiscountExceedsTotal(amount, total)

                discount = Discount(
                    booking_id=booking.id,
                    cashier_id=cashier_id,
                    discount_type=data.discount_type,
                    discount_value=value,
                    discount_amount=amount,
                    reason=data.reason,
                    authorized_by=data.authorized_by,
                )
                self.db.add(discount)
                booking.discounts = to_money(booking.discounts) + amount
                booking.total_amount = booking.computed_total()
                self.db.flush()
                discount_id = discount.id
            self.db.refresh(booking)

        logger.info(f"Booking {booking.booking_code}: discount {amount}, total {booking.total_amount}")
        self._publish_event(Event(
            event_type=EventType.DISCOUNT_APPLIED,
            timestamp=datetime.now(),
            data=DiscountAppliedData(
                booking_id=booking.id,
                discount_id=discount_id,
                discount_type=data.discount_type.value,
                discount_amount=amount,
                new_total=to_money(booking.total_amount),
                cashier_id=cashier_id
            ).to_dict(),
            source="ledger_service"
        ))
        return DiscountResult(
            discount_id=discount_id,
            discount_amount=amount,
            new_total=to_money(booking.total_amount),
        )

    # ---------- payments / refunds ----------

    def record_payment(self, data: PaymentCreate, cashier_id: int, now: Optional[datetime] = None,
                       idempotency_key: Optional[str] = None) -> PaymentReceipt:
        """
        Take a payment against an active booking.
        Anything above the current balance is rejected; a repeated
        idempotency key returns the first receipt without touching the ledger.
        """
        now = now or datetime.now()
        amount = to_money(data.amount)
        if amount <= 0:
            raise ValidationFailed("Payment amount must be positive", amount=amount)

        splits = data.payment_splits or []
        if splits:
            split_total = money_sum(s.amount for s in splits)
            if abs(split_total - amount) > BALANCE_EPSILON:
                raise ValidationFailed(
                    f"Payment splits add up to {split_total}, expected {amount}",
                    split_total=split_total, amount=amount
                )

        with resource_locks.hold(("booking", data.booking_id)):
            if idempotency_key:
                replay = self._replay_payment(data.booking_id, idempotency_key)
                if replay is not None:
                    return replay

            try:
                with atomic(self.db):
                    booking = self._load_booking(data.booking_id, for_update=True)
                    self._require_active(booking)

                    balance = booking.balance
                    if amount > balance:
                        raise PaymentExceedsBalance(amount, balance)

                    payment = Payment(
                        booking_id=booking.id,
                        cashier_id=cashier_id,
                        amount=amount,
                        payment_method=data.payment_method,
                        payment_date=now,
                        card_last_digits=data.card_last_digits,
                        transaction_reference=data.transaction_reference,
                        notes=data.notes,
                        idempotency_key=idempotency_key,
                    )
                    self.db.add(payment)
                    self.db.flush()
                    for split in splits:
                        self.db.add(PaymentSplit(
                            payment_id=payment.id,
                            payment_method=split.payment_method,
                            amount=to_money(split.amount),
                            card_last_digits=split.card_last_digits,
                            transaction_reference=split.transaction_reference,
                        ))
                    booking.amount_paid = to_money(booking.amount_paid) + amount
                    payment_id = payment.id
            except IntegrityError:
                if not idempotency_key:
                    raise
                # another booking claimed the same key between replay check and insert
                logger.warning(f"Idempotency key {idempotency_key} collided on booking {data.booking_id}")
                raise Conflict(
                    "Idempotency key was already used for another booking",
                    idempotency_key=idempotency_key, booking_id=data.booking_id
                )
            self.db.refresh(booking)

        new_balance = booking.balance
        logger.info(
            f"Payment {payment_id} on {booking.booking_code}: {amount} "
            f"({data.payment_method.value}), balance {new_balance}"
        )
        self._publish_event(Event(
            event_type=EventType.PAYMENT_RECEIVED,
            timestamp=datetime.now(),
            data=PaymentReceivedData(
                booking_id=booking.id,
                payment_id=payment_id,
                amount=amount,
                payment_method=data.payment_method.value,
                new_balance=new_balance,
                cashier_id=cashier_id
            ).to_dict(),
            source="ledger_service"
        ))

        receipt = PaymentReceipt(payment_id=payment_id, new_balance=new_balance)
        phone = self._guest_phone(booking)
        if phone:
            receipt.notification_sent = self._notify(PAYMENT_CONFIRMATION, {
                "phone": phone,
                "name": booking.customer.full_name,
                "booking_code": booking.booking_code,
                "room_number": booking.room.room_number,
                "amount_paid": amount,
                "total_paid": booking.amount_paid,
                "total_amount": booking.total_amount,
                "balance": new_balance,
            }, receipt.warnings)
        return receipt

    def _replay_payment(self, booking_id: int, idempotency_key: str) -> Optional[PaymentReceipt]:
        previous = self.db.query(Payment).filter(Payment.idempotency_key == idempotency_key).first()
        if previous is None:
            return None
        if previous.booking_id != booking_id:
            raise Conflict(
                "Idempotency key was already used for another booking",
                idempotency_key=idempotency_key, booking_id=previous.booking_id
            )
        booking = self._load_booking(booking_id)
        logger.info(f"Replayed payment {previous.id} (key {idempotency_key})")
        return PaymentReceipt(payment_id=previous.id, new_balance=booking.balance, replayed=True)

    def issue_refund(self, data: RefundCreate, cashier_id: Optional[int],
                     now: Optional[datetime] = None) -> Refund:
        """Admin-authorized refund; allowed on active and checked-out bookings"""
        now = now or datetime.now()
        admin = find_authorizing_admin(self.db, data.admin_password, data.admin_id)
        if admin is None:
            logger.warning(f"Refund on booking {data.booking_id} rejected: bad admin password")
            raise AuthorizationFailed("Invalid admin password")

        amount = to_money(data.amount)
        if amount <= 0:
            raise ValidationFailed("Refund amount must be positive", amount=amount)

        with resource_locks.hold(("booking", data.booking_id)):
            with atomic(self.db):
                booking = self._load_booking(data.booking_id, for_update=True)
                amount_paid = to_money(booking.amount_paid)
                if amount > amount_paid:
                    raise RefundExceedsPaid(amount, amount_paid)

                if data.payment_id is not None:
                    payment = self.db.query(Payment).filter(
                        Payment.id == data.payment_id,
                        Payment.booking_id == booking.id
                    ).first()
                    if payment is None:
                        raise ValidationFailed(
                            f"Payment {data.payment_id} does not belong to booking {booking.id}",
                            payment_id=data.payment_id
                        )

                refund = Refund(
                    booking_id=booking.id,
                    payment_id=data.payment_id,
                    cashier_id=cashier_id,
                    authorized_by=admin.id,
                    amount=amount,
                    reason=data.reason,
                    notes=data.notes,
                    status=RefundStatus.APPROVED,
                    created_at=now,
                )
                self.db.add(refund)
                booking.amount_paid = amount_paid - amount
            self.db.refresh(refund)

        logger.info(f"Refund {refund.id} on booking {refund.booking_id}: {amount}, by admin {admin.id}")
        self._publish_event(Event(
            event_type=EventType.REFUND_ISSUED,
            timestamp=datetime.now(),
            data=RefundIssuedData(
                booking_id=refund.booking_id,
                refund_id=refund.id,
                amount=amount,
                authorized_by=admin.id,
                cashier_id=cashier_id
            ).to_dict(),
            source="ledger_service"
        ))
        return refund

    # ---------- late checkout / checkout ----------

    def preview_late_checkout(self, booking_id: int,
                              now: Optional[datetime] = None) -> LateCheckoutPreview:
        """
        Read-only quote. Active bookings are re-evaluated at `now`;
        checked-out bookings report the charge frozen at checkout.
        """
        now = now or datetime.now()
        booking = self._load_booking(booking_id)
        hourly_rate = booking.room.late_checkout_hourly_rate

        if booking.late_checkout_committed or booking.status == BookingStatus.CHECKED_OUT:
            return LateCheckoutPreview(
                is_late=(booking.late_checkout_hours or 0) > 0,
                hours_late=booking.late_checkout_hours or 0,
                hourly_rate=hourly_rate,
                late_checkout_charge=to_money(booking.late_checkout_charge),
                new_total=to_money(booking.total_amount),
                new_balance=booking.balance,
                committed=True,
            )

        quote = calculate_late_checkout(booking.expected_checkout, now, hourly_rate)
        new_total = to_money(booking.total_amount) + quote.charge
        return LateCheckoutPreview(
            is_late=quote.is_late,
            hours_late=quote.hours_late,
            hourly_rate=quote.hourly_rate,
            late_checkout_charge=quote.charge,
            new_total=new_total,
            new_balance=new_total - to_money(booking.amount_paid),
            committed=False,
        )

    def checkout(self, booking_id: int, cashier_id: Optional[int],
                 now: Optional[datetime] = None,
                 settle_with: Optional[PaymentMethod] = None) -> CheckoutResult:
        """
        Close the stay:
        1. commit the late-checkout charge (once)
        2. with settle_with, pay the remaining balance in the same transaction
        3. require a settled balance
        4. booking -> checked_out, room -> cleaning
        5. update the guest's stay aggregates
        Any rejection leaves the booking exactly as it was.
        """
        now = now or datetime.now()
        if settle_with is not None and cashier_id is None:
            raise ValidationFailed("Settling at checkout requires a cashier")
        room_id = self._load_booking(booking_id).room_id
        settled_amount = ZERO
        settlement_id = None

        with resource_locks.hold(("booking", booking_id), ("room", room_id)):
            with atomic(self.db):
                booking = self._load_booking(booking_id, for_update=True)
                if booking.status != BookingStatus.CHECKED_IN:
                    raise BookingAlreadyProcessed(booking_id, booking.status.value)

                if not booking.late_checkout_committed:
                    quote = calculate_late_checkout(
                        booking.expected_checkout, now, booking.room.late_checkout_hourly_rate
                    )
                    booking.late_checkout_charge = quote.charge
                    booking.late_checkout_hours = quote.hours_late
                    booking.late_checkout_committed = True
                    booking.total_amount = booking.computed_total()

                balance = booking.balance
                if balance > BALANCE_EPSILON and settle_with is not None:
                    settlement = Payment(
                        booking_id=booking.id,
                        cashier_id=cashier_id,
                        amount=balance,
                        payment_method=settle_with,
                        payment_date=now,
                        notes="Settled at checkout",
                    )
                    self.db.add(settlement)
                    self.db.flush()
                    booking.amount_paid = to_money(booking.amount_paid) + balance
                    settled_amount = balance
                    settlement_id = settlement.id
                    balance = booking.balance

                if balance > BALANCE_EPSILON:
                    logger.warning(f"Checkout of {booking.booking_code} rejected, balance {balance}")
                    raise OutstandingBalance(balance, settings.CURRENCY_LABEL)

                booking.status = BookingStatus(BOOKING_LIFECYCLE.fire(booking.status, "checkout"))
                booking.check_out = now

                room = booking.room
                old_room_status = room.status.value
                self.rooms.release_for_cleaning(room)

                final_total = to_money(booking.total_amount)
                customer = booking.customer
                customer.total_stays = (customer.total_stays or 0) + 1
                customer.total_spent = to_money(customer.total_spent) + final_total
                customer.last_stay_date = now.date()
                customer.is_frequent = customer.total_stays >= settings.FREQUENT_GUEST_STAYS

                late_charge = to_money(booking.late_checkout_charge)
                notify_payload = self._checkout_payload(booking, now)
            self.db.refresh(booking)

        logger.info(
            f"Checkout {booking.booking_code}: total {final_total}, late charge {late_charge}"
        )
        self._publish_event(Event(
            event_type=EventType.GUEST_CHECKED_OUT,
            timestamp=datetime.now(),
            data=GuestCheckedOutData(
                booking_id=booking.id,
                booking_code=booking.booking_code,
                customer_id=booking.customer_id,
                customer_name=booking.customer.full_name,
                room_id=booking.room_id,
                room_number=booking.room.room_number,
                check_out=now.isoformat(),
                late_checkout_charge=late_charge,
                final_total=final_total,
                amount_paid=to_money(booking.amount_paid),
                cashier_id=cashier_id
            ).to_dict(),
            source="ledger_service"
        ))
        self._publish_event(Event(
            event_type=EventType.ROOM_STATUS_CHANGED,
            timestamp=datetime.now(),
            data=RoomStatusChangedData(
                room_id=booking.room_id,
                room_number=booking.room.room_number,
                old_status=old_room_status,
                new_status=RoomStatus.CLEANING.value,
                reason="checkout"
            ).to_dict(),
            source="ledger_service"
        ))

        if settlement_id is not None:
            self._publish_event(Event(
                event_type=EventType.PAYMENT_RECEIVED,
                timestamp=datetime.now(),
                data=PaymentReceivedData(
                    booking_id=booking.id,
                    payment_id=settlement_id,
                    amount=settled_amount,
                    payment_method=settle_with.value,
                    new_balance=booking.balance,
                    cashier_id=cashier_id
                ).to_dict(),
                source="ledger_service"
            ))

        result = CheckoutResult(
            booking_id=booking.id,
            late_checkout_charge=late_charge,
            final_total=final_total,
            notification_sent=False,
            settled_amount=settled_amount,
            settlement_payment_id=settlement_id,
        )
        result.notification_sent = self._notify(CHECKOUT_COMPLETED, notify_payload, result.warnings)
        return result

    def _checkout_payload(self, booking: Booking, now: datetime) -> Dict[str, Any]:
        customer = booking.customer
        charges_detail = "\n".join(
            f"  - {c.description} (x{c.quantity}): {settings.CURRENCY_LABEL} {to_money(c.total_amount):.2f}"
            for c in booking.charges
        )
        return {
            "booking_id": booking.id,
            "booking_code": booking.booking_code,
            "customer_name": customer.full_name,
            "document_number": customer.document_number,
            "age": customer.age,
            "nationality": customer.nationality,
            "origin": customer.origin,
            "room_number": booking.room.room_number,
            "check_in": booking.check_in.strftime("%Y-%m-%d %H:%M"),
            "check_out": now.strftime("%Y-%m-%d %H:%M"),
            "total_amount": to_money(booking.total_amount),
            "late_checkout_charge": to_money(booking.late_checkout_charge),
            "charges_detail": charges_detail,
        }

    # ---------- read side ----------

    def get_booking(self, booking_id: int) -> Booking:
        return self._load_booking(booking_id)

    def get_booking_detail(self, booking_id: int) -> Dict[str, Any]:
        booking = self._load_booking(booking_id)
        return {
            "booking": booking,
            "room_number": booking.room.room_number,
            "customer_name": booking.customer.full_name,
            "charges": list(booking.charges),
            "payments": list(booking.payments),
            "discounts": list(booking.booking_discounts),
            "refunds": list(booking.refunds),
        }

    def list_active_bookings(self, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Checked-in bookings with a live late-checkout quote"""
        now = now or datetime.now()
        bookings = self.db.query(Booking).filter(
            Booking.status == BookingStatus.CHECKED_IN
        ).order_by(Booking.expected_checkout).all()

        result = []
        for booking in bookings:
            quote = calculate_late_checkout(
                booking.expected_checkout, now, booking.room.late_checkout_hourly_rate
            )
            item = self._booking_summary(booking)
            item.update({
                "room_number": booking.room.room_number,
                "customer_name": booking.customer.full_name,
                "is_late": quote.is_late,
                "late_checkout_hours": quote.hours_late,
                "pending_late_checkout_charge": quote.charge,
                "current_balance": booking.balance + quote.charge,
            })
            result.append(item)
        return result

    def search_bookings(self, room_number: Optional[str] = None,
                        document_number: Optional[str] = None,
                        status: Optional[BookingStatus] = None,
                        limit: int = 50) -> List[Booking]:
        query = self.db.query(Booking).join(Room, Booking.room_id == Room.id).join(
            Customer, Booking.customer_id == Customer.id
        )
        if room_number:
            query = query.filter(Room.room_number == room_number)
        if document_number:
            query = query.filter(Customer.document_number == document_number.strip())
        if status:
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.check_in.desc()).limit(limit).all()

    # ---------- helpers ----------

    def _load_booking(self, booking_id: int, for_update: bool = False) -> Booking:
        """Fresh read of the booking row, bypassing stale identity-map state"""
        query = self.db.query(Booking).filter(Booking.id == booking_id).populate_existing()
        if for_update:
            query = query.with_for_update()
        booking = query.first()
        if not booking:
            raise BookingNotFound(booking_id)
        return booking

    @staticmethod
    def _require_active(booking: Booking) -> None:
        if booking.status != BookingStatus.CHECKED_IN:
            raise BookingNotActive(booking.id, booking.status.value)

    @staticmethod
    def _guest_phone(booking: Booking) -> Optional[str]:
        customer = booking.customer
        return customer.whatsapp or customer.phone if customer else None

    @staticmethod
    def _booking_summary(booking: Booking) -> Dict[str, Any]:
        return {
            "id": booking.id,
            "booking_code": booking.booking_code,
            "room_id": booking.room_id,
            "customer_id": booking.customer_id,
            "cashier_id": booking.cashier_id,
            "status": booking.status,
            "stay_kind": booking.stay_kind,
            "check_in": booking.check_in,
            "expected_checkout": booking.expected_checkout,
            "check_out": booking.check_out,
            "number_of_nights": booking.number_of_nights,
            "number_of_hours": booking.number_of_hours,
            "base_price": to_money(booking.base_price),
            "additional_charges": to_money(booking.additional_charges),
            "discounts": to_money(booking.discounts),
            "late_checkout_charge": to_money(booking.late_checkout_charge),
            "total_amount": to_money(booking.total_amount),
            "amount_paid": to_money(booking.amount_paid),
            "balance": booking.balance,
        }

    def _notify(self, event_kind: str, payload: Dict[str, Any], warnings: List[str]) -> bool:
        sent = self.notifier.notify(event_kind, payload)
        if not sent:
            warnings.append(f"{event_kind} notification was not sent")
        return sent

    def _publish_checked_in(self, booking: Booking, cashier_id: Optional[int]) -> None:
        self._publish_event(Event(
            event_type=EventType.GUEST_CHECKED_IN,
            timestamp=datetime.now(),
            data=GuestCheckedInData(
                booking_id=booking.id,
                booking_code=booking.booking_code,
                customer_id=booking.customer_id,
                customer_name=booking.customer.full_name,
                room_id=booking.room_id,
                room_number=booking.room.room_number,
                stay_kind=booking.stay_kind.value,
                base_price=to_money(booking.base_price),
                expected_checkout=booking.expected_checkout.isoformat(),
                cashier_id=cashier_id
            ).to_dict(),
            source="ledger_service"
        ))
        self._publish_event(Event(
            event_type=EventType.ROOM_STATUS_CHANGED,
            timestamp=datetime.now(),
            data=RoomStatusChangedData(
                room_id=booking.room_id,
                room_number=booking.room.room_number,
                old_status=RoomStatus.AVAILABLE.value,
                new_status=RoomStatus.OCCUPIED.value,
                reason="check_in"
            ).to_dict(),
            source="ledger_service"
        ))
