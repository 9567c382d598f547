"""
Ontology objects - persisted lodging entities
Room, Customer, Booking and its ledger lines, Payment, Refund, CashierSession
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, DateTime, Date,
    ForeignKey, Text, Enum as SQLEnum, Boolean, Numeric, Index, text
)
from sqlalchemy.orm import relationship
from innkeeper.database import Base
from innkeeper.core.money import to_money


# ============== Enums ==============

class RoomStatus(str, Enum):
    """Room lifecycle"""
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    CLEANING = "cleaning"


class BookingStatus(str, Enum):
    """Booking lifecycle"""
    RESERVED = "reserved"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"


class StayKind(str, Enum):
    """Pricing mode"""
    DAILY = "daily"          # daily_price * nights
    HOURS_3 = "3_hours"      # fixed 3h bucket
    HOURS_6 = "6_hours"      # fixed 6h bucket
    HOURLY = "hourly"        # 3h price prorated per hour


class ChargeType(str, Enum):
    PRODUCT = "product"
    SERVICE = "service"
    ADDITIONAL_INCOME = "additional_income"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    CHECK = "check"
    OTHER = "other"


class RefundStatus(str, Enum):
    APPROVED = "approved"


class CashierSessionStatus(str, Enum):
    OPEN = "open"
    PENDING_APPROVAL = "pending_approval"
    CLOSED = "closed"


class EmployeeRole(str, Enum):
    ADMIN = "admin"
    CASHIER = "cashier"


# ============== Staff ==============

class Employee(Base):
    """Front-desk staff: cashiers take payments, admins authorize refunds"""
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(100), nullable=False)
    role = Column(SQLEnum(EmployeeRole), nullable=False, default=EmployeeRole.CASHIER)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


# ============== Inventory ==============

class Room(Base):
    """
    Room - status only moves through booking lifecycle events and housekeeping.
    The 6-hour short-stay price doubles as the late-checkout hourly rate.
    """
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    room_number = Column(String(10), unique=True, nullable=False)
    room_type = Column(String(50), nullable=False, default="standard")
    floor = Column(Integer, default=1)
    max_occupancy = Column(Integer, default=2)
    status = Column(SQLEnum(RoomStatus), nullable=False, default=RoomStatus.AVAILABLE)
    daily_price = Column(Numeric(10, 2), nullable=False, default=0)
    short_stay_3h_price = Column(Numeric(10, 2), default=0)
    short_stay_6h_price = Column(Numeric(10, 2), default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    bookings = relationship("Booking", back_populates="room")

    @property
    def late_checkout_hourly_rate(self) -> Decimal:
        return to_money(self.short_stay_6h_price)


class Product(Base):
    """Minibar / shop item that can be charged to a booking"""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    category = Column(String(50))
    unit_price = Column(Numeric(10, 2), nullable=False)
    tax_rate = Column(Numeric(5, 2), default=0)          # percent
    track_inventory = Column(Boolean, default=False)
    stock_quantity = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


# ============== Guests ==============

class Customer(Base):
    """Guest with stay aggregates updated at checkout"""
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(100), nullable=False)
    document_type = Column(String(20), default="CI")
    document_number = Column(String(50), index=True)
    phone = Column(String(20))
    whatsapp = Column(String(20))
    email = Column(String(100))
    address = Column(String(200))
    city = Column(String(100))
    country = Column(String(100), default="Bolivia")
    age = Column(Integer)
    nationality = Column(String(50), default="Bolivia")
    origin = Column(String(100))
    total_stays = Column(Integer, default=0)
    total_spent = Column(Numeric(12, 2), default=0)
    is_frequent = Column(Boolean, default=False)
    last_stay_date = Column(Date)
    created_at = Column(DateTime, default=datetime.utcnow)

    bookings = relationship("Booking", back_populates="customer")


class BlacklistEntry(Base):
    """Guard gate registry"""
    __tablename__ = "blacklist"

    id = Column(Integer, primary_key=True, index=True)
    document_number = Column(String(50), unique=True, nullable=False)
    full_name = Column(String(100))
    reason = Column(Text, nullable=False)
    created_by = Column(Integer, ForeignKey("employees.id"))
    created_at = Column(DateTime, default=datetime.utcnow)


# ============== Booking ledger ==============

class Booking(Base):
    """
    Booking - aggregate root of one stay's financial state.
    total_amount = base_price + additional_charges - discounts + late_checkout_charge
    """
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_code = Column(String(40), unique=True, nullable=False)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    cashier_id = Column(Integer, ForeignKey("employees.id"))
    status = Column(SQLEnum(BookingStatus), nullable=False, default=BookingStatus.CHECKED_IN)
    stay_kind = Column(SQLEnum(StayKind), nullable=False, default=StayKind.DAILY)
    check_in = Column(DateTime, nullable=False)
    expected_checkout = Column(DateTime, nullable=False)
    check_out = Column(DateTime)
    number_of_nights = Column(Integer, default=1)
    number_of_hours = Column(Integer)
    number_of_guests = Column(Integer, default=1)
    notes = Column(Text)

    base_price = Column(Numeric(10, 2), nullable=False, default=0)
    additional_charges = Column(Numeric(10, 2), nullable=False, default=0)
    discounts = Column(Numeric(10, 2), nullable=False, default=0)
    late_checkout_charge = Column(Numeric(10, 2), nullable=False, default=0)
    late_checkout_hours = Column(Integer, nullable=False, default=0)
    late_checkout_committed = Column(Boolean, nullable=False, default=False)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    amount_paid = Column(Numeric(10, 2), nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    room = relationship("Room", back_populates="bookings")
    customer = relationship("Customer", back_populates="bookings")
    cashier = relationship("Employee", foreign_keys=[cashier_id])
    charges = relationship("BookingCharge", back_populates="booking", order_by="BookingCharge.id")
    booking_discounts = relationship("Discount", back_populates="booking", order_by="Discount.id")
    payments = relationship("Payment", back_populates="booking", order_by="Payment.id")
    refunds = relationship("Refund", back_populates="booking", order_by="Refund.id")

    def computed_total(self) -> Decimal:
        """Total derived from its components"""
        return (
            to_money(self.base_price)
            + to_money(self.additional_charges)
            - to_money(self.discounts)
            + to_money(self.late_checkout_charge)
        )

    @property
    def balance(self) -> Decimal:
        return to_money(self.total_amount) - to_money(self.amount_paid)

    @property
    def is_active(self) -> bool:
        return self.status == BookingStatus.CHECKED_IN


class BookingCharge(Base):
    """Append-only extra charge line"""
    __tablename__ = "booking_charges"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"))
    cashier_id = Column(Integer, ForeignKey("employees.id"))
    charge_type = Column(SQLEnum(ChargeType), nullable=False, default=ChargeType.PRODUCT)
    description = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(10, 2), nullable=False)
    tax_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)
    idempotency_key = Column(String(80), index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    booking = relationship("Booking", back_populates="charges")
    product = relationship("Product")


class Discount(Base):
    """Append-only discount line"""
    __tablename__ = "discounts"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    cashier_id = Column(Integer, ForeignKey("employees.id"))
    discount_type = Column(SQLEnum(DiscountType), nullable=False)
    discount_value = Column(Numeric(10, 2), nullable=False)
    discount_amount = Column(Numeric(10, 2), nullable=False)
    reason = Column(Text, nullable=False)
    authorized_by = Column(Integer, ForeignKey("employees.id"))
    created_at = Column(DateTime, default=datetime.utcnow)

    booking = relationship("Booking", back_populates="booking_discounts")


class Payment(Base):
    """Committed payment; belongs to a cashier's shift by time window"""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    cashier_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(SQLEnum(PaymentMethod), nullable=False)
    payment_date = Column(DateTime, nullable=False, default=datetime.now, index=True)
    card_last_digits = Column(String(4))
    transaction_reference = Column(String(100))
    notes = Column(Text)
    idempotency_key = Column(String(80), unique=True)

    booking = relationship("Booking", back_populates="payments")
    splits = relationship("PaymentSplit", back_populates="payment", order_by="PaymentSplit.id")


class PaymentSplit(Base):
    """Mixed-method breakdown of one payment"""
    __tablename__ = "payment_splits"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=False)
    payment_method = Column(SQLEnum(PaymentMethod), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    card_last_digits = Column(String(4))
    transaction_reference = Column(String(100))

    payment = relationship("Payment", back_populates="splits")


class Refund(Base):
    """Admin-authorized refund; decreases the booking's amount_paid"""
    __tablename__ = "refunds"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    payment_id = Column(Integer, ForeignKey("payments.id"))
    cashier_id = Column(Integer, ForeignKey("employees.id"))
    authorized_by = Column(Integer, ForeignKey("employees.id"), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    reason = Column(Text, nullable=False)
    notes = Column(Text)
    status = Column(SQLEnum(RefundStatus), nullable=False, default=RefundStatus.APPROVED)
    created_at = Column(DateTime, default=datetime.now)

    booking = relationship("Booking", back_populates="refunds")


# ============== Cash register ==============

class CashierSession(Base):
    """
    One cashier shift. Per-method totals are derived from payments while open
    and frozen into the row at close.
    """
    __tablename__ = "cash_registers"
    __table_args__ = (
        # at most one open shift per cashier; SQLEnum stores the member name
        Index(
            "uq_cash_registers_open_cashier",
            "cashier_id",
            unique=True,
            sqlite_where=text("status = 'OPEN'"),
            postgresql_where=text("status = 'OPEN'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    cashier_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    opening_time = Column(DateTime, nullable=False)
    closing_time = Column(DateTime)
    initial_cash = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(SQLEnum(CashierSessionStatus), nullable=False, default=CashierSessionStatus.OPEN)

    total_cash_payments = Column(Numeric(10, 2))
    total_card_payments = Column(Numeric(10, 2))
    total_transfer_payments = Column(Numeric(10, 2))
    total_check_payments = Column(Numeric(10, 2))
    total_other_payments = Column(Numeric(10, 2))
    expected_cash = Column(Numeric(10, 2))
    actual_cash = Column(Numeric(10, 2))
    difference = Column(Numeric(10, 2))
    notes = Column(Text)

    cashier = relationship("Employee")

    @property
    def is_open(self) -> bool:
        return self.status == CashierSessionStatus.OPEN


__all__ = [
    "RoomStatus", "BookingStatus", "StayKind", "ChargeType", "DiscountType",
    "PaymentMethod", "RefundStatus", "CashierSessionStatus", "EmployeeRole",
    "Employee", "Room", "Product", "Customer", "BlacklistEntry", "Booking",
    "BookingCharge", "Discount", "Payment", "PaymentSplit", "Refund",
    "CashierSession",
]
