"""
Domain events
Published on the event bus after the owning transaction commits
"""
from enum import Enum
from dataclasses import dataclass, field, asdict
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any


class EventType(str, Enum):
    """Event types"""
    # Rooms
    ROOM_STATUS_CHANGED = "room.status_changed"

    # Bookings
    GUEST_CHECKED_IN = "booking.checked_in"
    CHARGES_ADDED = "booking.charges_added"
    DISCOUNT_APPLIED = "booking.discount_applied"
    GUEST_CHECKED_OUT = "booking.checked_out"

    # Money
    PAYMENT_RECEIVED = "payment.received"
    REFUND_ISSUED = "payment.refunded"

    # Cash register
    CASH_REGISTER_OPENED = "cash_register.opened"
    CASH_REGISTER_CLOSED = "cash_register.closed"


@dataclass
class BaseEventData:
    """Event payload base"""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        for key, value in result.items():
            if isinstance(value, datetime):
                result[key] = value.isoformat()
            elif isinstance(value, Decimal):
                result[key] = str(value)
        return result


@dataclass
class RoomStatusChangedData(BaseEventData):
    room_id: int = 0
    room_number: str = ""
    old_status: str = ""
    new_status: str = ""
    reason: str = ""


@dataclass
class GuestCheckedInData(BaseEventData):
    booking_id: int = 0
    booking_code: str = ""
    customer_id: int = 0
    customer_name: str = ""
    room_id: int = 0
    room_number: str = ""
    stay_kind: str = ""
    base_price: Decimal = Decimal("0")
    expected_checkout: str = ""
    cashier_id: Optional[int] = None


@dataclass
class ChargesAddedData(BaseEventData):
    booking_id: int = 0
    booking_code: str = ""
    charge_ids: list = field(default_factory=list)
    total_added: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    cashier_id: Optional[int] = None


@dataclass
class DiscountAppliedData(BaseEventData):
    booking_id: int = 0
    discount_id: int = 0
    discount_type: str = ""
    discount_amount: Decimal = Decimal("0")
    new_total: Decimal = Decimal("0")
    cashier_id: Optional[int] = None


@dataclass
class PaymentReceivedData(BaseEventData):
    booking_id: int = 0
    payment_id: int = 0
    amount: Decimal = Decimal("0")
    payment_method: str = ""
    new_balance: Decimal = Decimal("0")
    cashier_id: Optional[int] = None


@dataclass
class RefundIssuedData(BaseEventData):
    booking_id: int = 0
    refund_id: int = 0
    amount: Decimal = Decimal("0")
    authorized_by: int = 0
    cashier_id: Optional[int] = None


@dataclass
class GuestCheckedOutData(BaseEventData):
    booking_id: int = 0
    booking_code: str = ""
    customer_id: int = 0
    customer_name: str = ""
    room_id: int = 0
    room_number: str = ""
    check_out: str = ""
    late_checkout_charge: Decimal = Decimal("0")
    final_total: Decimal = Decimal("0")
    amount_paid: Decimal = Decimal("0")
    cashier_id: Optional[int] = None


@dataclass
class CashRegisterOpenedData(BaseEventData):
    session_id: int = 0
    cashier_id: int = 0
    initial_cash: Decimal = Decimal("0")


@dataclass
class CashRegisterClosedData(BaseEventData):
    session_id: int = 0
    cashier_id: int = 0
    expected_cash: Decimal = Decimal("0")
    actual_cash: Decimal = Decimal("0")
    difference: Decimal = Decimal("0")
