"""
Ledger errors

Every rejection is caller-correctable and carries:
- code:        machine-readable reason ('ROOM_UNAVAILABLE', ...)
- message:     human-readable explanation
- status_code: HTTP-equivalent outcome used by the routers

All errors derive from ValueError so existing `except ValueError` call sites
keep treating them as bad requests.
"""
from decimal import Decimal
from typing import Any, Dict, Optional


class LedgerError(ValueError):
    """Base class for rejected ledger operations"""

    code = "LEDGER_ERROR"
    status_code = 400

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"error": self.code, "detail": self.message}
        for key, value in self.extra.items():
            result[key] = str(value) if isinstance(value, Decimal) else value
        return result


# ============== Error kinds ==============

class NotFound(LedgerError):
    code = "NOT_FOUND"
    status_code = 404


class Conflict(LedgerError):
    code = "CONFLICT"
    status_code = 409


class ValidationFailed(LedgerError):
    code = "VALIDATION_FAILED"
    status_code = 422


class PolicyViolation(LedgerError):
    code = "POLICY_VIOLATION"
    status_code = 400


class AuthorizationFailed(LedgerError):
    code = "AUTHORIZATION_FAILED"
    status_code = 403


# ============== Not found ==============

class RoomNotFound(NotFound):
    code = "ROOM_NOT_FOUND"

    def __init__(self, room_id: Any):
        super().__init__(f"Room {room_id} not found", room_id=room_id)


class BookingNotFound(NotFound):
    code = "BOOKING_NOT_FOUND"

    def __init__(self, booking_id: Any):
        super().__init__(f"Booking {booking_id} not found", booking_id=booking_id)


class CustomerNotFound(NotFound):
    code = "CUSTOMER_NOT_FOUND"

    def __init__(self, customer_id: Any):
        super().__init__(f"Customer {customer_id} not found", customer_id=customer_id)


class ProductNotFound(NotFound):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: Any):
        super().__init__(f"Product {product_id} not found", product_id=product_id)


class EmployeeNotFound(NotFound):
    code = "EMPLOYEE_NOT_FOUND"

    def __init__(self, employee_id: Any):
        super().__init__(f"Employee {employee_id} not found", employee_id=employee_id)


# ============== Conflicts ==============

class RoomUnavailable(Conflict):
    code = "ROOM_UNAVAILABLE"

    def __init__(self, room_id: Any, status: Optional[str] = None):
        msg = f"Room {room_id} is not available"
        if status:
            msg += f" (status: {status})"
        super().__init__(msg, room_id=room_id, room_status=status)


class InvalidRoomTransition(Conflict):
    code = "INVALID_ROOM_TRANSITION"


class BookingNotActive(Conflict):
    code = "BOOKING_NOT_ACTIVE"

    def __init__(self, booking_id: Any, status: str):
        super().__init__(
            f"Booking {booking_id} is not active (status: {status})",
            booking_id=booking_id, booking_status=status
        )


class BookingAlreadyProcessed(Conflict):
    code = "BOOKING_ALREADY_PROCESSED"

    def __init__(self, booking_id: Any, status: str):
        super().__init__(
            f"Booking {booking_id} was already processed (status: {status})",
            booking_id=booking_id, booking_status=status
        )


class SessionAlreadyOpen(Conflict):
    code = "SESSION_ALREADY_OPEN"

    def __init__(self, cashier_id: Any, session_id: Any = None):
        super().__init__(
            "Cashier already has an open cash register",
            cashier_id=cashier_id, session_id=session_id
        )


class NoOpenSession(Conflict):
    code = "NO_OPEN_SESSION"

    def __init__(self, cashier_id: Any):
        super().__init__("No open cash register", cashier_id=cashier_id)


class ResourceBusy(Conflict):
    code = "RESOURCE_BUSY"


# ============== Policy violations ==============

class CustomerBlocked(PolicyViolation):
    code = "CUSTOMER_BLOCKED"

    def __init__(self, document_number: str, reason: Optional[str]):
        super().__init__(
            f"Customer is blacklisted - reason: {reason or 'not given'}",
            document_number=document_number, reason=reason
        )
        self.reason = reason


class DiscountExceedsTotal(PolicyViolation):
    code = "DISCOUNT_EXCEEDS_TOTAL"

    def __init__(self, discount_amount: Decimal, total_amount: Decimal):
        super().__init__(
            f"Discount {discount_amount} cannot exceed the booking total {total_amount}",
            discount_amount=discount_amount, total_amount=total_amount
        )


class PaymentExceedsBalance(PolicyViolation):
    code = "PAYMENT_EXCEEDS_BALANCE"

    def __init__(self, amount: Decimal, balance: Decimal):
        super().__init__(
            f"Payment {amount} exceeds the outstanding balance {balance}",
            amount=amount, balance=balance
        )


class RefundExceedsPaid(PolicyViolation):
    code = "REFUND_EXCEEDS_PAID"

    def __init__(self, amount: Decimal, amount_paid: Decimal):
        super().__init__(
            f"Refund {amount} exceeds the amount paid {amount_paid}",
            amount=amount, amount_paid=amount_paid
        )


class OutstandingBalance(PolicyViolation):
    code = "OUTSTANDING_BALANCE"

    def __init__(self, balance: Decimal, label: str = "Bs."):
        super().__init__(
            f"Outstanding balance: {label} {balance:.2f}. Complete the payment before checkout.",
            balance=balance
        )
        self.balance = balance


class InsufficientStock(PolicyViolation):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: Any, requested: int, available: int):
        super().__init__(
            f"Product {product_id} has {available} in stock, {requested} requested",
            product_id=product_id, requested=requested, available=available
        )
