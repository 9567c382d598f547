# Ontology Models
from innkeeper.models.ontology import (
    Employee, Room, Product, Customer, BlacklistEntry, Booking,
    BookingCharge, Discount, Payment, PaymentSplit, Refund, CashierSession
)

__all__ = [
    'Employee', 'Room', 'Product', 'Customer', 'BlacklistEntry', 'Booking',
    'BookingCharge', 'Discount', 'Payment', 'PaymentSplit', 'Refund', 'CashierSession'
]
