"""
Event handlers - post-commit reactions to ledger events
Writes the audit trail and flags cash discrepancies
"""
from decimal import Decimal, InvalidOperation
import logging

from innkeeper.services.event_bus import event_bus, Event
from innkeeper.models.events import EventType

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("innkeeper.audit")

AUDITED_EVENTS = (
    EventType.GUEST_CHECKED_IN,
    EventType.CHARGES_ADDED,
    EventType.DISCOUNT_APPLIED,
    EventType.PAYMENT_RECEIVED,
    EventType.REFUND_ISSUED,
    EventType.GUEST_CHECKED_OUT,
    EventType.ROOM_STATUS_CHANGED,
    EventType.CASH_REGISTER_OPENED,
    EventType.CASH_REGISTER_CLOSED,
)


class EventHandlers:
    """Ledger event subscribers"""

    def __init__(self):
        self._registered = False

    def handle_audit(self, event: Event) -> None:
        """One audit line per committed ledger event"""
        fields = " ".join(
            f"{key}={value}" for key, value in event.data.items() if key != "timestamp"
        )
        audit_logger.info(f"[{event.event_id}] {event.source} {event.event_type} {fields}")

    def handle_cash_register_closed(self, event: Event) -> None:
        """Shift closed with money over or short"""
        try:
            difference = Decimal(str(event.data.get("difference", "0")))
        except InvalidOperation:
            logger.error(f"Bad difference in event {event.event_id}: {event.data.get('difference')}")
            return
        if difference != 0:
            logger.warning(
                f"Cash register {event.data.get('session_id')} of cashier "
                f"{event.data.get('cashier_id')} is {'over' if difference > 0 else 'short'} "
                f"by {abs(difference)}"
            )

    def register_handlers(self, event_bus_instance=None) -> None:
        if self._registered:
            return

        bus = event_bus_instance or event_bus
        for event_type in AUDITED_EVENTS:
            bus.subscribe(event_type, self.handle_audit)
        bus.subscribe(EventType.CASH_REGISTER_CLOSED, self.handle_cash_register_closed)

        self._registered = True
        logger.info("Event handlers registered successfully")

    def unregister_handlers(self, event_bus_instance=None) -> None:
        """Remove all subscriptions (tests)"""
        bus = event_bus_instance or event_bus
        for event_type in AUDITED_EVENTS:
            bus.unsubscribe(event_type, self.handle_audit)
        bus.unsubscribe(EventType.CASH_REGISTER_CLOSED, self.handle_cash_register_closed)

        self._registered = False
        logger.info("Event handlers unregistered")


# Global event handlers
event_handlers = EventHandlers()


def register_event_handlers():
    """Subscribe handlers (called at application startup)"""
    event_handlers.register_handlers()
