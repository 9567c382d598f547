"""
Notification emitter - guest/admin WhatsApp messages after committed operations

Event kinds:
- charge_added:         guest WhatsApp, after add_charges
- payment_confirmation: guest WhatsApp, after record_payment
- checkout_completed:   admin phone, after checkout

Delivery is best effort. notify() never raises; the ledger turns a False
into a warning on the operation result.
"""
import logging
from typing import Any, Callable, Dict, Optional, Tuple

import httpx

from innkeeper.config import settings
from innkeeper.core.money import format_money
from innkeeper.core.notification import NotificationChannel, NotificationChannelRegistry

logger = logging.getLogger(__name__)

CHARGE_ADDED = "charge_added"
PAYMENT_CONFIRMATION = "payment_confirmation"
CHECKOUT_COMPLETED = "checkout_completed"


# ============== Channels ==============

class WhatsAppChannel(NotificationChannel):
    """Posts messages to an HTTP WhatsApp gateway"""

    def __init__(
        self,
        gateway_url: str = "",
        api_token: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self.gateway_url = gateway_url
        self.headers = {"Content-Type": "application/json"}
        if api_token:
            self.headers["Authorization"] = f"Bearer {api_token}"
        self.timeout = timeout

    def send(
        self,
        recipient: str,
        subject: str,
        content: str,
        extra: Optional[Dict] = None,
    ) -> bool:
        extra = extra or {}
        if not self.gateway_url:
            logger.error("WhatsApp gateway URL not configured")
            return False

        payload = {
            "phone": recipient,
            "message": f"*{subject}*\n{content}",
        }
        if extra.get("reference"):
            payload["reference"] = extra["reference"]

        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.post(self.gateway_url, json=payload, headers=self.headers)
                resp.raise_for_status()
            logger.info(f"WhatsApp sent to {recipient}: {subject}")
            return True
        except httpx.HTTPError as e:
            logger.warning(f"Failed to send WhatsApp to {recipient}: {e}")
            return False

    def get_channel_type(self) -> str:
        return "whatsapp"


class LogChannel(NotificationChannel):
    """Writes messages to the log; used when no gateway is configured"""

    def send(
        self,
        recipient: str,
        subject: str,
        content: str,
        extra: Optional[Dict] = None,
    ) -> bool:
        logger.info(f"[notification -> {recipient}] {subject}\n{content}")
        return True

    def get_channel_type(self) -> str:
        return "log"


# ============== Message builders ==============

def _money(value: Any) -> str:
    return format_money(value, settings.CURRENCY_LABEL)


def build_charge_added(payload: Dict[str, Any]) -> Tuple[str, str]:
    subject = f"Charges added - {payload.get('booking_code', '')}"
    content = (
        f"Hello {payload.get('name', '')},\n"
        f"New charges: {_money(payload.get('charge_amount'))}\n"
        f"Booking total: {_money(payload.get('total_amount'))}"
    )
    return subject, content


def build_payment_confirmation(payload: Dict[str, Any]) -> Tuple[str, str]:
    subject = f"Payment received - {payload.get('booking_code', '')}"
    content = (
        f"Hello {payload.get('name', '')},\n"
        f"Room: {payload.get('room_number', '')}\n"
        f"Amount paid: {_money(payload.get('amount_paid'))}\n"
        f"Total paid: {_money(payload.get('total_paid'))} of {_money(payload.get('total_amount'))}\n"
        f"Balance: {_money(payload.get('balance'))}"
    )
    return subject, content


def build_checkout_completed(payload: Dict[str, Any]) -> Tuple[str, str]:
    subject = f"Checkout - room {payload.get('room_number', '')}"
    lines = [
        f"Guest: {payload.get('customer_name', '')} ({payload.get('document_number') or '-'})",
        f"Age: {payload.get('age') or '-'} | Nationality: {payload.get('nationality') or '-'}"
        f" | Origin: {payload.get('origin') or '-'}",
        f"Check-in: {payload.get('check_in', '')}",
        f"Check-out: {payload.get('check_out', '')}",
        f"Total: {_money(payload.get('total_amount'))}",
    ]
    if payload.get("late_checkout_charge"):
        lines.append(f"Late checkout: {_money(payload['late_checkout_charge'])}")
    if payload.get("charges_detail"):
        lines.append("Extras:")
        lines.append(payload["charges_detail"])
    return subject, "\n".join(lines)


MESSAGE_BUILDERS: Dict[str, Callable[[Dict[str, Any]], Tuple[str, str]]] = {
    CHARGE_ADDED: build_charge_added,
    PAYMENT_CONFIRMATION: build_payment_confirmation,
    CHECKOUT_COMPLETED: build_checkout_completed,
}


# ============== Emitter ==============

class NotificationEmitter:
    """
    Routes ledger notifications through the preferred registered channel.

    Usage:
        emitter = NotificationEmitter.from_settings()
        emitter.notify("payment_confirmation", {"phone": "+59170000000", ...})
    """

    def __init__(
        self,
        registry: Optional[NotificationChannelRegistry] = None,
        preferred_channel: str = "log",
        admin_phone: Optional[str] = None,
    ):
        self.registry = registry or NotificationChannelRegistry()
        if not self.registry.get_all_channels():
            self.registry.register(LogChannel())
        self.preferred_channel = preferred_channel
        self.admin_phone = admin_phone

    @classmethod
    def from_settings(cls) -> "NotificationEmitter":
        registry = NotificationChannelRegistry()
        registry.register(LogChannel())
        preferred = "log"
        if settings.WHATSAPP_ENABLED and settings.WHATSAPP_GATEWAY_URL:
            registry.register(WhatsAppChannel(
                gateway_url=settings.WHATSAPP_GATEWAY_URL,
                api_token=settings.WHATSAPP_API_TOKEN,
                timeout=settings.WHATSAPP_TIMEOUT,
            ))
            preferred = "whatsapp"
        return cls(registry, preferred_channel=preferred, admin_phone=settings.ADMIN_NOTIFY_PHONE)

    def recipient_for(self, event_kind: str, payload: Dict[str, Any]) -> Optional[str]:
        if event_kind == CHECKOUT_COMPLETED:
            return payload.get("admin_phone") or self.admin_phone
        return payload.get("phone")

    def notify(self, event_kind: str, payload: Dict[str, Any]) -> bool:
        """Send one notification; returns False instead of raising"""
        try:
            builder = MESSAGE_BUILDERS.get(event_kind)
            if builder is None:
                logger.warning(f"Unknown notification kind: {event_kind}")
                return False

            recipient = self.recipient_for(event_kind, payload)
            if not recipient:
                logger.warning(f"No recipient for {event_kind} notification")
                return False

            channel = (
                self.registry.get_channel(self.preferred_channel)
                or self.registry.get_channel("log")
            )
            if channel is None:
                logger.warning(f"No channel available for {event_kind} notification")
                return False

            subject, content = builder(payload)
            sent = channel.send(recipient, subject, content, {"reference": payload.get("booking_code")})
            if not sent:
                logger.warning(f"{event_kind} notification to {recipient} was not delivered")
            return sent
        except Exception as e:
            logger.error(f"Notification {event_kind} failed: {e}", exc_info=True)
            return False
