"""
Event bus - in-process publish/subscribe
Post-commit reactions (audit trail, cash alerts) subscribe here instead of
being called from the ledger services directly.
"""
from typing import Callable, Dict, List, Any
from dataclasses import dataclass, field
from datetime import datetime
import logging
import threading

logger = logging.getLogger(__name__)

Handler = Callable[["Event"], None]


@dataclass
class Event:
    """Ledger event envelope, published only after the transaction commits"""
    event_type: str
    timestamp: datetime
    data: Dict[str, Any]
    source: str
    event_id: str = field(default_factory=lambda: datetime.now().strftime("%Y%m%d%H%M%S%f"))


class EventBus:
    """
    Process-wide subscriber registry

        event_bus.subscribe(EventType.GUEST_CHECKED_OUT, handler)
        event_bus.publish(Event(...))
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._subscribers = {}
                    cls._instance._subscriber_lock = threading.Lock()
        return cls._instance

    def subscribe(self, event_type: str, handler: Handler) -> None:
        with self._subscriber_lock:
            handlers: List[Handler] = self._subscribers.setdefault(event_type, [])
            if handler not in handlers:
                handlers.append(handler)

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        with self._subscriber_lock:
            handlers = self._subscribers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

    def publish(self, event: Event) -> None:
        """Deliver synchronously; a failing handler is logged and skipped"""
        with self._subscriber_lock:
            handlers = list(self._subscribers.get(event.event_type, []))

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"{event.event_type} handler {getattr(handler, '__name__', handler)} failed: {e}",
                             exc_info=True)

    def clear_subscribers(self) -> None:
        with self._subscriber_lock:
            self._subscribers.clear()


event_bus = EventBus()
