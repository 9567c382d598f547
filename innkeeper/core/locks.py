"""
Per-resource locks

Each booking, room and cashier is an independently lockable resource.
Keys are tuples like ("booking", 12) or ("cashier", 3). Locks for several
keys are always taken in sorted order, and every acquire is bounded by a
timeout so no operation blocks indefinitely.
"""
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List, Optional, Tuple
import logging
import threading

from innkeeper.config import settings
from innkeeper.errors import ResourceBusy

logger = logging.getLogger(__name__)

ResourceKey = Tuple[str, Hashable]


class ResourceLocks:
    """
    Keyed lock registry (thread-safe singleton)

    Usage:
        with resource_locks.hold(("booking", booking_id), ("room", room_id)):
            ... read, validate, mutate, commit ...
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._locks: Dict[ResourceKey, threading.RLock] = {}
        self._guard = threading.Lock()
        self._initialized = True

    def _get(self, key: ResourceKey) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, *keys: ResourceKey, timeout: Optional[float] = None) -> Iterator[None]:
        """Acquire all keys (sorted, deduplicated), release in reverse order"""
        wait = settings.LOCK_TIMEOUT_SECONDS if timeout is None else timeout
        ordered = sorted(set(keys), key=lambda k: (k[0], str(k[1])))
        acquired: List[threading.RLock] = []
        try:
            for key in ordered:
                lock = self._get(key)
                if not lock.acquire(timeout=wait):
                    logger.warning(f"Timed out waiting for lock {key}")
                    raise ResourceBusy(
                        f"Resource {key[0]} {key[1]} is busy, try again",
                        resource=key[0], resource_id=key[1]
                    )
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def clear(self) -> None:
        """Drop all locks (tests only)"""
        with self._guard:
            self._locks.clear()


# Global lock registry
resource_locks = ResourceLocks()
