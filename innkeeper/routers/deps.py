"""
Shared router dependencies
"""
from fastapi import Depends
from sqlalchemy.orm import Session

from innkeeper.database import get_db
from innkeeper.services.ledger_service import LedgerService
from innkeeper.services.notification_service import NotificationEmitter

_notifier = None


def get_notifier() -> NotificationEmitter:
    """Process-wide notification emitter built from settings"""
    global _notifier
    if _notifier is None:
        _notifier = NotificationEmitter.from_settings()
    return _notifier


def get_ledger_service(
    db: Session = Depends(get_db),
    notifier: NotificationEmitter = Depends(get_notifier)
) -> LedgerService:
    return LedgerService(db, notifier=notifier)
