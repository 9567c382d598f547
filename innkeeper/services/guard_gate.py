"""
Guard gate - blacklist capability consulted before check-in
The default gate reads the blacklist through the caller's session, so the check
and the booking insert share one transaction.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from innkeeper.database import atomic
from innkeeper.errors import Conflict, NotFound
from innkeeper.models.ontology import BlacklistEntry
from innkeeper.models.schemas import BlacklistCreate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GuardDecision:
    blocked: bool
    reason: Optional[str] = None


ALLOWED = GuardDecision(blocked=False)


class GuardGate(ABC):
    """Yes/no capability: may this document number check in?"""

    @abstractmethod
    def is_blocked(self, document_number: Optional[str]) -> GuardDecision:
        """Decision for one document number; empty numbers are never blocked"""


class BlacklistGuardGate(GuardGate):
    """Guard gate backed by the blacklist table"""

    def __init__(self, db: Session):
        self.db = db

    def is_blocked(self, document_number: Optional[str]) -> GuardDecision:
        if not document_number or not document_number.strip():
            return ALLOWED
        entry = self.db.query(BlacklistEntry).filter(
            BlacklistEntry.document_number == document_number.strip()
        ).first()
        if entry is None:
            return ALLOWED
        return GuardDecision(blocked=True, reason=entry.reason)


class BlacklistService:
    """Maintains the registry the guard gate reads"""

    def __init__(self, db: Session):
        self.db = db

    def list_entries(self) -> List[BlacklistEntry]:
        return self.db.query(BlacklistEntry).order_by(BlacklistEntry.created_at.desc()).all()

    def add_entry(self, data: BlacklistCreate, operator_id: Optional[int] = None) -> BlacklistEntry:
        document_number = data.document_number.strip()
        with atomic(self.db):
            existing = self.db.query(BlacklistEntry).filter(
                BlacklistEntry.document_number == document_number
            ).first()
            if existing:
                raise Conflict(
                    f"Document {document_number} is already blacklisted",
                    document_number=document_number
                )
            entry = BlacklistEntry(
                document_number=document_number,
                full_name=data.full_name,
                reason=data.reason,
                created_by=operator_id,
            )
            self.db.add(entry)
        self.db.refresh(entry)
        logger.info(f"Document {document_number} blacklisted by employee {operator_id}")
        return entry

    def remove_entry(self, entry_id: int) -> None:
        with atomic(self.db):
            entry = self.db.query(BlacklistEntry).filter(BlacklistEntry.id == entry_id).first()
            if not entry:
                raise NotFound(f"Blacklist entry {entry_id} not found", entry_id=entry_id)
            self.db.delete(entry)
        logger.info(f"Blacklist entry {entry_id} removed")
