"""
Blacklist routes (admin)
"""
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from innkeeper.database import get_db
from innkeeper.models.ontology import Employee
from innkeeper.models.schemas import BlacklistCreate, BlacklistResponse
from innkeeper.security.auth import require_admin
from innkeeper.services.guard_gate import BlacklistService

router = APIRouter(prefix="/blacklist", tags=["blacklist"])


@router.get("", response_model=List[BlacklistResponse])
def list_blacklist(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    return BlacklistService(db).list_entries()


@router.post("", response_model=BlacklistResponse, status_code=201)
def add_to_blacklist(
    data: BlacklistCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    return BlacklistService(db).add_entry(data, current_user.id)


@router.delete("/{entry_id}")
def remove_from_blacklist(
    entry_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    BlacklistService(db).remove_entry(entry_id)
    return {"message": "Blacklist entry removed"}
