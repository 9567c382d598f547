"""
Cash register routes - the cashier's own shift
"""
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from innkeeper.database import get_db
from innkeeper.models.ontology import Employee
from innkeeper.models.schemas import (
    CashOpenRequest, CashCloseRequest, CashSessionResponse,
    SessionSnapshotResponse, SessionCloseResponse
)
from innkeeper.security.auth import get_current_user
from innkeeper.services.cashier_service import CashierSessionService

router = APIRouter(prefix="/cash-register", tags=["cash register"])


@router.post("/open", response_model=CashSessionResponse, status_code=201)
def open_cash_register(
    data: CashOpenRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Open a shift"""
    service = CashierSessionService(db)
    return service.open(current_user.id, data.initial_cash)


@router.get("/current", response_model=SessionSnapshotResponse)
def get_current_cash_register(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Running totals of the open shift"""
    service = CashierSessionService(db)
    return service.current(current_user.id)


@router.post("/close", response_model=SessionCloseResponse)
def close_cash_register(
    data: CashCloseRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Close the shift; it waits for admin approval"""
    service = CashierSessionService(db)
    return service.close(current_user.id, data.actual_cash, data.notes)


@router.get("/sessions", response_model=List[CashSessionResponse])
def list_cash_registers(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    service = CashierSessionService(db)
    return service.list_sessions(current_user.id)
