"""
Payment and refund routes
"""
from typing import Optional
from fastapi import APIRouter, Depends, Header

from innkeeper.models.ontology import Employee
from innkeeper.models.schemas import PaymentCreate, PaymentReceiptResponse, RefundCreate, RefundResponse
from innkeeper.routers.deps import get_ledger_service
from innkeeper.security.auth import get_current_user
from innkeeper.services.ledger_service import LedgerService

router = APIRouter(tags=["payments"])


@router.post("/payments", response_model=PaymentReceiptResponse, status_code=201)
def record_payment(
    data: PaymentCreate,
    idempotency_key: Optional[str] = Header(None),
    service: LedgerService = Depends(get_ledger_service),
    current_user: Employee = Depends(get_current_user)
):
    """Take a payment; retries with the same Idempotency-Key are not charged twice"""
    return service.record_payment(data, current_user.id, idempotency_key=idempotency_key)


@router.post("/refunds", response_model=RefundResponse, status_code=201)
def issue_refund(
    data: RefundCreate,
    service: LedgerService = Depends(get_ledger_service),
    current_user: Employee = Depends(get_current_user)
):
    """Refund authorized with an admin password"""
    return service.issue_refund(data, current_user.id)
