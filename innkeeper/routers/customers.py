"""
Customer routes
"""
from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from innkeeper.database import get_db
from innkeeper.models.ontology import Employee
from innkeeper.models.schemas import CustomerCreate, CustomerResponse
from innkeeper.security.auth import get_current_user
from innkeeper.services.customer_service import CustomerService

router = APIRouter(prefix="/customers", tags=["customers"])


@router.post("", response_model=CustomerResponse, status_code=201)
def create_customer(
    data: CustomerCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    return CustomerService(db).create_customer(data)


@router.get("/search", response_model=List[CustomerResponse])
def search_customers(
    q: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Search by name, document number or phone"""
    return CustomerService(db).search_customers(q)
