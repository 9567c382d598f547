"""
Product catalog routes
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from innkeeper.database import get_db
from innkeeper.models.ontology import Employee
from innkeeper.models.schemas import ProductResponse
from innkeeper.security.auth import get_current_user
from innkeeper.services.catalog_service import CatalogService

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=List[ProductResponse])
def list_products(
    category: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Active products"""
    return CatalogService(db).list_products(is_active=True, category=category)
