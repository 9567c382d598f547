"""
Auth routes
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from innkeeper.database import get_db
from innkeeper.models.ontology import Employee
from innkeeper.models.schemas import LoginRequest, Token
from innkeeper.security.auth import authenticate, create_access_token, get_current_user

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=Token)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    """Employee login"""
    employee = authenticate(db, data.username, data.password)
    if not employee:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password"
        )
    return Token(
        access_token=create_access_token(employee.id, employee.role),
        employee_id=employee.id,
        role=employee.role,
        full_name=employee.full_name,
    )


@router.get("/me")
def get_current_user_info(current_user: Employee = Depends(get_current_user)):
    return {
        "id": current_user.id,
        "username": current_user.username,
        "full_name": current_user.full_name,
        "role": current_user.role,
        "is_active": current_user.is_active,
    }
