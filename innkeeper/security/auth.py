"""
Authentication and authorization
bcrypt password hashes, JWT bearer tokens, admin password checks for refunds
"""
import bcrypt
import logging
from datetime import datetime, timedelta, UTC
from typing import Optional, List
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from innkeeper.config import settings
from innkeeper.database import get_db
from innkeeper.models.ontology import Employee, EmployeeRole

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_password_hash(password: str) -> str:
    """Hash a password"""
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a password against its hash"""
    if not plain_password or not hashed_password:
        return False
    return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))


def authenticate(db: Session, username: str, password: str) -> Optional[Employee]:
    employee = db.query(Employee).filter(Employee.username == username).first()
    if not employee or not employee.is_active:
        return None
    if not verify_password(password, employee.password_hash):
        return None
    return employee


def find_authorizing_admin(db: Session, password: str,
                           admin_id: Optional[int] = None) -> Optional[Employee]:
    """
    Admin whose password matches.
    With admin_id only that admin is checked; otherwise any active admin.
    """
    query = db.query(Employee).filter(
        Employee.role == EmployeeRole.ADMIN,
        Employee.is_active == True  # noqa: E712
    )
    if admin_id is not None:
        query = query.filter(Employee.id == admin_id)
    for admin in query.order_by(Employee.id).all():
        if verify_password(password, admin.password_hash):
            return admin
    return None


def verify_admin_password(db: Session, admin_id: Optional[int], password: str) -> bool:
    return find_authorizing_admin(db, password, admin_id) is not None


def create_access_token(employee_id: int, role: EmployeeRole) -> str:
    """Create a JWT token"""
    expire = datetime.now(UTC) + timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS)
    to_encode = {
        "sub": str(employee_id),
        "role": role.value if isinstance(role, EmployeeRole) else str(role),
        "exp": expire
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode a JWT token"""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials"
        )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> Employee:
    """Employee behind the bearer token"""
    payload = decode_token(credentials.credentials)

    employee_id = int(payload.get("sub"))
    employee = db.query(Employee).filter(Employee.id == employee_id).first()

    if not employee:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    if not employee.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account disabled"
        )

    return employee


def require_role(allowed_roles: List[EmployeeRole]):
    """Role check dependency"""
    async def role_checker(current_user: Employee = Depends(get_current_user)):
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions"
            )
        return current_user
    return role_checker


require_admin = require_role([EmployeeRole.ADMIN])
require_staff = require_role([EmployeeRole.ADMIN, EmployeeRole.CASHIER])
