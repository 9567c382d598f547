"""
Customer service - guest records used by check-in
"""
from typing import List, Optional
import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from innkeeper.database import atomic
from innkeeper.errors import CustomerNotFound, Conflict
from innkeeper.models.ontology import Customer
from innkeeper.models.schemas import CustomerCreate

logger = logging.getLogger(__name__)


class CustomerService:
    """Customers"""

    def __init__(self, db: Session):
        self.db = db

    def get_customer(self, customer_id: int) -> Customer:
        customer = self.db.query(Customer).filter(Customer.id == customer_id).first()
        if not customer:
            raise CustomerNotFound(customer_id)
        return customer

    def find_by_document(self, document_number: Optional[str]) -> Optional[Customer]:
        if not document_number:
            return None
        return self.db.query(Customer).filter(
            Customer.document_number == document_number.strip()
        ).first()

    def search_customers(self, q: str, limit: int = 20) -> List[Customer]:
        """Match name, document number or phone"""
        pattern = f"%{q.strip()}%"
        return self.db.query(Customer).filter(
            or_(
                Customer.full_name.ilike(pattern),
                Customer.document_number.ilike(pattern),
                Customer.phone.ilike(pattern),
            )
        ).order_by(Customer.full_name).limit(limit).all()

    def create_customer(self, data: CustomerCreate) -> Customer:
        with atomic(self.db):
            customer = self.build_customer(data)
        self.db.refresh(customer)
        logger.info(f"Customer {customer.id} created: {customer.full_name}")
        return customer

    def build_customer(self, data: CustomerCreate) -> Customer:
        """Insert without committing; WhatsApp falls back to the phone number"""
        if data.document_number and self.find_by_document(data.document_number):
            raise Conflict(
                f"A customer with document {data.document_number} already exists",
                document_number=data.document_number
            )
        customer = Customer(
            full_name=data.full_name,
            document_type=data.document_type,
            document_number=data.document_number.strip() if data.document_number else None,
            phone=data.phone,
            whatsapp=data.whatsapp or data.phone,
            email=data.email,
            address=data.address,
            city=data.city,
            country=data.country,
            age=data.age,
            nationality=data.nationality,
            origin=data.origin,
            total_stays=0,
            total_spent=0,
            is_frequent=False,
        )
        self.db.add(customer)
        self.db.flush()
        return customer
