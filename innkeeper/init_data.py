"""
Initial data script
Creates the default admin and cashier, a few rooms and minibar products.

Default accounts (override with INITIAL_ADMIN_PASSWORD / INITIAL_CASHIER_PASSWORD):
  admin     Administrator
  cashier1  Front desk
"""
import os
import logging
from decimal import Decimal

from innkeeper.database import SessionLocal, init_db
from innkeeper.models.ontology import Employee, EmployeeRole, Room, RoomStatus, Product
from innkeeper.security.auth import get_password_hash

logger = logging.getLogger(__name__)


def init_employees(db):
    accounts = [
        ("admin", os.environ.get("INITIAL_ADMIN_PASSWORD", "password"), "Administrator", EmployeeRole.ADMIN),
        ("cashier1", os.environ.get("INITIAL_CASHIER_PASSWORD", "password"), "Front desk", EmployeeRole.CASHIER),
    ]
    for username, password, full_name, role in accounts:
        if db.query(Employee).filter(Employee.username == username).first():
            continue
        db.add(Employee(
            username=username,
            password_hash=get_password_hash(password),
            full_name=full_name,
            role=role,
            is_active=True,
        ))
    db.commit()


def init_rooms(db):
    rooms = [
        # number, type, floor, daily, 3h, 6h
        ("101", "standard", 1, Decimal("150.00"), Decimal("60.00"), Decimal("90.00")),
        ("102", "standard", 1, Decimal("150.00"), Decimal("60.00"), Decimal("90.00")),
        ("201", "matrimonial", 2, Decimal("220.00"), Decimal("80.00"), Decimal("120.00")),
        ("202", "suite", 2, Decimal("350.00"), Decimal("120.00"), Decimal("180.00")),
    ]
    for number, room_type, floor, daily, short_3h, short_6h in rooms:
        if db.query(Room).filter(Room.room_number == number).first():
            continue
        db.add(Room(
            room_number=number,
            room_type=room_type,
            floor=floor,
            status=RoomStatus.AVAILABLE,
            daily_price=daily,
            short_stay_3h_price=short_3h,
            short_stay_6h_price=short_6h,
        ))
    db.commit()


def init_products(db):
    products = [
        ("Water 500ml", "minibar", Decimal("5.00"), Decimal("0"), True, 48),
        ("Soda 2L", "minibar", Decimal("15.00"), Decimal("0"), True, 24),
        ("Laundry", "service", Decimal("30.00"), Decimal("13"), False, 0),
    ]
    for name, category, price, tax_rate, track, stock in products:
        if db.query(Product).filter(Product.name == name).first():
            continue
        db.add(Product(
            name=name,
            category=category,
            unit_price=price,
            tax_rate=tax_rate,
            track_inventory=track,
            stock_quantity=stock,
            is_active=True,
        ))
    db.commit()


def main():
    logging.basicConfig(level=logging.INFO)
    init_db()
    db = SessionLocal()
    try:
        init_employees(db)
        init_rooms(db)
        init_products(db)
        logger.info("Initial data created")
    finally:
        db.close()


if __name__ == '__main__':
    main()
