"""
Pytest configuration and shared fixtures
"""
import pytest
from datetime import datetime
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from innkeeper.core.locks import resource_locks
from innkeeper.database import Base, get_db
from innkeeper.models import ontology  # noqa: F401
from innkeeper.models.ontology import Employee, EmployeeRole, Room, RoomStatus, Customer, Product
from innkeeper.routers.deps import get_notifier
from innkeeper.security.auth import get_password_hash, create_access_token
from innkeeper.main import app

NOON = datetime(2026, 3, 1, 12, 0)


class RecordingNotifier:
    """Stands in for NotificationEmitter; keeps every call"""

    def __init__(self, result: bool = True):
        self.result = result
        self.sent = []

    def notify(self, event_kind, payload):
        self.sent.append((event_kind, payload))
        return self.result

    def kinds(self):
        return [kind for kind, _ in self.sent]


@pytest.fixture(autouse=True)
def reset_globals():
    resource_locks.clear()
    yield
    resource_locks.clear()


@pytest.fixture(scope="function")
def db_engine():
    """In-memory database engine"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def events():
    """Published events; pass events.append as the event publisher"""
    return []


@pytest.fixture(scope="function")
def client(db_session, notifier):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ============== Staff ==============

@pytest.fixture
def admin(db_session):
    employee = Employee(
        username="admin",
        password_hash=get_password_hash("admin123"),
        full_name="Administrator",
        role=EmployeeRole.ADMIN,
        is_active=True
    )
    db_session.add(employee)
    db_session.commit()
    db_session.refresh(employee)
    return employee


@pytest.fixture
def cashier(db_session):
    employee = Employee(
        username="cashier1",
        password_hash=get_password_hash("cashier123"),
        full_name="Front Desk",
        role=EmployeeRole.CASHIER,
        is_active=True
    )
    db_session.add(employee)
    db_session.commit()
    db_session.refresh(employee)
    return employee


@pytest.fixture
def admin_headers(admin):
    return {"Authorization": f"Bearer {create_access_token(admin.id, admin.role)}"}


@pytest.fixture
def cashier_headers(cashier):
    return {"Authorization": f"Bearer {create_access_token(cashier.id, cashier.role)}"}


# ============== Inventory / guests ==============

@pytest.fixture
def room(db_session):
    """Daily 200, 3h bucket 30 (10/hour), 6h bucket 20 (late-checkout rate)"""
    room = Room(
        room_number="101",
        room_type="standard",
        floor=1,
        status=RoomStatus.AVAILABLE,
        daily_price=Decimal("200.00"),
        short_stay_3h_price=Decimal("30.00"),
        short_stay_6h_price=Decimal("20.00"),
    )
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def room_102(db_session):
    room = Room(
        room_number="102",
        room_type="suite",
        floor=1,
        status=RoomStatus.AVAILABLE,
        daily_price=Decimal("350.00"),
        short_stay_3h_price=Decimal("90.00"),
        short_stay_6h_price=Decimal("0"),
    )
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def customer(db_session):
    customer = Customer(
        full_name="Ana Rojas",
        document_type="CI",
        document_number="4455667",
        phone="+59170000001",
        whatsapp="+59170000001",
        age=34,
        nationality="Bolivia",
        origin="Cochabamba",
        total_stays=0,
        total_spent=Decimal("0"),
        is_frequent=False,
    )
    db_session.add(customer)
    db_session.commit()
    db_session.refresh(customer)
    return customer


@pytest.fixture
def water(db_session):
    """Tracked product, 5 in stock, no tax"""
    product = Product(
        name="Water 500ml",
        category="minibar",
        unit_price=Decimal("5.00"),
        tax_rate=Decimal("0"),
        track_inventory=True,
        stock_quantity=5,
        is_active=True,
    )
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def laundry(db_session):
    """Untracked service with 10% tax"""
    product = Product(
        name="Laundry",
        category="service",
        unit_price=Decimal("30.00"),
        tax_rate=Decimal("10"),
        track_inventory=False,
        stock_quantity=0,
        is_active=True,
    )
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


# ============== Services ==============

@pytest.fixture
def ledger(db_session, events, notifier):
    """LedgerService recording events and notifications instead of sending them"""
    from innkeeper.services.ledger_service import LedgerService
    return LedgerService(db_session, event_publisher=events.append, notifier=notifier)


@pytest.fixture
def booking(ledger, room, customer, cashier):
    """One-night stay in room 101 checked in at NOON: base 200, expected checkout next day 12:00"""
    from innkeeper.models.schemas import CheckInRequest
    return ledger.check_in(
        CheckInRequest(customer_id=customer.id, room_id=room.id, number_of_nights=1),
        cashier.id,
        now=NOON
    )
