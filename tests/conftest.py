"""
Test configuration and fixtures
"""
import os

# Point the application at SQLite before app.core.database builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.database import Base, get_db
from app.core.locks import StaffDayLocks
from app.core.tenant import load_tenant_settings
from app.models.models import Salon, Staff, Customer, Service, StaffAvailability, AvailabilityBreak
from app.services.booking_coordinator import BookingCoordinator
from datetime import date, datetime, time


# Create an in-memory SQLite database for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# A Monday well in the future so no test depends on today's date
BOOKING_DATE = date(2030, 6, 3)
FIXED_NOW = datetime(2030, 6, 1, 12, 0)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Create a test client with overridden database dependency"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app=app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def test_salon(db):
    """Create a test salon open 09:00-18:00"""
    salon = Salon(
        name="Test Salon",
        slug="test-salon",
        phone="+1234567890",
        email="test@salon.com",
        opening_hour=9,
        closing_hour=18,
        is_active=1
    )
    db.add(salon)
    db.commit()
    db.refresh(salon)
    return salon


@pytest.fixture
def other_salon(db):
    """A second tenant, used to check isolation"""
    salon = Salon(name="Other Salon", slug="other-salon", email="other@salon.com", is_active=1)
    db.add(salon)
    db.commit()
    db.refresh(salon)
    return salon


@pytest.fixture
def test_staff(db, test_salon):
    """Create a test stylist"""
    staff = Staff(salon_id=test_salon.id, name="Alex Stylist", position="stylist", is_active=1)
    db.add(staff)
    db.commit()
    db.refresh(staff)
    return staff


@pytest.fixture
def test_customer(db, test_salon):
    """Create a test customer"""
    customer = Customer(
        salon_id=test_salon.id,
        name="Test Customer",
        email="customer@test.com",
        phone="+1234567890"
    )
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


def _service(db, salon, name, duration, price):
    service = Service(salon_id=salon.id, name=name, price=price, duration_minutes=duration, is_active=1)
    db.add(service)
    db.commit()
    db.refresh(service)
    return service


@pytest.fixture
def haircut(db, test_salon):
    """30 minute haircut, $30.00"""
    return _service(db, test_salon, "Haircut", 30, 3000)


@pytest.fixture
def wash(db, test_salon):
    """15 minute wash, $10.00"""
    return _service(db, test_salon, "Wash", 15, 1000)


@pytest.fixture
def colouring(db, test_salon):
    """60 minute colouring, $80.00"""
    return _service(db, test_salon, "Colouring", 60, 8000)


@pytest.fixture
def make_availability(db, test_salon, test_staff):
    """Factory for availability records of the test stylist"""
    def _make(day=BOOKING_DATE, start=time(9, 0), end=time(18, 0), slot_duration=60,
              breaks=(), is_day_off=False, max_appointments=None):
        availability = StaffAvailability(
            salon_id=test_salon.id,
            staff_id=test_staff.id,
            date=day,
            is_day_off=is_day_off,
            working_start=start,
            working_end=end,
            slot_duration=slot_duration,
            max_appointments=max_appointments,
            breaks=[AvailabilityBreak(start_time=b_start, end_time=b_end) for b_start, b_end in breaks]
        )
        db.add(availability)
        db.commit()
        db.refresh(availability)
        return availability
    return _make


@pytest.fixture
def coordinator(db, test_salon):
    """Booking coordinator with its own lock registry and a fixed clock"""
    return BookingCoordinator(
        db,
        test_salon.id,
        tenant=load_tenant_settings(db, test_salon.id),
        locks=StaffDayLocks(),
        clock=lambda: FIXED_NOW
    )


@pytest.fixture
def book(coordinator, test_staff, test_customer, haircut):
    """Book services (default: one haircut) for the test stylist and return the appointment"""
    def _book(start="10:00", day=BOOKING_DATE, services=None):
        result = coordinator.create_appointment(
            test_customer.id,
            test_staff.id,
            day,
            start,
            services or [haircut.id]
        )
        assert result.ok, result.error
        return result.value
    return _book


@pytest.fixture
def booking_date():
    return BOOKING_DATE


@pytest.fixture
def salon_headers(test_salon):
    """Tenant header for API calls"""
    return {"X-Salon-ID": str(test_salon.id)}
