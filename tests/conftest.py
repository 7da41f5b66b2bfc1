"""
tests/conftest.py
=================
Shared pytest fixtures: a fresh in-memory SQLite database per test,
model factories, bearer-token headers and a TestClient wired to the
test session.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.config.database import get_db
from app.core.auth.service import AuthService
from app.modules.acceptance.strategies import TransactionalAcceptanceStrategy
from app.shared.database.models import (
    Application, ApplicationStatus, Base, Shipment, ShipmentStatus, Truck, User, UserRole
)


# ─── Engine / session (function-scoped) ─────────────────────────────────────

@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    @event.listens_for(engine, "connect")
    def set_fk(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    SessionLocal = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    yield session
    session.close()


# ─── Model factories ─────────────────────────────────────────────────────────

@pytest.fixture
def make_user(db_session):
    _n = [0]

    def _f(role=UserRole.MERCHANT, **kw):
        _n[0] += 1
        role = UserRole(role)
        kw.setdefault("email", f"{role.value.lower()}{_n[0]}@example.com")
        kw.setdefault("name", f"{role.value} {_n[0]}")
        kw.setdefault("password_hash", "not-a-real-hash")
        user = User(role=role, **kw)
        db_session.add(user)
        db_session.commit()
        return user
    return _f


@pytest.fixture
def make_truck(db_session):
    _n = [0]

    def _f(owner, **kw):
        _n[0] += 1
        kw.setdefault("plate_number", f"TRK-{_n[0]:04d}")
        kw.setdefault("model", "Volvo FH16")
        kw.setdefault("capacity", Decimal("24000"))
        truck = Truck(owner_id=owner.id, **kw)
        db_session.add(truck)
        db_session.commit()
        return truck
    return _f


@pytest.fixture
def make_shipment(db_session):
    def _f(merchant, status=None, driver=None, truck=None, **kw):
        kw.setdefault("origin_address", "Av. Reforma 100, CDMX")
        kw.setdefault("origin_country", "MX")
        kw.setdefault("destination_address", "1200 Main St, Dallas TX")
        kw.setdefault("destination_lat", Decimal("32.776700"))
        kw.setdefault("destination_lng", Decimal("-96.797000"))
        kw.setdefault("destination_country", "US")
        kw.setdefault("cargo_description", "Auto parts, 12 pallets")
        kw.setdefault("cargo_weight", Decimal("8500"))
        shipment = Shipment(merchant_id=merchant.id, **kw)
        shipment.record_status(ShipmentStatus.REQUESTED, note="Shipment request created",
                               recorded_by=merchant.id)
        if driver is not None:
            shipment.assigned_driver_id = driver.id
        if truck is not None:
            shipment.assigned_truck_id = truck.id
        if status is not None and ShipmentStatus(status) != ShipmentStatus.REQUESTED:
            shipment.record_status(status, note="fixture")
        db_session.add(shipment)
        db_session.commit()
        return shipment
    return _f


@pytest.fixture
def make_application(db_session, make_user, make_truck):
    """
    PENDING bid on a shipment. A fresh truck owner with their own truck
    and driver is created unless given, so several bids never collide
    on (shipment, owner).
    """
    def _f(shipment, price, owner=None, truck=None, driver=None, **kw):
        owner = owner or make_user(UserRole.TRUCK_OWNER)
        truck = truck or make_truck(owner)
        driver = driver or make_user(UserRole.DRIVER, owner_id=owner.id)
        application = Application(
            shipment_id=shipment.id,
            owner_id=owner.id,
            truck_id=truck.id,
            driver_id=driver.id,
            bid_price=Decimal(str(price)),
            **kw,
        )
        application.record_status(ApplicationStatus.PENDING, note="Application submitted",
                                  changed_by=owner.id)
        db_session.add(application)
        db_session.commit()
        return application
    return _f


# ─── Common actors ───────────────────────────────────────────────────────────

@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN)


@pytest.fixture
def merchant(make_user):
    return make_user(UserRole.MERCHANT, company_name="Acme Imports")


@pytest.fixture
def owner(make_user):
    return make_user(UserRole.TRUCK_OWNER, company_name="Northbound Haulage")


@pytest.fixture
def driver(make_user, owner):
    return make_user(UserRole.DRIVER, owner_id=owner.id, license_number="CDL-1")


@pytest.fixture
def truck(make_truck, owner):
    return make_truck(owner)


@pytest.fixture
def shipment(make_shipment, merchant):
    return make_shipment(merchant)


@pytest.fixture
def future():
    return datetime(2099, 1, 1, 12, 0, 0)


# ─── HTTP ────────────────────────────────────────────────────────────────────

@pytest.fixture
def auth_headers():
    def _f(user):
        token = AuthService.create_access_token(AuthService.token_data(user))
        return {"Authorization": f"Bearer {token}"}
    return _f


@pytest.fixture
def client(db_session):
    from app.main import app

    def _get_test_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_test_db
    app.state.acceptance_strategy = TransactionalAcceptanceStrategy()
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.acceptance_strategy = None
