"""
tests/test_truck_owner.py
=========================
Covers:
  TestOwnerShipments  — won shipments only, open market filters and paging
  TestOwnerAssignment — service wrapper over the gateway assignment
  TestOwnerFleet      — driver listing / update and available trucks, scoped to the owner
"""
import asyncio
from decimal import Decimal

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.modules.acceptance import AcceptanceCoordinator, TransactionalAcceptanceStrategy
from app.modules.truck_owner import TruckOwnerService
from app.modules.truck_owner.schemas import AssignDriverRequest, DriverUpdate
from app.shared.database.models import ShipmentStatus, UserRole

S = ShipmentStatus


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def service(db_session):
    return TruckOwnerService(db_session)


@pytest.fixture
def won(db_session, shipment, merchant, owner, truck, driver, make_application):
    application = make_application(shipment, 1500, owner=owner, truck=truck, driver=driver)
    AcceptanceCoordinator(db_session, TransactionalAcceptanceStrategy()).accept(application.id, merchant)
    db_session.expire_all()
    return shipment


# ══════════════════════════════════════════════════════════════════════════════
# Shipments
# ══════════════════════════════════════════════════════════════════════════════

class TestOwnerShipments:

    def test_my_shipments_lists_won_only(self, service, won, owner, merchant, make_shipment, make_application):
        pending_elsewhere = make_shipment(merchant)
        make_application(pending_elsewhere, 900, owner=owner)

        result = run(service.get_my_shipments(owner))
        assert result["count"] == 1
        assert [s["id"] for s in result["shipments"]] == [won.id]
        assert result["shipments"][0]["status"] == "CONFIRMED"

    def test_my_shipments_empty_for_losing_bidder(self, service, won, make_user):
        result = run(service.get_my_shipments(make_user(UserRole.TRUCK_OWNER)))
        assert result["count"] == 0
        assert result["shipments"] == []

    def test_available_excludes_confirmed(self, service, won, merchant, make_shipment):
        open_load = make_shipment(merchant)
        result = run(service.get_available_shipments())
        assert [s["id"] for s in result["shipments"]] == [open_load.id]
        assert result["total"] == 1

    def test_available_country_filter(self, service, merchant, make_shipment):
        to_canada = make_shipment(merchant, destination_country="CA")
        make_shipment(merchant)
        result = run(service.get_available_shipments(destination_country="ca"))
        assert [s["id"] for s in result["shipments"]] == [to_canada.id]

    def test_available_weight_range(self, service, merchant, make_shipment):
        make_shipment(merchant, cargo_weight=Decimal("500"))
        mid = make_shipment(merchant, cargo_weight=Decimal("5000"))
        make_shipment(merchant, cargo_weight=Decimal("30000"))
        result = run(service.get_available_shipments(min_weight=Decimal("1000"), max_weight=Decimal("10000")))
        assert [s["id"] for s in result["shipments"]] == [mid.id]

    def test_available_paging(self, service, merchant, make_shipment):
        for _ in range(3):
            make_shipment(merchant)
        result = run(service.get_available_shipments(page=2, size=2))
        assert result["count"] == 1
        assert result["total"] == 3
        assert result["pages"] == 2

    def test_inverted_weight_range_rejected(self, service):
        with pytest.raises(ValidationError):
            run(service.get_available_shipments(min_weight=Decimal("10"), max_weight=Decimal("1")))


# ══════════════════════════════════════════════════════════════════════════════
# Assignment
# ══════════════════════════════════════════════════════════════════════════════

class TestOwnerAssignment:

    def test_assign_returns_shipment_with_timeline(self, service, won, owner, driver):
        result = run(service.assign_driver(won.id, AssignDriverRequest(driver_id=driver.id), owner))
        assert result["success"] is True
        assert result["shipment"]["status"] == "ASSIGNED"
        assert result["shipment"]["timeline"][-1]["status"] == "ASSIGNED"

    def test_assign_on_unwon_shipment(self, service, shipment, owner, driver):
        with pytest.raises(NotFoundError):
            run(service.assign_driver(shipment.id, AssignDriverRequest(driver_id=driver.id), owner))


# ══════════════════════════════════════════════════════════════════════════════
# Fleet
# ══════════════════════════════════════════════════════════════════════════════

class TestOwnerFleet:

    @pytest.fixture
    def crew(self, make_user, owner):
        """Two drivers of the owner (one off duty) plus a stranger's driver"""
        on_duty = make_user(UserRole.DRIVER, owner_id=owner.id, name="Ana")
        off_duty = make_user(UserRole.DRIVER, owner_id=owner.id, name="Bruno", is_available=False)
        make_user(UserRole.DRIVER, owner_id=make_user(UserRole.TRUCK_OWNER).id)
        return on_duty, off_duty

    def test_drivers_scoped_to_owner(self, service, owner, crew):
        result = run(service.get_drivers(owner))
        assert sorted(d["id"] for d in result["drivers"]) == sorted(d.id for d in crew)

    def test_drivers_availability_filter(self, service, owner, crew):
        on_duty, off_duty = crew
        assert [d["id"] for d in run(service.get_drivers(owner, is_available=True))["drivers"]] == [on_duty.id]
        assert [d["id"] for d in run(service.get_drivers(owner, is_available=False))["drivers"]] == [off_duty.id]

    def test_available_trucks(self, service, owner, truck, make_truck, make_user):
        make_truck(owner, available=False)
        make_truck(make_user(UserRole.TRUCK_OWNER))
        result = run(service.get_available_trucks(owner))
        assert [t["id"] for t in result["trucks"]] == [truck.id]

    def test_update_driver(self, db_session, service, owner, crew):
        _, off_duty = crew
        result = run(service.update_driver(off_duty.id, DriverUpdate(is_available=True, phone="+52 55 1234"), owner))
        db_session.expire_all()
        assert result["driver"]["is_available"] is True
        assert off_duty.is_available is True
        assert off_duty.phone == "+52 55 1234"

    def test_update_other_owners_driver(self, service, make_user, crew):
        with pytest.raises(NotFoundError):
            run(service.update_driver(crew[0].id, DriverUpdate(is_available=False), make_user(UserRole.TRUCK_OWNER)))

    def test_update_without_fields(self, service, owner, crew):
        with pytest.raises(ValidationError):
            run(service.update_driver(crew[0].id, DriverUpdate(), owner))
