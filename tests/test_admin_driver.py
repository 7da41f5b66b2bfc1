"""
tests/test_admin_driver.py
==========================
Covers:
  TestAdminShipments     — filtered listing, status counts, detail with bids
  TestAdminOverride      — forced status changes land in the timeline
  TestAdminApplications  — listing filters and soft delete rules
  TestDriverState        — availability toggle and location fan-out
"""
import asyncio

import pytest

from app.core.exceptions import ConflictError, ForbiddenError, InvalidStateError, NotFoundError
from app.modules.admin import AdminService
from app.modules.admin.schemas import AdminStatusOverride
from app.modules.driver import DriverService
from app.shared.database.models import ApplicationStatus, ShipmentStatus, UserRole

S = ShipmentStatus
A = ApplicationStatus


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def admin_service(db_session):
    return AdminService(db_session)


@pytest.fixture
def driver_service(db_session):
    return DriverService(db_session)


# ══════════════════════════════════════════════════════════════════════════════
# Shipments
# ══════════════════════════════════════════════════════════════════════════════

class TestAdminShipments:

    @pytest.fixture
    def fleet(self, make_shipment, merchant, make_user, driver, truck):
        other_merchant = make_user(UserRole.MERCHANT)
        return [
            make_shipment(merchant),
            make_shipment(merchant, status=S.IN_TRANSIT, driver=driver, truck=truck),
            make_shipment(other_merchant, destination_country="CA"),
        ]

    def test_list_all_with_counts(self, admin_service, fleet):
        result = run(admin_service.list_shipments())
        assert result["total"] == 3
        assert result["pages"] == 1
        assert result["status_counts"] == {"REQUESTED": 2, "IN_TRANSIT": 1}

    def test_filter_by_status_and_merchant(self, admin_service, fleet, merchant):
        result = run(admin_service.list_shipments(status="REQUESTED", merchant_id=merchant.id))
        assert [s["id"] for s in result["items"]] == [fleet[0].id]

    def test_filter_by_driver_and_country(self, admin_service, fleet, driver):
        assert run(admin_service.list_shipments(driver_id=driver.id))["total"] == 1
        assert run(admin_service.list_shipments(destination_country="ca"))["total"] == 1

    def test_pagination(self, admin_service, fleet):
        result = run(admin_service.list_shipments(page=2, size=2))
        assert len(result["items"]) == 1
        assert result["pages"] == 2

    def test_detail_includes_applications(self, admin_service, shipment, make_application):
        make_application(shipment, 100)
        make_application(shipment, 200)
        result = run(admin_service.get_shipment(shipment.id))
        assert len(result["applications"]) == 2
        assert result["shipment"]["timeline"][0]["status"] == "REQUESTED"

    def test_detail_missing(self, admin_service):
        with pytest.raises(NotFoundError):
            run(admin_service.get_shipment(9999))


# ══════════════════════════════════════════════════════════════════════════════
# Status override
# ══════════════════════════════════════════════════════════════════════════════

class TestAdminOverride:

    def test_override_skips_role_rules(self, admin_service, shipment, admin):
        result = run(admin_service.override_status(shipment.id, AdminStatusOverride(status="DELIVERED"), admin))
        assert result["shipment"]["status"] == "DELIVERED"
        entry = result["shipment"]["timeline"][-1]
        assert entry["recorded_by"] == admin.id
        assert entry["note"] == "Status updated to DELIVERED by admin"

    def test_override_logged_as_warning(self, admin_service, shipment, admin, caplog):
        with caplog.at_level("WARNING"):
            run(admin_service.override_status(
                shipment.id, AdminStatusOverride(status="CANCELLED", note="fraud check"), admin
            ))
        assert any(r.levelname == "WARNING" for r in caplog.records)


# ══════════════════════════════════════════════════════════════════════════════
# Applications
# ══════════════════════════════════════════════════════════════════════════════

class TestAdminApplications:

    def test_filter_by_merchant(self, admin_service, shipment, merchant, make_shipment, make_user,
                                make_application):
        mine = make_application(shipment, 100)
        make_application(make_shipment(make_user(UserRole.MERCHANT)), 100)
        result = run(admin_service.list_applications(merchant_id=merchant.id))
        assert [a["id"] for a in result["items"]] == [mine.id]

    def test_filter_by_status(self, db_session, admin_service, shipment, make_application):
        bid = make_application(shipment, 100)
        make_application(shipment, 120)
        bid.record_status(A.CANCELLED)
        db_session.commit()
        assert run(admin_service.list_applications(status="CANCELLED"))["total"] == 1

    def test_delete_terminal_application(self, db_session, admin_service, shipment, admin, make_application):
        bid = make_application(shipment, 100)
        bid.record_status(A.REJECTED, note="too expensive")
        db_session.commit()

        run(admin_service.delete_application(bid.id, admin))
        db_session.expire_all()
        assert bid.active is False
        assert run(admin_service.list_applications())["total"] == 0
        assert run(admin_service.list_applications(include_inactive=True))["total"] == 1

    def test_delete_pending_refused(self, admin_service, shipment, admin, make_application):
        bid = make_application(shipment, 100)
        with pytest.raises(InvalidStateError):
            run(admin_service.delete_application(bid.id, admin))

    def test_delete_flagged_refused(self, db_session, admin_service, shipment, admin, make_application):
        bid = make_application(shipment, 100)
        bid.record_status(A.ACCEPTED)
        bid.needs_reconciliation = True
        db_session.commit()
        with pytest.raises(ConflictError):
            run(admin_service.delete_application(bid.id, admin))

    def test_delete_twice(self, db_session, admin_service, shipment, admin, make_application):
        bid = make_application(shipment, 100)
        bid.record_status(A.CANCELLED)
        db_session.commit()
        run(admin_service.delete_application(bid.id, admin))
        with pytest.raises(NotFoundError):
            run(admin_service.delete_application(bid.id, admin))


# ══════════════════════════════════════════════════════════════════════════════
# Driver state
# ══════════════════════════════════════════════════════════════════════════════

class TestDriverState:

    def test_toggle_availability(self, db_session, driver_service, driver):
        result = run(driver_service.set_availability(driver, False))
        assert result["is_available"] is False
        db_session.expire_all()
        assert driver.is_available is False

        run(driver_service.set_availability(driver, True))
        db_session.expire_all()
        assert driver.is_available is True

    def test_location_fans_out_to_shipments_in_progress(self, db_session, driver_service, make_shipment,
                                                         merchant, driver, truck):
        moving = make_shipment(merchant, status=S.IN_TRANSIT, driver=driver, truck=truck)
        loading = make_shipment(merchant, status=S.LOADING, driver=driver, truck=truck)
        done = make_shipment(merchant, status=S.DELIVERED, driver=driver, truck=truck)

        result = run(driver_service.report_location(driver, {"lat": 30.0, "lng": -97.0, "address": "Austin"}))
        assert sorted(result["updated_shipment_ids"]) == sorted([moving.id, loading.id])

        db_session.expire_all()
        assert moving.current_location["address"] == "Austin"
        assert loading.current_location["address"] == "Austin"
        assert done.current_location is None

    def test_location_for_one_shipment(self, driver_service, make_shipment, merchant, driver, truck):
        a = make_shipment(merchant, status=S.IN_TRANSIT, driver=driver, truck=truck)
        make_shipment(merchant, status=S.IN_TRANSIT, driver=driver, truck=truck)
        result = run(driver_service.report_location(driver, {"lat": 30.0, "lng": -97.0, "address": None},
                                                    shipment_id=a.id))
        assert result["updated_shipment_ids"] == [a.id]

    def test_location_for_someone_elses_shipment(self, driver_service, make_shipment, merchant, make_user,
                                                 driver):
        other = make_shipment(merchant, status=S.IN_TRANSIT, driver=make_user(UserRole.DRIVER))
        with pytest.raises(ForbiddenError):
            run(driver_service.report_location(driver, {"lat": 1.0, "lng": 1.0, "address": None},
                                               shipment_id=other.id))

    def test_no_shipments_in_progress(self, driver_service, driver):
        result = run(driver_service.report_location(driver, {"lat": 1.0, "lng": 1.0, "address": None}))
        assert result["updated_shipment_ids"] == []
