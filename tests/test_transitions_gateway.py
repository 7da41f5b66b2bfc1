"""
tests/test_transitions_gateway.py
=================================
Covers:
  TestMerchantOperations — cancel (no cascade), detail edits
  TestForceAssign        — admin path outside bidding, precondition order
  TestDriverProgress     — start / complete / report issue
  TestOwnerAssign        — winning truck owner puts their own driver and truck on
  TestFleetRelease       — truck and driver freed when the shipment finishes
"""
import logging
from decimal import Decimal

import pytest

from app.core.exceptions import (
    ConflictError, ForbiddenError, InvalidStateError, NotFoundError, ValidationError
)
from app.modules.acceptance import AcceptanceCoordinator, TransactionalAcceptanceStrategy
from app.modules.applications.schemas import BidDetails
from app.modules.applications.service import ApplicationService
from app.modules.transitions.gateway import TransitionGateway
from app.shared.database.models import ApplicationStatus, ShipmentStatus, UserRole

S = ShipmentStatus


@pytest.fixture
def gateway(db_session):
    return TransitionGateway(db_session)


@pytest.fixture
def won(db_session, shipment, merchant, owner, truck, driver, make_application):
    """Shipment CONFIRMED through the owner's accepted bid; truck and driver flagged busy"""
    application = make_application(shipment, 1500, owner=owner, truck=truck, driver=driver)
    AcceptanceCoordinator(db_session, TransactionalAcceptanceStrategy()).accept(application.id, merchant)
    db_session.expire_all()
    assert shipment.status == S.CONFIRMED
    return shipment


# ══════════════════════════════════════════════════════════════════════════════
# Merchant operations
# ══════════════════════════════════════════════════════════════════════════════

class TestMerchantOperations:

    def test_cancel_requested(self, gateway, shipment, merchant):
        result = gateway.cancel_shipment(shipment.id, merchant, reason="Order withdrawn")
        assert result.status == S.CANCELLED
        assert result.timeline[-1].note == "Order withdrawn"

    def test_cancel_default_note(self, gateway, shipment, merchant):
        result = gateway.cancel_shipment(shipment.id, merchant)
        assert result.timeline[-1].note == "Cancelled by merchant"

    def test_cancel_does_not_touch_pending_applications(self, gateway, db_session, shipment,
                                                        merchant, make_application, caplog):
        a1 = make_application(shipment, 100)
        a2 = make_application(shipment, 120)
        with caplog.at_level(logging.INFO):
            gateway.cancel_shipment(shipment.id, merchant)
        db_session.expire_all()
        assert a1.status == ApplicationStatus.PENDING
        assert a2.status == ApplicationStatus.PENDING
        assert "2 pending application(s)" in caplog.text

    def test_cancel_in_transit_refused(self, gateway, make_shipment, merchant):
        shipment = make_shipment(merchant, status=S.IN_TRANSIT)
        with pytest.raises(InvalidStateError):
            gateway.cancel_shipment(shipment.id, merchant)

    def test_cancel_by_other_merchant(self, gateway, shipment, make_user):
        with pytest.raises(ForbiddenError):
            gateway.cancel_shipment(shipment.id, make_user(UserRole.MERCHANT))

    def test_cancel_by_driver(self, gateway, shipment, driver):
        with pytest.raises(ForbiddenError):
            gateway.cancel_shipment(shipment.id, driver)

    def test_cancel_missing_shipment(self, gateway, merchant):
        with pytest.raises(NotFoundError):
            gateway.cancel_shipment(9999, merchant)

    def test_update_details_while_requested(self, gateway, shipment, merchant):
        result = gateway.update_shipment_details(
            shipment.id, merchant, {"cargo_description": "Engine blocks", "cargo_weight": Decimal("9100")}
        )
        assert result.cargo_description == "Engine blocks"
        assert result.status == S.REQUESTED

    def test_update_details_after_confirmation(self, gateway, make_shipment, merchant):
        shipment = make_shipment(merchant, status=S.CONFIRMED)
        with pytest.raises(InvalidStateError):
            gateway.update_shipment_details(shipment.id, merchant, {"cargo_description": "x"})

    def test_update_details_allowed_when_cancelled(self, gateway, make_shipment, merchant):
        shipment = make_shipment(merchant, status=S.CANCELLED)
        result = gateway.update_shipment_details(shipment.id, merchant, {"origin_address": "Monterrey"})
        assert result.origin_address == "Monterrey"

    def test_update_immutable_field_refused(self, gateway, shipment, merchant):
        with pytest.raises(ValidationError):
            gateway.update_shipment_details(shipment.id, merchant, {"merchant_id": 42})

    def test_update_required_field_cannot_be_blank(self, gateway, shipment, merchant):
        with pytest.raises(ValidationError):
            gateway.update_shipment_details(shipment.id, merchant, {"destination_address": ""})

    def test_update_weight_must_be_positive(self, gateway, shipment, merchant):
        with pytest.raises(ValidationError):
            gateway.update_shipment_details(shipment.id, merchant, {"cargo_weight": 0})

    def test_change_status_admin_default_note(self, gateway, shipment, admin):
        result = gateway.change_status(shipment.id, "DELAYED", admin)
        assert result.timeline[-1].note == "Status updated to DELAYED by admin"


# ══════════════════════════════════════════════════════════════════════════════
# Force assign
# ══════════════════════════════════════════════════════════════════════════════

class TestForceAssign:

    def test_assigns_and_flips_availability(self, gateway, db_session, shipment, admin, driver, truck):
        result = gateway.force_assign(shipment.id, admin, driver_id=driver.id, truck_id=truck.id)
        db_session.expire_all()
        assert result.status == S.ASSIGNED
        assert result.assigned_driver_id == driver.id
        assert driver.is_available is False
        assert truck.available is False

    def test_truck_is_optional(self, gateway, make_shipment, merchant, admin, driver):
        shipment = make_shipment(merchant, status=S.CONFIRMED)
        result = gateway.force_assign(shipment.id, admin, driver_id=driver.id)
        assert result.status == S.ASSIGNED
        assert result.assigned_truck_id is None

    def test_requires_admin(self, gateway, shipment, merchant, driver):
        with pytest.raises(ForbiddenError):
            gateway.force_assign(shipment.id, merchant, driver_id=driver.id)

    def test_refused_after_selected_application(self, gateway, make_shipment, merchant, admin, driver):
        shipment = make_shipment(merchant, status=S.CONFIRMED, selected_application_id=77)
        with pytest.raises(ConflictError):
            gateway.force_assign(shipment.id, admin, driver_id=driver.id)

    def test_refused_in_transit(self, gateway, make_shipment, merchant, admin, driver):
        shipment = make_shipment(merchant, status=S.IN_TRANSIT)
        with pytest.raises(InvalidStateError):
            gateway.force_assign(shipment.id, admin, driver_id=driver.id)

    def test_status_checked_before_driver(self, gateway, make_shipment, merchant, admin):
        shipment = make_shipment(merchant, status=S.DELIVERED)
        with pytest.raises(InvalidStateError):
            gateway.force_assign(shipment.id, admin, driver_id=9999)

    def test_missing_driver(self, gateway, shipment, admin):
        with pytest.raises(NotFoundError):
            gateway.force_assign(shipment.id, admin, driver_id=9999)

    def test_non_driver_user(self, gateway, shipment, admin, merchant):
        with pytest.raises(ValidationError):
            gateway.force_assign(shipment.id, admin, driver_id=merchant.id)

    def test_unavailable_driver(self, gateway, shipment, admin, make_user):
        busy = make_user(UserRole.DRIVER, is_available=False)
        with pytest.raises(ConflictError):
            gateway.force_assign(shipment.id, admin, driver_id=busy.id)

    def test_unavailable_truck(self, gateway, shipment, admin, driver, make_truck, owner):
        parked = make_truck(owner, available=False)
        with pytest.raises(ConflictError):
            gateway.force_assign(shipment.id, admin, driver_id=driver.id, truck_id=parked.id)


# ══════════════════════════════════════════════════════════════════════════════
# Driver progress
# ══════════════════════════════════════════════════════════════════════════════

class TestDriverProgress:

    @pytest.fixture
    def assigned(self, make_shipment, merchant, driver, truck):
        return make_shipment(merchant, status=S.ASSIGNED, driver=driver, truck=truck)

    def test_start_delivery(self, gateway, assigned, driver):
        result = gateway.start_delivery(assigned.id, driver)
        assert result.status == S.IN_TRANSIT
        assert result.actual_pickup_date is not None
        assert result.timeline[-1].note == "Delivery started, cargo picked up from origin"

    def test_start_from_confirmed_refused(self, gateway, make_shipment, merchant, driver):
        shipment = make_shipment(merchant, status=S.CONFIRMED, driver=driver)
        with pytest.raises(InvalidStateError):
            gateway.start_delivery(shipment.id, driver)

    def test_start_by_other_driver(self, gateway, assigned, make_user):
        with pytest.raises(ForbiddenError):
            gateway.start_delivery(assigned.id, make_user(UserRole.DRIVER))

    def test_complete_delivery(self, gateway, assigned, driver):
        gateway.start_delivery(assigned.id, driver)
        result = gateway.complete_delivery(assigned.id, driver, received_by="J. Smith")
        assert result.status == S.DELIVERED
        assert result.timeline[-1].note == "Delivery completed, received by J. Smith"
        assert result.actual_delivery_date is not None

    def test_complete_before_start_refused(self, gateway, assigned, driver):
        with pytest.raises(InvalidStateError):
            gateway.complete_delivery(assigned.id, driver, received_by="J. Smith")

    @pytest.mark.parametrize("issue_type", ["ACCIDENT", "cargo_damaged", "VEHICLE_BREAKDOWN"])
    def test_severe_issue_delays(self, gateway, assigned, driver, issue_type):
        result = gateway.report_issue(assigned.id, driver, issue_type, "Stopped on I-35")
        assert result.status == S.DELAYED
        assert issue_type.upper() in result.timeline[-1].note

    def test_minor_issue_keeps_status(self, gateway, assigned, driver):
        before = len(assigned.timeline)
        result = gateway.report_issue(assigned.id, driver, "TRAFFIC", "Slow traffic near Laredo")
        assert result.status == S.ASSIGNED
        assert len(result.timeline) == before + 1
        assert result.timeline[-1].status == S.ASSIGNED

    def test_issue_on_requested_refused(self, gateway, make_shipment, merchant, driver):
        shipment = make_shipment(merchant, driver=driver)
        with pytest.raises(InvalidStateError):
            gateway.report_issue(shipment.id, driver, "TRAFFIC", "x")


# ══════════════════════════════════════════════════════════════════════════════
# Truck owner assignment
# ══════════════════════════════════════════════════════════════════════════════

class TestOwnerAssign:

    def test_winning_owner_assigns_bid_driver(self, gateway, won, owner, driver, truck):
        result = gateway.assign_driver(won.id, owner, driver.id)
        assert result.status == S.ASSIGNED
        assert result.assigned_driver_id == driver.id
        assert result.assigned_truck_id == truck.id
        assert result.timeline[-1].note == "Shipment assigned to driver by truck owner"
        assert result.timeline[-1].recorded_by == owner.id

    def test_reassign_frees_replaced_driver(self, gateway, db_session, won, owner, driver, make_user):
        relief = make_user(UserRole.DRIVER, owner_id=owner.id)
        gateway.assign_driver(won.id, owner, driver.id)
        result = gateway.assign_driver(won.id, owner, relief.id, note="Swapped for night run")

        db_session.expire_all()
        assert result.status == S.ASSIGNED
        assert result.assigned_driver_id == relief.id
        assert result.timeline[-1].note == "Swapped for night run"
        assert relief.is_available is False
        assert driver.is_available is True

    def test_truck_swap_frees_bid_truck(self, gateway, db_session, won, owner, driver, truck, make_truck):
        spare = make_truck(owner)
        result = gateway.assign_driver(won.id, owner, driver.id, truck_id=spare.id)

        db_session.expire_all()
        assert result.assigned_truck_id == spare.id
        assert spare.available is False
        assert truck.available is True

    def test_losing_owner_not_found(self, gateway, won, make_user):
        rival = make_user(UserRole.TRUCK_OWNER)
        rival_driver = make_user(UserRole.DRIVER, owner_id=rival.id)
        with pytest.raises(NotFoundError):
            gateway.assign_driver(won.id, rival, rival_driver.id)

    def test_other_owners_driver_not_found(self, gateway, won, owner, make_user):
        foreign = make_user(UserRole.DRIVER, owner_id=make_user(UserRole.TRUCK_OWNER).id)
        with pytest.raises(NotFoundError):
            gateway.assign_driver(won.id, owner, foreign.id)

    def test_other_owners_truck_not_found(self, gateway, won, owner, driver, make_user, make_truck):
        foreign_truck = make_truck(make_user(UserRole.TRUCK_OWNER))
        with pytest.raises(NotFoundError):
            gateway.assign_driver(won.id, owner, driver.id, truck_id=foreign_truck.id)

    def test_busy_driver_conflict(self, gateway, won, owner, make_user):
        busy = make_user(UserRole.DRIVER, owner_id=owner.id, is_available=False)
        with pytest.raises(ConflictError):
            gateway.assign_driver(won.id, owner, busy.id)

    def test_requires_truck_owner(self, gateway, won, merchant, driver):
        with pytest.raises(ForbiddenError):
            gateway.assign_driver(won.id, merchant, driver.id)

    def test_refused_once_in_transit(self, gateway, won, owner, driver, make_user):
        gateway.assign_driver(won.id, owner, driver.id)
        gateway.start_delivery(won.id, driver)
        relief = make_user(UserRole.DRIVER, owner_id=owner.id)
        with pytest.raises(InvalidStateError):
            gateway.assign_driver(won.id, owner, relief.id)

    def test_driver_starts_after_owner_assignment(self, gateway, won, owner, driver):
        gateway.assign_driver(won.id, owner, driver.id)
        result = gateway.start_delivery(won.id, driver)
        assert result.status == S.IN_TRANSIT

    def test_owner_cannot_start_transit(self, gateway, won, owner, driver):
        gateway.assign_driver(won.id, owner, driver.id)
        with pytest.raises(InvalidStateError):
            gateway.change_status(won.id, S.IN_TRANSIT, owner)
        assert gateway.load_shipment(won.id).status == S.ASSIGNED
        assert gateway.load_shipment(won.id).actual_pickup_date is None


# ══════════════════════════════════════════════════════════════════════════════
# Fleet release
# ══════════════════════════════════════════════════════════════════════════════

class TestFleetRelease:

    def test_full_flow_frees_fleet_for_next_bid(self, gateway, db_session, won, merchant, owner,
                                                 driver, truck, make_shipment):
        gateway.assign_driver(won.id, owner, driver.id)
        gateway.change_status(won.id, S.LOADING, driver)
        gateway.start_delivery(won.id, driver)
        db_session.expire_all()
        assert truck.available is False
        assert driver.is_available is False

        gateway.complete_delivery(won.id, driver, received_by="Dock supervisor")
        gateway.change_status(won.id, S.COMPLETED, merchant)
        db_session.expire_all()
        assert truck.available is True
        assert driver.is_available is True

        next_load = make_shipment(merchant)
        application = ApplicationService(db_session).submit(
            next_load.id, owner, truck.id, driver.id, BidDetails(price=Decimal("1200"))
        )
        assert application.status == ApplicationStatus.PENDING

    def test_cancel_after_acceptance_frees_fleet(self, gateway, db_session, won, merchant, driver, truck):
        gateway.cancel_shipment(won.id, merchant, reason="Buyer backed out")
        db_session.expire_all()
        assert truck.available is True
        assert driver.is_available is True

    def test_admin_cancel_after_assignment_frees_fleet(self, gateway, db_session, won, admin, owner,
                                                       driver, truck):
        gateway.assign_driver(won.id, owner, driver.id)
        gateway.change_status(won.id, S.CANCELLED, admin)
        db_session.expire_all()
        assert truck.available is True
        assert driver.is_available is True

    def test_truck_on_other_unfinished_shipment_stays_busy(self, gateway, db_session, won, merchant,
                                                           driver, truck, make_shipment):
        make_shipment(merchant, status=S.IN_TRANSIT, truck=truck)
        gateway.cancel_shipment(won.id, merchant)
        db_session.expire_all()
        assert truck.available is False
        assert driver.is_available is True

    def test_delay_keeps_fleet_busy(self, gateway, db_session, won, owner, driver, truck):
        gateway.assign_driver(won.id, owner, driver.id)
        gateway.report_issue(won.id, driver, "VEHICLE_BREAKDOWN", "Flat tyre near Monterrey")
        db_session.expire_all()
        assert truck.available is False
        assert driver.is_available is False
