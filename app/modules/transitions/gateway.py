# app/modules/transitions/gateway.py
"""
Role- and status-scoped entry point for every shipment mutation outside
bid acceptance.

Each operation re-reads the shipment from the database right before
validating, applies the change through ShipmentStateMachine and commits.
The shipment row is versioned, so a write racing with another request
fails with StaleDataError and is reported as a ConflictError.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import (
    ConflictError, ForbiddenError, InvalidStateError, NotFoundError, ValidationError
)
from app.modules.shipments.repository import FLEET_RELEASE_STATUSES, ShipmentRepository
from app.modules.shipments.state_machine import ShipmentStateMachine
from app.shared.database.models import (
    Application, ApplicationStatus, Shipment, ShipmentStatus, User, UserRole
)
from app.shared.database.transactions import commit_or_conflict

S = ShipmentStatus

CANCELLABLE_STATUSES = {S.REQUESTED, S.CONFIRMED}
EDITABLE_STATUSES = {S.REQUESTED, S.CANCELLED}
STARTABLE_STATUSES = {S.ASSIGNED, S.LOADING}
COMPLETABLE_STATUSES = {S.IN_TRANSIT, S.UNLOADING}
ISSUE_REPORTABLE_STATUSES = {
    S.CONFIRMED, S.ASSIGNED, S.LOADING, S.IN_TRANSIT, S.AT_BORDER, S.UNLOADING, S.DELAYED
}
SEVERE_ISSUE_TYPES = {"ACCIDENT", "CARGO_DAMAGED", "VEHICLE_BREAKDOWN"}

# Fields a merchant may edit; ownership, status and assignment never go through here
EDITABLE_FIELDS = {
    "origin_address", "origin_lat", "origin_lng", "origin_country",
    "destination_address", "destination_lat", "destination_lng", "destination_country",
    "cargo_description", "cargo_weight", "cargo_volume", "cargo_category", "cargo_hazardous",
    "payment_amount", "payment_currency",
    "estimated_pickup_date", "estimated_delivery_date",
}
REQUIRED_FIELDS = {"origin_address", "destination_address", "cargo_description", "cargo_weight"}


class TransitionGateway:
    def __init__(self, db: Session, state_machine: Optional[ShipmentStateMachine] = None,
                 logger: Optional[logging.Logger] = None):
        self.db = db
        self.repository = ShipmentRepository(db)
        self.logger = logger or logging.getLogger(__name__)
        self.state_machine = state_machine or ShipmentStateMachine(logger=self.logger)

    # ==================== HELPERS ====================

    def load_shipment(self, shipment_id: int) -> Shipment:
        shipment = self.repository.get(shipment_id, fresh=True)
        if not shipment:
            raise NotFoundError(f"Shipment {shipment_id} not found")
        return shipment

    def commit(self, shipment_id: int):
        commit_or_conflict(self.db, f"Shipment {shipment_id}", self.logger)

    def _require_assigned_driver(self, shipment: Shipment, actor: User):
        if actor.role != UserRole.DRIVER:
            raise ForbiddenError("Only drivers can perform delivery operations")
        if shipment.assigned_driver_id != actor.id:
            raise ForbiddenError("This shipment is not assigned to you")

    def _free_fleet(self, shipment: Shipment, truck_id: Optional[int], driver_id: Optional[int]):
        """Flip availability back on unless another unfinished shipment still holds them"""
        freed = []
        if truck_id is not None and not self.repository.fleet_busy_elsewhere(shipment.id, truck_id=truck_id):
            truck = self.repository.get_truck(truck_id)
            if truck is not None and not truck.available:
                truck.available = True
                freed.append(f"truck {truck_id}")
        if driver_id is not None and not self.repository.fleet_busy_elsewhere(shipment.id, driver_id=driver_id):
            driver = self.repository.get_user(driver_id)
            if driver is not None and not driver.is_available:
                driver.is_available = True
                freed.append(f"driver {driver_id}")
        if freed:
            self.logger.info(f"🔓 Shipment {shipment.id}: {', '.join(freed)} available again")

    def _release_if_finished(self, shipment: Shipment, previous: ShipmentStatus):
        if previous not in FLEET_RELEASE_STATUSES and ShipmentStatus(shipment.status) in FLEET_RELEASE_STATUSES:
            self._free_fleet(shipment, shipment.assigned_truck_id, shipment.assigned_driver_id)

    # ==================== STATUS CHANGES ====================

    def change_status(self, shipment_id: int, new_status, actor: User, note: Optional[str] = None,
                      location: Optional[dict] = None, documents: Optional[list] = None) -> Shipment:
        """Generic timeline entry (merchant / driver / truck owner / admin)"""
        shipment = self.load_shipment(shipment_id)
        previous = ShipmentStatus(shipment.status)
        if actor.role == UserRole.ADMIN and not note:
            note = f"Status updated to {getattr(new_status, 'value', new_status)} by admin"
        self.state_machine.transition(shipment, new_status, actor, note=note,
                                      location=location, documents=documents)
        self._release_if_finished(shipment, previous)
        self.commit(shipment_id)
        return shipment

    def cancel_shipment(self, shipment_id: int, actor: User, reason: Optional[str] = None) -> Shipment:
        """
        Merchant cancellation from REQUESTED or CONFIRMED.

        Pending applications for the shipment are left untouched.
        """
        shipment = self.load_shipment(shipment_id)

        if actor.role not in (UserRole.MERCHANT, UserRole.ADMIN):
            raise ForbiddenError("Only merchants can cancel shipments")
        if actor.role == UserRole.MERCHANT and shipment.merchant_id != actor.id:
            raise ForbiddenError("You can only cancel your own shipments")

        current = ShipmentStatus(shipment.status)
        if current not in CANCELLABLE_STATUSES:
            raise InvalidStateError(
                f"Cannot cancel shipment in {current.value} status",
                details={"current_status": current.value},
            )

        self.state_machine.transition(
            shipment, S.CANCELLED, actor, note=reason or "Cancelled by merchant"
        )
        self._release_if_finished(shipment, current)
        self.commit(shipment_id)

        pending = self.db.query(Application).filter(
            Application.shipment_id == shipment_id,
            Application.status == ApplicationStatus.PENDING
        ).count()
        if pending:
            self.logger.info(
                f"📋 Shipment {shipment_id} cancelled with {pending} pending application(s) left as PENDING"
            )
        return shipment

    def update_shipment_details(self, shipment_id: int, actor: User, changes: Dict[str, Any]) -> Shipment:
        """Merchant edit of route/cargo/schedule, only while REQUESTED or CANCELLED"""
        shipment = self.load_shipment(shipment_id)

        if actor.role != UserRole.MERCHANT or shipment.merchant_id != actor.id:
            raise ForbiddenError("Only the merchant who created this shipment can edit it")

        current = ShipmentStatus(shipment.status)
        if current not in EDITABLE_STATUSES:
            raise InvalidStateError(
                f"Cannot update shipment in {current.value} status",
                details={"current_status": current.value},
            )

        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}",
                details={"fields": sorted(unknown)},
            )
        for field in REQUIRED_FIELDS & set(changes):
            if changes[field] in (None, ""):
                raise ValidationError(f"{field} is required", details={"field": field})
        if "cargo_weight" in changes and Decimal(str(changes["cargo_weight"])) <= 0:
            raise ValidationError("cargo_weight must be positive", details={"field": "cargo_weight"})

        for field, value in changes.items():
            setattr(shipment, field, value)

        self.commit(shipment_id)
        self.logger.info(f"✏️ Shipment {shipment_id} updated: {', '.join(sorted(changes))}")
        return shipment

    # ==================== ADMIN FORCE PATH ====================

    def force_assign(self, shipment_id: int, actor: User, driver_id: int,
                     truck_id: Optional[int] = None, note: Optional[str] = None) -> Shipment:
        """
        Assign driver (and optionally truck) outside the bidding flow.

        Only for REQUESTED/CONFIRMED shipments that were not confirmed
        through an accepted application.
        """
        if actor.role != UserRole.ADMIN:
            raise ForbiddenError("Only admins can force-assign shipments")

        shipment = self.load_shipment(shipment_id)
        current = ShipmentStatus(shipment.status)
        if current not in {S.REQUESTED, S.CONFIRMED}:
            raise InvalidStateError(
                f"Cannot assign shipment in {current.value} status",
                details={"current_status": current.value},
            )
        if shipment.selected_application_id is not None:
            raise ConflictError(
                f"Shipment {shipment_id} was assigned through application "
                f"{shipment.selected_application_id}",
                details={"selected_application_id": shipment.selected_application_id},
            )

        driver = self.repository.get_user(driver_id)
        if not driver:
            raise NotFoundError(f"Driver {driver_id} not found")
        if driver.role != UserRole.DRIVER:
            raise ValidationError(f"User {driver_id} is not a driver")
        if not driver.is_available:
            raise ConflictError("Driver is not available for assignment")

        truck = None
        if truck_id is not None:
            truck = self.repository.get_truck(truck_id)
            if not truck:
                raise NotFoundError(f"Truck {truck_id} not found")
            if not truck.available:
                raise ConflictError("Truck is not available for assignment")

        self.state_machine.assign(shipment, driver, truck, actor, note=note)
        driver.is_available = False
        if truck is not None:
            truck.available = False

        self.commit(shipment_id)
        return shipment

    # ==================== TRUCK OWNER ASSIGNMENT ====================

    def assign_driver(self, shipment_id: int, actor: User, driver_id: int,
                      truck_id: Optional[int] = None, note: Optional[str] = None) -> Shipment:
        """
        The truck owner whose application was accepted puts one of their
        drivers (and optionally another of their trucks) on the shipment.

        The truck defaults to the one on the accepted application. The
        driver and truck already on this shipment are accepted even though
        they are flagged unavailable; whatever they replace is released.
        """
        if actor.role != UserRole.TRUCK_OWNER:
            raise ForbiddenError("Only truck owners can assign their drivers")

        shipment = self.load_shipment(shipment_id)
        application = self.repository.accepted_application(shipment_id, actor.id)
        if application is None:
            raise NotFoundError("Shipment not found or not assigned to you")

        driver = self.repository.get_user(driver_id)
        if not driver or driver.role != UserRole.DRIVER or driver.owner_id != actor.id:
            raise NotFoundError("Driver not found or not assigned to you")
        if driver.id != shipment.assigned_driver_id and not driver.is_available:
            raise ConflictError("Driver is not available for assignment", details={"driver_id": driver_id})

        truck = self.repository.get_truck(truck_id if truck_id is not None else application.truck_id)
        if not truck or truck.owner_id != actor.id:
            raise NotFoundError("Truck not found or not owned by you")
        if truck.id != shipment.assigned_truck_id and not truck.available:
            raise ConflictError("Truck is not available for assignment", details={"truck_id": truck.id})

        previous_truck_id = shipment.assigned_truck_id
        previous_driver_id = shipment.assigned_driver_id
        self.state_machine.assign(shipment, driver, truck, actor, note=note)
        driver.is_available = False
        truck.available = False
        self._free_fleet(
            shipment,
            previous_truck_id if previous_truck_id != truck.id else None,
            previous_driver_id if previous_driver_id != driver.id else None,
        )

        self.commit(shipment_id)
        return shipment

    # ==================== DRIVER PROGRESS ====================

    def start_delivery(self, shipment_id: int, actor: User, note: Optional[str] = None,
                       location: Optional[dict] = None) -> Shipment:
        shipment = self.load_shipment(shipment_id)
        self._require_assigned_driver(shipment, actor)

        current = ShipmentStatus(shipment.status)
        if current not in STARTABLE_STATUSES:
            raise InvalidStateError(
                f"Cannot start delivery for shipment in {current.value} status",
                details={"current_status": current.value},
            )

        self.state_machine.transition(
            shipment, S.IN_TRANSIT, actor,
            note=note or "Delivery started, cargo picked up from origin",
            location=location,
        )
        self.commit(shipment_id)
        return shipment

    def complete_delivery(self, shipment_id: int, actor: User, received_by: Optional[str] = None,
                          note: Optional[str] = None, location: Optional[dict] = None,
                          documents: Optional[list] = None) -> Shipment:
        shipment = self.load_shipment(shipment_id)
        self._require_assigned_driver(shipment, actor)

        current = ShipmentStatus(shipment.status)
        if current not in COMPLETABLE_STATUSES:
            raise InvalidStateError(
                f"Cannot complete delivery for shipment in {current.value} status",
                details={"current_status": current.value},
            )

        if not note:
            note = f"Delivery completed, received by {received_by}" if received_by else "Delivery completed"
        self.state_machine.transition(
            shipment, S.DELIVERED, actor, note=note, location=location, documents=documents
        )
        self._release_if_finished(shipment, current)
        self.commit(shipment_id)
        return shipment

    def report_issue(self, shipment_id: int, actor: User, issue_type: str, description: str,
                     location: Optional[dict] = None) -> Shipment:
        """Severe issues delay the shipment; others are noted at the current status"""
        shipment = self.load_shipment(shipment_id)
        self._require_assigned_driver(shipment, actor)

        current = ShipmentStatus(shipment.status)
        if current not in ISSUE_REPORTABLE_STATUSES:
            raise InvalidStateError(
                f"Cannot report issues for shipment in {current.value} status",
                details={"current_status": current.value},
            )

        issue_type = issue_type.upper()
        note = f"Issue reported ({issue_type}): {description}"
        if issue_type in SEVERE_ISSUE_TYPES:
            self.state_machine.transition(shipment, S.DELAYED, actor, note=note, location=location)
            self.logger.warning(f"🚨 Severe issue on shipment {shipment_id}: {issue_type}")
        else:
            shipment.record_status(current, note=note, location=location, recorded_by=actor.id)
            self.logger.info(f"📝 Issue noted on shipment {shipment_id}: {issue_type}")

        self.commit(shipment_id)
        return shipment
