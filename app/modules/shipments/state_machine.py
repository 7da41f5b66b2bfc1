# app/modules/shipments/state_machine.py
"""
Shipment status state machine.

Transitions are gated by the actor's role against the CURRENT status.
By default no adjacency graph is enforced (any permitted target may be
reached from any permitted source, e.g. LOADING -> DELIVERED); setting
ENFORCE_TRANSITION_GRAPH=true adds TRANSITION_GRAPH on top of the role
checks for everyone except admins.
"""
import logging
from typing import Dict, Optional, Set

from app.config.settings import settings
from app.core.exceptions import ForbiddenError, InvalidStateError, ValidationError
from app.shared.database.models import Shipment, ShipmentStatus, Truck, User, UserRole

S = ShipmentStatus

# Statuses the carrier side (driver / truck owner) may act from and move to
CARRIER_SOURCES: Set[ShipmentStatus] = {
    S.CONFIRMED, S.ASSIGNED, S.LOADING, S.IN_TRANSIT, S.AT_BORDER, S.UNLOADING, S.DELAYED
}
CARRIER_TARGETS: Set[ShipmentStatus] = {
    S.LOADING, S.IN_TRANSIT, S.AT_BORDER, S.UNLOADING, S.DELIVERED, S.DELAYED
}
# Starting transit from a pickup status is the assigned driver's call alone
PICKUP_SOURCES: Set[ShipmentStatus] = {S.CONFIRMED, S.ASSIGNED, S.LOADING}

# role -> current status -> allowed targets. Admin is absent: it may force anything.
ROLE_TRANSITIONS: Dict[UserRole, Dict[ShipmentStatus, Set[ShipmentStatus]]] = {
    UserRole.MERCHANT: {
        S.REQUESTED: {S.CANCELLED},
        S.CONFIRMED: {S.CANCELLED},
        S.DELIVERED: {S.COMPLETED},
    },
    UserRole.DRIVER: {source: CARRIER_TARGETS for source in CARRIER_SOURCES},
    UserRole.TRUCK_OWNER: {
        source: CARRIER_TARGETS - {S.IN_TRANSIT} if source in PICKUP_SOURCES else CARRIER_TARGETS
        for source in CARRIER_SOURCES
    },
}

# Strict adjacency, only consulted when enforce_transition_graph is on
TRANSITION_GRAPH: Dict[ShipmentStatus, Set[ShipmentStatus]] = {
    S.REQUESTED: {S.CONFIRMED, S.ASSIGNED, S.CANCELLED},
    S.CONFIRMED: {S.ASSIGNED, S.LOADING, S.IN_TRANSIT, S.CANCELLED},
    S.ASSIGNED: {S.LOADING, S.IN_TRANSIT, S.DELAYED, S.CANCELLED},
    S.LOADING: {S.IN_TRANSIT, S.DELAYED},
    S.IN_TRANSIT: {S.AT_BORDER, S.UNLOADING, S.DELIVERED, S.DELAYED},
    S.AT_BORDER: {S.IN_TRANSIT, S.DELAYED},
    S.UNLOADING: {S.DELIVERED, S.DELAYED},
    S.DELAYED: {S.LOADING, S.IN_TRANSIT, S.AT_BORDER, S.UNLOADING, S.DELIVERED},
    S.DELIVERED: {S.COMPLETED},
    S.COMPLETED: set(),
    S.CANCELLED: set(),
}

ASSIGNABLE_STATUSES = {S.REQUESTED, S.CONFIRMED}
# The winning truck owner may assign (or reassign) a driver until loading starts
OWNER_ASSIGNABLE_STATUSES = {S.CONFIRMED, S.ASSIGNED}


def parse_status(value) -> ShipmentStatus:
    try:
        return ShipmentStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in ShipmentStatus)
        raise ValidationError(
            f"Invalid shipment status '{value}'. Must be one of: {allowed}",
            details={"status": str(value)},
        )


class ShipmentStateMachine:
    def __init__(self, enforce_graph: Optional[bool] = None, logger: Optional[logging.Logger] = None):
        self.enforce_graph = settings.enforce_transition_graph if enforce_graph is None else enforce_graph
        self.logger = logger or logging.getLogger(__name__)

    # ==================== PERMISSIONS ====================

    def _check_scope(self, shipment: Shipment, actor: User):
        """The actor must be the party the shipment belongs to for its role"""
        role = UserRole(actor.role)
        if role == UserRole.MERCHANT and shipment.merchant_id != actor.id:
            raise ForbiddenError("Only the merchant who created this shipment can change it")
        if role == UserRole.DRIVER and shipment.assigned_driver_id != actor.id:
            raise ForbiddenError("Only the driver assigned to this shipment can update it")
        if role == UserRole.TRUCK_OWNER:
            truck = shipment.assigned_truck
            if truck is None or truck.owner_id != actor.id:
                raise ForbiddenError("Only the owner of the assigned truck can update this shipment")

    def check_transition(self, shipment: Shipment, new_status: ShipmentStatus, actor: User):
        current = ShipmentStatus(shipment.status)
        role = UserRole(actor.role)

        if role == UserRole.ADMIN:
            return

        allowed_by_role = ROLE_TRANSITIONS.get(role)
        if allowed_by_role is None:
            raise ForbiddenError(f"Role '{role.value}' cannot change shipment status")

        self._check_scope(shipment, actor)

        if new_status not in allowed_by_role.get(current, set()):
            raise InvalidStateError(
                f"Role '{role.value}' cannot move shipment from {current.value} to {new_status.value}",
                details={"current_status": current.value, "requested_status": new_status.value},
            )

        if self.enforce_graph and new_status != current and new_status not in TRANSITION_GRAPH[current]:
            raise InvalidStateError(
                f"Transition {current.value} -> {new_status.value} is not allowed",
                details={"current_status": current.value, "requested_status": new_status.value},
            )

    def can_transition(self, shipment: Shipment, new_status, actor: User) -> bool:
        try:
            self.check_transition(shipment, parse_status(new_status), actor)
        except (ForbiddenError, InvalidStateError, ValidationError):
            return False
        return True

    # ==================== TRANSITIONS ====================

    def transition(self, shipment: Shipment, new_status, actor: User, note: Optional[str] = None,
                   location: Optional[dict] = None, documents: Optional[list] = None):
        """Validate and apply one status change; caller owns the commit"""
        new_status = parse_status(new_status)
        previous = ShipmentStatus(shipment.status)
        self.check_transition(shipment, new_status, actor)

        entry = shipment.record_status(
            new_status,
            note=note or f"Status updated to {new_status.value}",
            location=location,
            documents=documents,
            recorded_by=actor.id,
        )

        if actor.role == UserRole.ADMIN:
            self.logger.warning(
                f"🛡️ Admin {actor.id} forced shipment {shipment.id}: {previous.value} -> {new_status.value}"
            )
        else:
            self.logger.info(
                f"🚚 Shipment {shipment.id}: {previous.value} -> {new_status.value} by {UserRole(actor.role).value} {actor.id}"
            )
        return entry

    def assign(self, shipment: Shipment, driver: User, truck: Optional[Truck], actor: User,
               note: Optional[str] = None):
        """
        Direct assignment, moves the shipment to ASSIGNED.

        Admin: from REQUESTED or CONFIRMED (force path, audited).
        TruckOwner: from CONFIRMED or ASSIGNED, with their own driver and
        truck; the caller has already checked the owner won the shipment.
        """
        role = UserRole(actor.role)
        if role == UserRole.ADMIN:
            allowed = ASSIGNABLE_STATUSES
        elif role == UserRole.TRUCK_OWNER:
            allowed = OWNER_ASSIGNABLE_STATUSES
            if driver.owner_id != actor.id:
                raise ForbiddenError("The selected driver belongs to another truck owner")
            if truck is not None and truck.owner_id != actor.id:
                raise ForbiddenError("You do not own the selected truck")
        else:
            raise ForbiddenError("Only admins or the winning truck owner can assign drivers")

        current = ShipmentStatus(shipment.status)
        if current not in allowed:
            raise InvalidStateError(
                f"Cannot assign shipment in {current.value} status",
                details={"current_status": current.value},
            )

        shipment.assigned_driver_id = driver.id
        if truck is not None:
            shipment.assigned_truck_id = truck.id

        if role == UserRole.ADMIN:
            default_note = "Shipment assigned to driver by admin"
        else:
            default_note = "Shipment assigned to driver by truck owner"
        entry = shipment.record_status(S.ASSIGNED, note=note or default_note, recorded_by=actor.id)

        message = (
            f"driver {driver.id} (truck {truck.id if truck else '-'}) assigned to shipment "
            f"{shipment.id}: {current.value} -> ASSIGNED"
        )
        if role == UserRole.ADMIN:
            self.logger.warning(f"🛡️ Admin {actor.id}: {message}")
        else:
            self.logger.info(f"🚛 Truck owner {actor.id}: {message}")
        return entry
