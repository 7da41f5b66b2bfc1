# app/modules/tracking/service.py
"""
Location sink for shipments in progress.

Only the current location and timeline entries are written here; status
never changes through tracking.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from app.modules.shipments.repository import ShipmentRepository
from app.modules.shipments.service import ShipmentService
from app.shared.database.models import (
    Shipment, ShipmentStatus, TERMINAL_SHIPMENT_STATUSES, User, UserRole
)
from app.shared.database.transactions import commit_or_conflict
from .geo import haversine_km, is_within_geofence

DEFAULT_ARRIVAL_RADIUS_KM = 1.0


class TrackingService:
    def __init__(self, db: Session, logger: Optional[logging.Logger] = None):
        self.db = db
        self.repository = ShipmentRepository(db)
        self.logger = logger or logging.getLogger(__name__)

    def _load_for_report(self, shipment_id: int, actor: User) -> Shipment:
        shipment = self.repository.get(shipment_id, fresh=True)
        if not shipment:
            raise NotFoundError(f"Shipment {shipment_id} not found")
        if actor.role != UserRole.ADMIN and shipment.assigned_driver_id != actor.id:
            raise ForbiddenError("Only the assigned driver can report this shipment's location")
        if shipment.status in TERMINAL_SHIPMENT_STATUSES:
            raise InvalidStateError(
                f"Cannot track shipment in {shipment.status.value} status",
                details={"current_status": shipment.status.value},
            )
        return shipment

    # ==================== WRITES ====================

    def update_shipment_location(self, shipment_id: int, location: Dict[str, Any], actor: User) -> Shipment:
        shipment = self._load_for_report(shipment_id, actor)
        shipment.set_current_location(location)
        commit_or_conflict(self.db, f"Shipment {shipment_id}", self.logger)
        self.logger.debug(f"📍 Shipment {shipment_id} at ({location['lat']}, {location['lng']})")
        return shipment

    def record_location_history(self, shipment_id: int, location: Dict[str, Any], actor: User,
                                note: Optional[str] = None) -> Shipment:
        """Timeline entry at the current status carrying the location"""
        shipment = self._load_for_report(shipment_id, actor)
        shipment.record_status(
            ShipmentStatus(shipment.status),
            note=note or "Location update",
            location=location,
            recorded_by=actor.id,
        )
        commit_or_conflict(self.db, f"Shipment {shipment_id}", self.logger)
        self.logger.info(f"🗺️ Location history recorded for shipment {shipment_id}")
        return shipment

    # ==================== READS ====================

    def get_shipment_location(self, shipment_id: int, user: User) -> Shipment:
        return ShipmentService(self.db).get_visible_shipment(shipment_id, user)

    def distance_to_destination(self, shipment: Shipment) -> Optional[float]:
        current = shipment.current_location
        if current is None or shipment.destination_lat is None or shipment.destination_lng is None:
            return None
        return haversine_km(
            current["lat"], current["lng"],
            float(shipment.destination_lat), float(shipment.destination_lng)
        )

    # ==================== ROUTER OPERATIONS ====================

    async def update_location(self, shipment_id: int, location: Dict[str, Any], actor: User) -> Dict[str, Any]:
        shipment = self.update_shipment_location(shipment_id, location, actor)
        return {
            "success": True,
            "message": "Location updated",
            "shipment_id": shipment.id,
            "status": shipment.status.value,
            "location": shipment.current_location,
        }

    async def add_location_history(self, shipment_id: int, location: Dict[str, Any], actor: User,
                                   note: Optional[str] = None) -> Dict[str, Any]:
        shipment = self.record_location_history(shipment_id, location, actor, note)
        return {
            "success": True,
            "message": "Location recorded in timeline",
            "shipment_id": shipment.id,
            "status": shipment.status.value,
            "location": shipment.current_location,
        }

    async def get_location(self, shipment_id: int, user: User) -> Dict[str, Any]:
        shipment = self.get_shipment_location(shipment_id, user)
        location = shipment.current_location
        return {
            "success": True,
            "message": "Current location" if location else "No location reported yet",
            "shipment_id": shipment.id,
            "status": shipment.status.value,
            "location": location,
        }

    async def check_arrival(self, shipment_id: int, user: User,
                            radius_km: float = DEFAULT_ARRIVAL_RADIUS_KM) -> Dict[str, Any]:
        """Is the last reported position within radius_km of the destination?"""
        if radius_km <= 0:
            raise ValidationError("radius_km must be positive", details={"field": "radius_km"})

        shipment = self.get_shipment_location(shipment_id, user)
        distance = self.distance_to_destination(shipment)
        within = False
        if distance is not None:
            within = is_within_geofence(
                shipment.current_location,
                float(shipment.destination_lat), float(shipment.destination_lng),
                radius_km,
            )
        return {
            "success": True,
            "message": "Arrived at destination" if within else "Not at destination",
            "shipment_id": shipment.id,
            "radius_km": radius_km,
            "distance_km": round(distance, 3) if distance is not None else None,
            "within_geofence": within,
        }
