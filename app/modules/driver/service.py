# app/modules/driver/service.py
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.modules.shipments.repository import ShipmentRepository
from app.modules.shipments.schemas import shipment_payload
from app.modules.tracking.service import TrackingService
from app.modules.transitions.gateway import TransitionGateway
from app.shared.database.models import ShipmentStatus, User
from app.shared.database.transactions import commit_or_conflict
from .schemas import CompleteDelivery, DriverStatusUpdate, IssueReport, StartDelivery

S = ShipmentStatus

ACTIVE_STATUSES = (S.ASSIGNED, S.IN_TRANSIT, S.LOADING, S.UNLOADING)
ASSIGNED_STATUSES = tuple(s for s in S if s not in (S.COMPLETED, S.CANCELLED, S.DELIVERED))
HISTORY_STATUSES = (S.DELIVERED, S.COMPLETED)
# Statuses in which a driver's position is pushed to the shipment
LOCATION_STATUSES = (S.ASSIGNED, S.LOADING, S.IN_TRANSIT, S.AT_BORDER, S.UNLOADING, S.DELAYED)

logger = logging.getLogger(__name__)

def _location_dict(point) -> Optional[dict]:
    return point.model_dump() if point is not None else None

class DriverService:
    def __init__(self, db: Session):
        self.db = db
        self.repository = ShipmentRepository(db)
        self.gateway = TransitionGateway(db)

    def _list(self, driver: User, statuses, label: str) -> Dict[str, Any]:
        shipments = self.repository.list_for_driver(driver.id, statuses)
        return {
            "success": True,
            "message": f"{len(shipments)} {label} shipment(s)",
            "shipments": [shipment_payload(s) for s in shipments],
            "count": len(shipments),
        }

    def _shipment_result(self, shipment, message: str) -> Dict[str, Any]:
        return {
            "success": True,
            "message": message,
            "shipment": shipment_payload(shipment, include_timeline=True),
        }

    # ==================== LISTS ====================

    async def get_active_shipments(self, driver: User) -> Dict[str, Any]:
        return self._list(driver, ACTIVE_STATUSES, "active")

    async def get_assigned_shipments(self, driver: User) -> Dict[str, Any]:
        return self._list(driver, ASSIGNED_STATUSES, "assigned")

    async def get_shipment_history(self, driver: User) -> Dict[str, Any]:
        return self._list(driver, HISTORY_STATUSES, "delivered")

    # ==================== DELIVERY PROGRESS ====================

    async def update_shipment_status(self, shipment_id: int, data: DriverStatusUpdate, driver: User) -> Dict[str, Any]:
        shipment = self.gateway.change_status(
            shipment_id, data.status, driver, note=data.note, location=_location_dict(data.location)
        )
        return self._shipment_result(shipment, f"Shipment status updated to {shipment.status.value}")

    async def start_delivery(self, shipment_id: int, data: StartDelivery, driver: User) -> Dict[str, Any]:
        shipment = self.gateway.start_delivery(
            shipment_id, driver, note=data.note, location=_location_dict(data.location)
        )
        return self._shipment_result(shipment, "Delivery started")

    async def complete_delivery(self, shipment_id: int, data: CompleteDelivery, driver: User) -> Dict[str, Any]:
        shipment = self.gateway.complete_delivery(
            shipment_id, driver,
            received_by=data.received_by,
            note=data.note,
            location=_location_dict(data.location),
            documents=data.documents,
        )
        return self._shipment_result(shipment, "Delivery completed")

    async def report_issue(self, shipment_id: int, data: IssueReport, driver: User) -> Dict[str, Any]:
        shipment = self.gateway.report_issue(
            shipment_id, driver, data.issue_type, data.description, location=_location_dict(data.location)
        )
        return self._shipment_result(shipment, f"Issue {data.issue_type} reported")

    # ==================== DRIVER STATE ====================

    async def set_availability(self, driver: User, is_available: bool) -> Dict[str, Any]:
        driver.is_available = is_available
        commit_or_conflict(self.db, f"Driver {driver.id}", logger)
        logger.info(f"🚦 Driver {driver.id} is now {'available' if is_available else 'unavailable'}")
        return {
            "success": True,
            "message": f"Availability updated to {'available' if is_available else 'unavailable'}",
            "driver_id": driver.id,
            "is_available": driver.is_available,
        }

    async def report_location(self, driver: User, location: Dict[str, Any],
                              shipment_id: Optional[int] = None) -> Dict[str, Any]:
        """Push the driver's position to one shipment, or to every shipment in progress"""
        tracking = TrackingService(self.db)
        if shipment_id is not None:
            shipment_ids: List[int] = [shipment_id]
        else:
            shipment_ids = [s.id for s in self.repository.list_for_driver(driver.id, LOCATION_STATUSES)]

        for target_id in shipment_ids:
            tracking.update_shipment_location(target_id, location, driver)

        return {
            "success": True,
            "message": f"Location updated for {len(shipment_ids)} shipment(s)",
            "location": location,
            "updated_shipment_ids": shipment_ids,
        }
