# app/modules/truck_owner/service.py
import logging
import math
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError, ValidationError
from app.modules.shipments.schemas import shipment_payload
from app.modules.transitions.gateway import TransitionGateway
from app.shared.database.models import User
from app.shared.database.transactions import commit_or_conflict
from .repository import TruckOwnerRepository
from .schemas import AssignDriverRequest, DriverUpdate, driver_payload, truck_payload

logger = logging.getLogger(__name__)

class TruckOwnerService:
    """
    Carrier-side view for truck owners: shipments they won, the open
    market, and their own drivers and trucks.

    Driver assignment goes through TransitionGateway, which checks that
    the owner holds the accepted application before the state machine
    moves the shipment to ASSIGNED.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repository = TruckOwnerRepository(db)
        self.gateway = TransitionGateway(db)

    # ==================== SHIPMENTS ====================

    async def get_my_shipments(self, owner: User) -> Dict[str, Any]:
        shipments = self.repository.won_shipments(owner.id)
        return {
            "success": True,
            "message": f"{len(shipments)} shipment(s) won",
            "shipments": [shipment_payload(s) for s in shipments],
            "count": len(shipments),
        }

    async def get_available_shipments(self, origin_country: Optional[str] = None,
                                      destination_country: Optional[str] = None,
                                      min_weight: Optional[Decimal] = None,
                                      max_weight: Optional[Decimal] = None,
                                      page: int = 1, size: int = 10) -> Dict[str, Any]:
        if min_weight is not None and max_weight is not None and min_weight > max_weight:
            raise ValidationError(
                "min_weight cannot be greater than max_weight",
                details={"min_weight": str(min_weight), "max_weight": str(max_weight)},
            )
        items, total = self.repository.open_shipments(
            origin_country=origin_country,
            destination_country=destination_country,
            min_weight=min_weight,
            max_weight=max_weight,
            page=page,
            size=size,
        )
        return {
            "success": True,
            "message": f"{total} shipment(s) open for bids",
            "shipments": [shipment_payload(s) for s in items],
            "count": len(items),
            "total": total,
            "page": page,
            "pages": math.ceil(total / size) if size else 0,
        }

    async def assign_driver(self, shipment_id: int, data: AssignDriverRequest, owner: User) -> Dict[str, Any]:
        shipment = self.gateway.assign_driver(
            shipment_id, owner, data.driver_id, truck_id=data.truck_id, note=data.note
        )
        return {
            "success": True,
            "message": f"Shipment assigned to driver {shipment.assigned_driver_id}",
            "shipment": shipment_payload(shipment, include_timeline=True),
        }

    # ==================== FLEET ====================

    async def get_drivers(self, owner: User, is_available: Optional[bool] = None) -> Dict[str, Any]:
        drivers = self.repository.drivers(owner.id, is_available=is_available)
        return {
            "success": True,
            "message": f"{len(drivers)} driver(s)",
            "drivers": [driver_payload(d) for d in drivers],
            "count": len(drivers),
        }

    async def get_available_trucks(self, owner: User) -> Dict[str, Any]:
        trucks = self.repository.available_trucks(owner.id)
        return {
            "success": True,
            "message": f"{len(trucks)} available truck(s)",
            "trucks": [truck_payload(t) for t in trucks],
            "count": len(trucks),
        }

    async def update_driver(self, driver_id: int, data: DriverUpdate, owner: User) -> Dict[str, Any]:
        driver = self.repository.get_driver(owner.id, driver_id)
        if not driver:
            raise NotFoundError("Driver not found or not managed by you")

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            raise ValidationError("No valid fields to update")
        for field, value in changes.items():
            setattr(driver, field, value)

        commit_or_conflict(self.db, f"Driver {driver_id}", logger)
        logger.info(f"👷 Truck owner {owner.id} updated driver {driver_id}: {', '.join(sorted(changes))}")
        return {
            "success": True,
            "message": "Driver updated successfully",
            "driver": driver_payload(driver),
        }
