# app/modules/shipments/service.py
import logging
import math
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import ForbiddenError, InvalidStateError, NotFoundError
from app.modules.transitions.gateway import TransitionGateway
from app.shared.database.models import (
    Application, Shipment, ShipmentStatus, TERMINAL_SHIPMENT_STATUSES, User, UserRole
)
from .repository import ShipmentRepository
from .state_machine import parse_status
from .schemas import (
    ShipmentCreate, ShipmentUpdate, TimelineEntryCreate,
    shipment_payload, timeline_entry_payload
)

logger = logging.getLogger(__name__)

class ShipmentService:
    def __init__(self, db: Session):
        self.db = db
        self.repository = ShipmentRepository(db)
        self.gateway = TransitionGateway(db)

    # ==================== VISIBILITY ====================

    def can_view(self, shipment: Shipment, user: User) -> bool:
        role = user.role
        if role == UserRole.ADMIN:
            return True
        if role == UserRole.MERCHANT:
            return shipment.merchant_id == user.id
        if role == UserRole.DRIVER:
            return shipment.assigned_driver_id == user.id
        if role == UserRole.TRUCK_OWNER:
            # Open shipments are the marketplace; afterwards only bidders and the carrier
            if shipment.status == ShipmentStatus.REQUESTED:
                return True
            if shipment.assigned_truck is not None and shipment.assigned_truck.owner_id == user.id:
                return True
            return self.db.query(Application).filter(
                Application.shipment_id == shipment.id,
                Application.owner_id == user.id
            ).first() is not None
        return False

    def get_visible_shipment(self, shipment_id: int, user: User) -> Shipment:
        shipment = self.repository.get(shipment_id)
        if not shipment:
            raise NotFoundError(f"Shipment {shipment_id} not found")
        if not self.can_view(shipment, user):
            raise ForbiddenError("You do not have access to this shipment")
        return shipment

    # ==================== MERCHANT OPERATIONS ====================

    async def create_shipment(self, data: ShipmentCreate, merchant: User) -> Dict[str, Any]:
        """Create a shipment request in REQUESTED status"""
        shipment = Shipment(
            merchant_id=merchant.id,
            origin_address=data.origin.address,
            origin_lat=data.origin.lat,
            origin_lng=data.origin.lng,
            origin_country=data.origin.country,
            destination_address=data.destination.address,
            destination_lat=data.destination.lat,
            destination_lng=data.destination.lng,
            destination_country=data.destination.country,
            cargo_description=data.cargo.description,
            cargo_weight=data.cargo.weight,
            cargo_volume=data.cargo.volume,
            cargo_category=data.cargo.category,
            cargo_hazardous=data.cargo.hazardous,
            payment_amount=data.payment.amount if data.payment else None,
            payment_currency=data.payment.currency if data.payment else "USD",
            estimated_pickup_date=data.estimated_pickup_date,
            estimated_delivery_date=data.estimated_delivery_date,
        )
        shipment.record_status(
            ShipmentStatus.REQUESTED, note="Shipment request created", recorded_by=merchant.id
        )

        try:
            self.repository.add(shipment)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"📦 Shipment {shipment.id} created by merchant {merchant.id}")
        return {
            "success": True,
            "message": "Shipment created successfully",
            "shipment": shipment_payload(shipment, include_timeline=True),
        }

    async def list_my_shipments(self, merchant: User, status: Optional[str] = None) -> Dict[str, Any]:
        status_filter = parse_status(status) if status else None
        shipments = self.repository.list_for_merchant(merchant.id, status_filter)
        return {
            "success": True,
            "message": f"{len(shipments)} shipment(s) found",
            "shipments": [shipment_payload(s) for s in shipments],
            "count": len(shipments),
        }

    async def get_shipment(self, shipment_id: int, user: User) -> Dict[str, Any]:
        shipment = self.get_visible_shipment(shipment_id, user)
        return {
            "success": True,
            "message": "Shipment retrieved",
            "shipment": shipment_payload(shipment, include_timeline=True),
        }

    async def search_shipments(self, user: User, status: Optional[str] = None,
                               origin_country: Optional[str] = None,
                               destination_country: Optional[str] = None,
                               created_from: Optional[datetime] = None,
                               created_to: Optional[datetime] = None,
                               page: int = 1, size: int = 20) -> Dict[str, Any]:
        """Merchants search their own shipments; carriers search open ones"""
        status_filter = parse_status(status) if status else None
        merchant_id = None
        if user.role == UserRole.MERCHANT:
            merchant_id = user.id
        elif user.role in (UserRole.TRUCK_OWNER, UserRole.DRIVER):
            status_filter = ShipmentStatus.REQUESTED

        items, total = self.repository.search(
            status=status_filter,
            origin_country=origin_country,
            destination_country=destination_country,
            created_from=created_from,
            created_to=created_to,
            merchant_id=merchant_id,
            page=page,
            size=size,
        )
        return {
            "success": True,
            "message": f"{total} shipment(s) match",
            "items": [shipment_payload(s) for s in items],
            "total": total,
            "page": page,
            "size": size,
            "pages": math.ceil(total / size) if size else 0,
        }

    async def update_shipment(self, shipment_id: int, data: ShipmentUpdate, merchant: User) -> Dict[str, Any]:
        shipment = self.gateway.update_shipment_details(shipment_id, merchant, data.to_changes())
        return {
            "success": True,
            "message": "Shipment updated successfully",
            "shipment": shipment_payload(shipment),
        }

    async def cancel_shipment(self, shipment_id: int, reason: Optional[str], user: User) -> Dict[str, Any]:
        shipment = self.gateway.cancel_shipment(shipment_id, user, reason)
        return {
            "success": True,
            "message": "Shipment cancelled successfully",
            "shipment": shipment_payload(shipment, include_timeline=True),
        }

    async def add_timeline_entry(self, shipment_id: int, entry: TimelineEntryCreate, user: User) -> Dict[str, Any]:
        shipment = self.gateway.change_status(
            shipment_id,
            entry.status,
            user,
            note=entry.note,
            location=entry.location.model_dump() if entry.location else None,
            documents=entry.documents,
        )
        return {
            "success": True,
            "message": f"Shipment status updated to {shipment.status.value}",
            "shipment": shipment_payload(shipment, include_timeline=True),
        }

    async def get_timeline(self, shipment_id: int, user: User) -> Dict[str, Any]:
        shipment = self.get_visible_shipment(shipment_id, user)
        return {
            "success": True,
            "message": "Timeline retrieved",
            "shipment_id": shipment.id,
            "status": shipment.status.value,
            "timeline": [timeline_entry_payload(e) for e in shipment.timeline],
        }

    async def delete_shipment(self, shipment_id: int, user: User) -> Dict[str, Any]:
        """Soft delete, only for shipments in a terminal status"""
        shipment = self.repository.get(shipment_id, fresh=True)
        if not shipment:
            raise NotFoundError(f"Shipment {shipment_id} not found")
        if user.role != UserRole.ADMIN and shipment.merchant_id != user.id:
            raise ForbiddenError("You can only delete your own shipments")
        if shipment.status not in TERMINAL_SHIPMENT_STATUSES:
            raise InvalidStateError(
                f"Only completed or cancelled shipments can be deleted (current: {shipment.status.value})",
                details={"current_status": shipment.status.value},
            )

        shipment.active = False
        self.gateway.commit(shipment_id)
        logger.info(f"🗑️ Shipment {shipment_id} deactivated by {user.id}")
        return {
            "success": True,
            "message": "Shipment deleted successfully",
            "shipment_id": shipment_id,
        }
