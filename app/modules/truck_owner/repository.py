# app/modules/truck_owner/repository.py
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import and_, desc
from sqlalchemy.orm import Session

from app.shared.database.models import (
    Application, ApplicationStatus, Shipment, ShipmentStatus, Truck, User, UserRole
)


class TruckOwnerRepository:
    """Reads scoped to one truck owner's fleet and won shipments"""

    def __init__(self, db: Session):
        self.db = db

    # ==================== SHIPMENTS ====================

    def won_shipments(self, owner_id: int) -> List[Shipment]:
        """Shipments the owner holds through an ACCEPTED application"""
        won_ids = self.db.query(Application.shipment_id).filter(
            and_(
                Application.owner_id == owner_id,
                Application.status == ApplicationStatus.ACCEPTED,
                Application.active == True
            )
        )
        return (
            self.db.query(Shipment)
            .filter(Shipment.id.in_(won_ids))
            .order_by(desc(Shipment.updated_at), desc(Shipment.id))
            .all()
        )

    def open_shipments(
        self,
        origin_country: Optional[str] = None,
        destination_country: Optional[str] = None,
        min_weight: Optional[Decimal] = None,
        max_weight: Optional[Decimal] = None,
        page: int = 1,
        size: int = 10,
    ) -> Tuple[List[Shipment], int]:
        """REQUESTED shipments still open for bids"""
        query = self.db.query(Shipment).filter(
            and_(
                Shipment.status == ShipmentStatus.REQUESTED,
                Shipment.active == True
            )
        )
        if origin_country:
            query = query.filter(Shipment.origin_country == origin_country.upper())
        if destination_country:
            query = query.filter(Shipment.destination_country == destination_country.upper())
        if min_weight is not None:
            query = query.filter(Shipment.cargo_weight >= min_weight)
        if max_weight is not None:
            query = query.filter(Shipment.cargo_weight <= max_weight)

        total = query.count()
        items = (
            query.order_by(desc(Shipment.created_at), desc(Shipment.id))
            .offset((page - 1) * size)
            .limit(size)
            .all()
        )
        return items, total

    # ==================== FLEET ====================

    def drivers(self, owner_id: int, is_available: Optional[bool] = None) -> List[User]:
        query = self.db.query(User).filter(
            and_(
                User.role == UserRole.DRIVER,
                User.owner_id == owner_id,
                User.is_active == True
            )
        )
        if is_available is not None:
            query = query.filter(User.is_available == is_available)
        return query.order_by(User.name, User.id).all()

    def get_driver(self, owner_id: int, driver_id: int) -> Optional[User]:
        return self.db.query(User).filter(
            and_(
                User.id == driver_id,
                User.role == UserRole.DRIVER,
                User.owner_id == owner_id,
                User.is_active == True
            )
        ).first()

    def available_trucks(self, owner_id: int) -> List[Truck]:
        return self.db.query(Truck).filter(
            and_(
                Truck.owner_id == owner_id,
                Truck.available == True,
                Truck.active == True
            )
        ).order_by(Truck.plate_number).all()
