# app/modules/shipments/repository.py
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import and_, desc
from sqlalchemy.orm import Session

from app.shared.database.models import (
    Application, ApplicationStatus, Shipment, ShipmentStatus, ShipmentTimelineEntry, Truck, User
)

# Once a shipment reaches one of these its truck and driver are free again
FLEET_RELEASE_STATUSES = {ShipmentStatus.DELIVERED, ShipmentStatus.COMPLETED, ShipmentStatus.CANCELLED}


class ShipmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, shipment_id: int, lock: bool = False, fresh: bool = False) -> Optional[Shipment]:
        """
        Load one active shipment.

        lock: SELECT ... FOR UPDATE (no-op on SQLite)
        fresh: overwrite any copy already in the identity map, so the caller
               sees the committed status right before it writes
        """
        query = self.db.query(Shipment).filter(
            and_(
                Shipment.id == shipment_id,
                Shipment.active == True
            )
        )
        if lock:
            query = query.with_for_update()
        if fresh or lock:
            query = query.populate_existing()
        return query.first()

    def add(self, shipment: Shipment) -> Shipment:
        self.db.add(shipment)
        self.db.flush()
        return shipment

    def list_for_merchant(self, merchant_id: int, status: Optional[ShipmentStatus] = None) -> List[Shipment]:
        query = self.db.query(Shipment).filter(
            and_(
                Shipment.merchant_id == merchant_id,
                Shipment.active == True
            )
        )
        if status is not None:
            query = query.filter(Shipment.status == status)
        return query.order_by(desc(Shipment.created_at), desc(Shipment.id)).all()

    def list_for_driver(self, driver_id: int, statuses=None) -> List[Shipment]:
        query = self.db.query(Shipment).filter(
            and_(
                Shipment.assigned_driver_id == driver_id,
                Shipment.active == True
            )
        )
        if statuses:
            query = query.filter(Shipment.status.in_(list(statuses)))
        return query.order_by(desc(Shipment.updated_at), desc(Shipment.id)).all()

    def search(
        self,
        status: Optional[ShipmentStatus] = None,
        origin_country: Optional[str] = None,
        destination_country: Optional[str] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        merchant_id: Optional[int] = None,
        include_inactive: bool = False,
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[Shipment], int]:
        """Filtered, paginated shipment listing"""
        query = self.db.query(Shipment)

        if not include_inactive:
            query = query.filter(Shipment.active == True)
        if status is not None:
            query = query.filter(Shipment.status == status)
        if origin_country:
            query = query.filter(Shipment.origin_country == origin_country.upper())
        if destination_country:
            query = query.filter(Shipment.destination_country == destination_country.upper())
        if created_from:
            query = query.filter(Shipment.created_at >= created_from)
        if created_to:
            query = query.filter(Shipment.created_at <= created_to)
        if merchant_id is not None:
            query = query.filter(Shipment.merchant_id == merchant_id)

        total = query.count()
        items = (
            query.order_by(desc(Shipment.created_at), desc(Shipment.id))
            .offset((page - 1) * size)
            .limit(size)
            .all()
        )
        return items, total

    def timeline(self, shipment_id: int) -> List[ShipmentTimelineEntry]:
        return (
            self.db.query(ShipmentTimelineEntry)
            .filter(ShipmentTimelineEntry.shipment_id == shipment_id)
            .order_by(ShipmentTimelineEntry.id)
            .all()
        )

    # ==================== FLEET REFERENCE DATA ====================

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(
            and_(User.id == user_id, User.is_active == True)
        ).first()

    def get_truck(self, truck_id: int) -> Optional[Truck]:
        return self.db.query(Truck).filter(
            and_(Truck.id == truck_id, Truck.active == True)
        ).first()

    def accepted_application(self, shipment_id: int, owner_id: int) -> Optional[Application]:
        return self.db.query(Application).filter(
            and_(
                Application.shipment_id == shipment_id,
                Application.owner_id == owner_id,
                Application.status == ApplicationStatus.ACCEPTED,
                Application.active == True
            )
        ).first()

    def fleet_busy_elsewhere(self, shipment_id: int, truck_id: Optional[int] = None,
                             driver_id: Optional[int] = None) -> bool:
        """Is the truck or driver on another shipment that is not finished yet?"""
        if truck_id is None and driver_id is None:
            return False
        query = self.db.query(Shipment.id).filter(
            and_(
                Shipment.id != shipment_id,
                Shipment.active == True,
                Shipment.status.notin_(list(FLEET_RELEASE_STATUSES))
            )
        )
        if truck_id is not None:
            query = query.filter(Shipment.assigned_truck_id == truck_id)
        else:
            query = query.filter(Shipment.assigned_driver_id == driver_id)
        return query.first() is not None
