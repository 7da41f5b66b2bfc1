# app/modules/admin/repository.py
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, desc, func
from sqlalchemy.orm import Session

from app.shared.database.models import (
    Application, ApplicationStatus, Shipment, ShipmentStatus
)


class AdminRepository:
    """Unscoped reads for admins; inactive records included on request"""

    def __init__(self, db: Session):
        self.db = db

    # ==================== SHIPMENTS ====================

    def get_shipment(self, shipment_id: int, include_inactive: bool = True) -> Optional[Shipment]:
        query = self.db.query(Shipment).filter(Shipment.id == shipment_id)
        if not include_inactive:
            query = query.filter(Shipment.active == True)
        return query.populate_existing().first()

    def search_shipments(
        self,
        status: Optional[ShipmentStatus] = None,
        merchant_id: Optional[int] = None,
        driver_id: Optional[int] = None,
        origin_country: Optional[str] = None,
        destination_country: Optional[str] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        include_inactive: bool = False,
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[Shipment], int]:
        query = self.db.query(Shipment)
        if not include_inactive:
            query = query.filter(Shipment.active == True)
        if status is not None:
            query = query.filter(Shipment.status == status)
        if merchant_id is not None:
            query = query.filter(Shipment.merchant_id == merchant_id)
        if driver_id is not None:
            query = query.filter(Shipment.assigned_driver_id == driver_id)
        if origin_country:
            query = query.filter(Shipment.origin_country == origin_country.upper())
        if destination_country:
            query = query.filter(Shipment.destination_country == destination_country.upper())
        if created_from:
            query = query.filter(Shipment.created_at >= created_from)
        if created_to:
            query = query.filter(Shipment.created_at <= created_to)

        total = query.count()
        items = (
            query.order_by(desc(Shipment.created_at), desc(Shipment.id))
            .offset((page - 1) * size)
            .limit(size)
            .all()
        )
        return items, total

    def shipment_status_counts(self) -> Dict[str, int]:
        rows = (
            self.db.query(Shipment.status, func.count(Shipment.id))
            .filter(Shipment.active == True)
            .group_by(Shipment.status)
            .all()
        )
        return {ShipmentStatus(status).value: count for status, count in rows}

    # ==================== APPLICATIONS ====================

    def get_application(self, application_id: int) -> Optional[Application]:
        return (
            self.db.query(Application)
            .filter(Application.id == application_id)
            .populate_existing()
            .first()
        )

    def search_applications(
        self,
        status: Optional[ApplicationStatus] = None,
        shipment_id: Optional[int] = None,
        owner_id: Optional[int] = None,
        merchant_id: Optional[int] = None,
        needs_reconciliation: Optional[bool] = None,
        include_inactive: bool = False,
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[Application], int]:
        query = self.db.query(Application)
        if merchant_id is not None:
            query = query.join(Shipment, Shipment.id == Application.shipment_id).filter(
                Shipment.merchant_id == merchant_id
            )
        if not include_inactive:
            query = query.filter(Application.active == True)
        if status is not None:
            query = query.filter(Application.status == status)
        if shipment_id is not None:
            query = query.filter(Application.shipment_id == shipment_id)
        if owner_id is not None:
            query = query.filter(Application.owner_id == owner_id)
        if needs_reconciliation is not None:
            query = query.filter(Application.needs_reconciliation == needs_reconciliation)

        total = query.count()
        items = (
            query.order_by(desc(Application.created_at), desc(Application.id))
            .offset((page - 1) * size)
            .limit(size)
            .all()
        )
        return items, total
