# app/modules/applications/repository.py
from typing import List, Optional, Tuple

from sqlalchemy import and_, desc
from sqlalchemy.orm import Session

from app.shared.database.models import (
    Application, ApplicationStatus, ApplicationStatusHistory, Shipment, ShipmentStatus,
    Truck, User
)


class ApplicationRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, application_id: int, lock: bool = False, fresh: bool = False) -> Optional[Application]:
        query = self.db.query(Application).filter(
            and_(
                Application.id == application_id,
                Application.active == True
            )
        )
        if lock:
            query = query.with_for_update()
        if fresh or lock:
            query = query.populate_existing()
        return query.first()

    def get_by_shipment_and_owner(self, shipment_id: int, owner_id: int) -> Optional[Application]:
        return self.db.query(Application).filter(
            and_(
                Application.shipment_id == shipment_id,
                Application.owner_id == owner_id
            )
        ).first()

    def add(self, application: Application) -> Application:
        self.db.add(application)
        self.db.flush()
        return application

    def list_for_owner(self, owner_id: int, status: Optional[ApplicationStatus] = None) -> List[Application]:
        query = self.db.query(Application).filter(
            and_(
                Application.owner_id == owner_id,
                Application.active == True
            )
        )
        if status is not None:
            query = query.filter(Application.status == status)
        return query.order_by(desc(Application.created_at), desc(Application.id)).all()

    def list_for_shipment(self, shipment_id: int, status: Optional[ApplicationStatus] = None) -> List[Application]:
        query = self.db.query(Application).filter(
            and_(
                Application.shipment_id == shipment_id,
                Application.active == True
            )
        )
        if status is not None:
            query = query.filter(Application.status == status)
        return query.order_by(Application.bid_price, Application.id).all()

    def search(self, status: Optional[ApplicationStatus] = None, shipment_id: Optional[int] = None,
               owner_id: Optional[int] = None, needs_reconciliation: Optional[bool] = None,
               page: int = 1, size: int = 20) -> Tuple[List[Application], int]:
        query = self.db.query(Application).filter(Application.active == True)
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

    # ==================== SHIPMENT / FLEET LOOKUPS ====================

    def get_shipment(self, shipment_id: int, lock: bool = False, fresh: bool = False) -> Optional[Shipment]:
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

    def current_shipment_status(self, shipment_id: int, lock: bool = False) -> Optional[ShipmentStatus]:
        """Status straight from the database, bypassing the identity map"""
        query = self.db.query(Shipment.status).filter(Shipment.id == shipment_id)
        if lock:
            query = query.with_for_update()
        return query.scalar()

    def get_truck(self, truck_id: int) -> Optional[Truck]:
        return self.db.query(Truck).filter(
            and_(Truck.id == truck_id, Truck.active == True)
        ).first()

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(
            and_(User.id == user_id, User.is_active == True)
        ).first()

    # ==================== ACCEPTANCE SUPPORT ====================

    def pending_competitor_ids(self, shipment_id: int, chosen_id: int) -> List[int]:
        rows = self.db.query(Application.id).filter(
            and_(
                Application.shipment_id == shipment_id,
                Application.status == ApplicationStatus.PENDING,
                Application.id != chosen_id
            )
        ).all()
        return [row[0] for row in rows]

    def reject_pending_competitors(self, shipment_id: int, chosen_id: int, reason: str,
                                   changed_by: Optional[int] = None) -> List[int]:
        """
        Bulk conditional reject of every other PENDING application.

        The WHERE clause re-checks status == PENDING, so an application that
        was cancelled or accepted in the meantime is never overwritten.
        Returns the ids that were actually rejected.
        """
        candidate_ids = self.pending_competitor_ids(shipment_id, chosen_id)
        if not candidate_ids:
            return []

        condition = and_(
            Application.shipment_id == shipment_id,
            Application.status == ApplicationStatus.PENDING,
            Application.id != chosen_id,
            Application.id.in_(candidate_ids)
        )
        self.db.query(Application).filter(condition).update(
            {
                Application.status: ApplicationStatus.REJECTED,
                Application.rejection_reason: reason,
                Application.version: Application.version + 1,
            },
            synchronize_session="fetch",
        )

        rejected_ids = [
            row[0] for row in self.db.query(Application.id).filter(
                and_(
                    Application.id.in_(candidate_ids),
                    Application.status == ApplicationStatus.REJECTED,
                    Application.rejection_reason == reason
                )
            ).all()
        ]
        for application_id in rejected_ids:
            self.db.add(ApplicationStatusHistory(
                application_id=application_id,
                status=ApplicationStatus.REJECTED,
                note=reason,
                changed_by=changed_by,
            ))
        self.db.flush()
        return rejected_ids
