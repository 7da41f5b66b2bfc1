# app/modules/admin/service.py
import logging
import math
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from app.modules.acceptance.service import AcceptanceService
from app.modules.applications.schemas import application_payload
from app.modules.applications.service import parse_application_status
from app.modules.shipments.schemas import shipment_payload
from app.modules.shipments.state_machine import parse_status
from app.modules.transitions.gateway import TransitionGateway
from app.shared.database.models import TERMINAL_APPLICATION_STATUSES, User
from app.shared.database.transactions import commit_or_conflict
from .repository import AdminRepository
from .schemas import AdminStatusOverride, ForceAssignRequest

logger = logging.getLogger(__name__)

class AdminService:
    """
    Operations reserved for administrators.

    Status overrides and force assignments go through TransitionGateway
    like every other shipment write, so they land in the timeline and
    are logged at WARNING by the state machine.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repository = AdminRepository(db)
        self.gateway = TransitionGateway(db)

    def _page(self, items, total: int, page: int, size: int, payload) -> Dict[str, Any]:
        return {
            "items": [payload(i) for i in items],
            "total": total,
            "page": page,
            "size": size,
            "pages": math.ceil(total / size) if size else 0,
        }

    # ==================== SHIPMENTS ====================

    async def list_shipments(self, status: Optional[str] = None, merchant_id: Optional[int] = None,
                             driver_id: Optional[int] = None, origin_country: Optional[str] = None,
                             destination_country: Optional[str] = None,
                             created_from: Optional[datetime] = None, created_to: Optional[datetime] = None,
                             include_inactive: bool = False, page: int = 1, size: int = 20) -> Dict[str, Any]:
        status_filter = parse_status(status) if status else None
        items, total = self.repository.search_shipments(
            status=status_filter,
            merchant_id=merchant_id,
            driver_id=driver_id,
            origin_country=origin_country,
            destination_country=destination_country,
            created_from=created_from,
            created_to=created_to,
            include_inactive=include_inactive,
            page=page,
            size=size,
        )
        result = {"success": True, "message": f"{total} shipment(s) match"}
        result.update(self._page(items, total, page, size, shipment_payload))
        result["status_counts"] = self.repository.shipment_status_counts()
        return result

    async def get_shipment(self, shipment_id: int) -> Dict[str, Any]:
        shipment = self.repository.get_shipment(shipment_id)
        if not shipment:
            raise NotFoundError(f"Shipment {shipment_id} not found")
        return {
            "success": True,
            "message": "Shipment retrieved",
            "shipment": shipment_payload(shipment, include_timeline=True),
            "applications": [application_payload(a) for a in shipment.applications],
        }

    async def override_status(self, shipment_id: int, data: AdminStatusOverride, admin: User) -> Dict[str, Any]:
        shipment = self.gateway.change_status(
            shipment_id,
            data.status,
            admin,
            note=data.note,
            location=data.location.model_dump() if data.location else None,
        )
        return {
            "success": True,
            "message": f"Shipment status forced to {shipment.status.value}",
            "shipment": shipment_payload(shipment, include_timeline=True),
        }

    async def force_assign(self, shipment_id: int, data: ForceAssignRequest, admin: User) -> Dict[str, Any]:
        shipment = self.gateway.force_assign(
            shipment_id, admin, driver_id=data.driver_id, truck_id=data.truck_id, note=data.note
        )
        return {
            "success": True,
            "message": f"Shipment {shipment_id} assigned to driver {data.driver_id}",
            "shipment": shipment_payload(shipment, include_timeline=True),
        }

    # ==================== APPLICATIONS ====================

    async def list_applications(self, status: Optional[str] = None, shipment_id: Optional[int] = None,
                                owner_id: Optional[int] = None, merchant_id: Optional[int] = None,
                                needs_reconciliation: Optional[bool] = None, include_inactive: bool = False,
                                page: int = 1, size: int = 20) -> Dict[str, Any]:
        status_filter = parse_application_status(status) if status else None
        items, total = self.repository.search_applications(
            status=status_filter,
            shipment_id=shipment_id,
            owner_id=owner_id,
            merchant_id=merchant_id,
            needs_reconciliation=needs_reconciliation,
            include_inactive=include_inactive,
            page=page,
            size=size,
        )
        result = {"success": True, "message": f"{total} application(s) match"}
        result.update(self._page(items, total, page, size, application_payload))
        return result

    async def delete_application(self, application_id: int, admin: User) -> Dict[str, Any]:
        """Soft delete of an application in a terminal status"""
        application = self.repository.get_application(application_id)
        if not application or not application.active:
            raise NotFoundError(f"Application {application_id} not found")
        if application.status not in TERMINAL_APPLICATION_STATUSES:
            raise InvalidStateError(
                f"Only accepted, rejected or cancelled applications can be deleted "
                f"(current: {application.status.value})",
                details={"current_status": application.status.value},
            )
        if application.needs_reconciliation:
            raise ConflictError(
                f"Application {application_id} is waiting for reconciliation",
                details={"application_id": application_id},
            )

        application.active = False
        commit_or_conflict(self.db, f"Application {application_id}", logger)
        logger.warning(f"🗑️ Admin {admin.id} deactivated application {application_id}")
        return {
            "success": True,
            "message": "Application deleted successfully",
            "application": application_payload(application),
        }

    # ==================== RECONCILIATION ====================

    async def list_reconciliations(self, strategy) -> Dict[str, Any]:
        return await AcceptanceService(self.db, strategy).list_reconciliations()

    async def reconcile(self, application_id: int, action: str, strategy, admin: User) -> Dict[str, Any]:
        return await AcceptanceService(self.db, strategy).reconcile(application_id, action, admin)
