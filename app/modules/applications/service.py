# app/modules/applications/service.py
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.shared.database.models import (
    Application, ApplicationStatus, Shipment, ShipmentStatus, Truck, User, UserRole
)
from app.shared.database.transactions import commit_or_conflict
from .repository import ApplicationRepository
from .schemas import ApplicationCreate, ApplicationUpdate, BidDetails, application_payload

class ApplicationService:
    def __init__(self, db: Session, logger: Optional[logging.Logger] = None):
        self.db = db
        self.repository = ApplicationRepository(db)
        self.logger = logger or logging.getLogger(__name__)

    # ==================== VALIDATION HELPERS ====================

    def _load(self, application_id: int) -> Application:
        application = self.repository.get(application_id, fresh=True)
        if not application:
            raise NotFoundError(f"Application {application_id} not found")
        return application

    def _require_pending(self, application: Application, action: str):
        if application.status != ApplicationStatus.PENDING:
            raise ConflictError(
                f"Cannot {action} application in {application.status.value} status",
                details={"application_id": application.id, "current_status": application.status.value},
            )

    def _validate_truck(self, truck_id: int, owner: User) -> Truck:
        truck = self.repository.get_truck(truck_id)
        if not truck:
            raise NotFoundError(f"Truck {truck_id} not found")
        if truck.owner_id != owner.id:
            raise ForbiddenError("You do not own the selected truck")
        if not truck.available:
            raise ConflictError("The selected truck is not available", details={"truck_id": truck_id})
        return truck

    def _validate_driver(self, driver_id: int, owner: User) -> User:
        driver = self.repository.get_user(driver_id)
        if not driver:
            raise NotFoundError(f"Driver {driver_id} not found")
        if driver.role != UserRole.DRIVER:
            raise ForbiddenError(f"User {driver_id} is not a driver")
        if driver.owner_id is not None and driver.owner_id != owner.id:
            raise ForbiddenError("The selected driver belongs to another truck owner")
        if not driver.is_available:
            raise ConflictError("The selected driver is not available", details={"driver_id": driver_id})
        return driver

    def _validate_bid(self, bid: BidDetails):
        if bid.price is None or bid.price <= 0:
            raise ValidationError("Bid price must be a positive number", details={"field": "price"})
        if bid.valid_until is not None and bid.valid_until <= datetime.now():
            raise ValidationError("Bid validity deadline must be in the future", details={"field": "valid_until"})

    # ==================== LIFECYCLE ====================

    def submit(self, shipment_id: int, owner: User, truck_id: int, driver_id: int, bid: BidDetails) -> Application:
        """
        Create a PENDING application for a REQUESTED shipment.

        The shipment status is checked again inside the write transaction
        (row lock where the backend supports it), so a bid racing with an
        acceptance or cancellation is refused instead of slipping in.
        """
        if owner.role != UserRole.TRUCK_OWNER:
            raise ForbiddenError("Only truck owners can apply for shipments")

        shipment = self.repository.get_shipment(shipment_id)
        if not shipment:
            raise NotFoundError(f"Shipment {shipment_id} not found")
        if shipment.status != ShipmentStatus.REQUESTED:
            raise ConflictError(
                f"Shipment is not accepting applications (status: {shipment.status.value})",
                details={"shipment_id": shipment_id, "current_status": shipment.status.value},
            )

        self._validate_truck(truck_id, owner)
        self._validate_driver(driver_id, owner)

        if self.repository.get_by_shipment_and_owner(shipment_id, owner.id):
            raise ConflictError(
                "You have already applied for this shipment",
                details={"shipment_id": shipment_id},
            )
        self._validate_bid(bid)

        application = Application(
            shipment_id=shipment_id,
            owner_id=owner.id,
            truck_id=truck_id,
            driver_id=driver_id,
            bid_price=bid.price,
            bid_currency=bid.currency,
            bid_notes=bid.notes,
            bid_valid_until=bid.valid_until,
        )
        application.record_status(ApplicationStatus.PENDING, note="Application submitted", changed_by=owner.id)

        try:
            self.repository.add(application)
            status_now = self.repository.current_shipment_status(shipment_id, lock=True)
        except Exception:
            self.db.rollback()
            raise

        if status_now != ShipmentStatus.REQUESTED:
            self.db.rollback()
            current = status_now.value if status_now else "deleted"
            self.logger.info(f"⛔ Bid on shipment {shipment_id} refused at write time (status {current})")
            raise ConflictError(
                f"Shipment is not accepting applications (status: {current})",
                details={"shipment_id": shipment_id, "current_status": current},
            )

        commit_or_conflict(self.db, f"Application for shipment {shipment_id}", self.logger)
        self.logger.info(
            f"📨 Application {application.id} submitted: shipment {shipment_id}, "
            f"owner {owner.id}, price {bid.price} {bid.currency}"
        )
        return application

    def update(self, application_id: int, owner: User, changes: ApplicationUpdate) -> Application:
        """Owner edits bid, truck or driver while PENDING"""
        application = self._load(application_id)
        if application.owner_id != owner.id:
            raise ForbiddenError("You can only update your own applications")
        self._require_pending(application, "update")

        if changes.truck_id is not None and changes.truck_id != application.truck_id:
            self._validate_truck(changes.truck_id, owner)
            application.truck_id = changes.truck_id
        if changes.driver_id is not None and changes.driver_id != application.driver_id:
            self._validate_driver(changes.driver_id, owner)
            application.driver_id = changes.driver_id
        if changes.bid is not None:
            self._validate_bid(changes.bid)
            application.bid_price = changes.bid.price
            application.bid_currency = changes.bid.currency
            application.bid_notes = changes.bid.notes
            application.bid_valid_until = changes.bid.valid_until

        commit_or_conflict(self.db, f"Application {application_id}", self.logger)
        self.logger.info(f"✏️ Application {application_id} updated by owner {owner.id}")
        return application

    def cancel(self, application_id: int, actor: User) -> Application:
        application = self._load(application_id)
        if application.owner_id != actor.id:
            raise ForbiddenError("Only the truck owner who applied can cancel this application")
        self._require_pending(application, "cancel")

        application.record_status(ApplicationStatus.CANCELLED, note="Cancelled by truck owner", changed_by=actor.id)
        commit_or_conflict(self.db, f"Application {application_id}", self.logger)
        self.logger.info(f"🚫 Application {application_id} cancelled by owner {actor.id}")
        return application

    def reject(self, application_id: int, reason: str, actor: User) -> Application:
        application = self._load(application_id)
        shipment = self.repository.get_shipment(application.shipment_id)
        if not shipment:
            raise NotFoundError(f"Shipment {application.shipment_id} not found")
        if actor.role != UserRole.MERCHANT or shipment.merchant_id != actor.id:
            raise ForbiddenError("Only the merchant who owns the shipment can reject applications")
        self._require_pending(application, "reject")

        application.rejection_reason = reason
        application.record_status(ApplicationStatus.REJECTED, note=reason, changed_by=actor.id)
        commit_or_conflict(self.db, f"Application {application_id}", self.logger)
        self.logger.info(f"❌ Application {application_id} rejected by merchant {actor.id}")
        return application

    # ==================== ROUTER OPERATIONS ====================

    async def create_application(self, data: ApplicationCreate, owner: User) -> Dict[str, Any]:
        application = self.submit(data.shipment_id, owner, data.truck_id, data.driver_id, data.bid)
        return {
            "success": True,
            "message": "Application submitted successfully",
            "application": application_payload(application, include_history=True),
        }

    async def update_application(self, application_id: int, data: ApplicationUpdate, owner: User) -> Dict[str, Any]:
        application = self.update(application_id, owner, data)
        return {
            "success": True,
            "message": "Application updated successfully",
            "application": application_payload(application),
        }

    async def cancel_application(self, application_id: int, actor: User) -> Dict[str, Any]:
        application = self.cancel(application_id, actor)
        return {
            "success": True,
            "message": "Application cancelled successfully",
            "application": application_payload(application, include_history=True),
        }

    async def reject_application(self, application_id: int, reason: str, actor: User) -> Dict[str, Any]:
        application = self.reject(application_id, reason, actor)
        return {
            "success": True,
            "message": "Application rejected successfully",
            "application": application_payload(application, include_history=True),
        }

    async def get_application(self, application_id: int, user: User) -> Dict[str, Any]:
        application = self._load(application_id)
        if user.role != UserRole.ADMIN:
            shipment = self.repository.get_shipment(application.shipment_id)
            allowed = (
                application.owner_id == user.id
                or application.driver_id == user.id
                or (shipment is not None and shipment.merchant_id == user.id)
            )
            if not allowed:
                raise ForbiddenError("You do not have access to this application")
        return {
            "success": True,
            "message": "Application retrieved",
            "application": application_payload(application, include_history=True),
        }

    async def list_my_applications(self, owner: User, status: Optional[str] = None) -> Dict[str, Any]:
        status_filter = parse_application_status(status) if status else None
        applications = self.repository.list_for_owner(owner.id, status_filter)
        return {
            "success": True,
            "message": f"{len(applications)} application(s) found",
            "applications": [application_payload(a) for a in applications],
            "count": len(applications),
        }

    async def list_shipment_applications(self, shipment_id: int, user: User,
                                         status: Optional[str] = None) -> Dict[str, Any]:
        shipment: Optional[Shipment] = self.repository.get_shipment(shipment_id)
        if not shipment:
            raise NotFoundError(f"Shipment {shipment_id} not found")
        if user.role != UserRole.ADMIN and shipment.merchant_id != user.id:
            raise ForbiddenError("Only the merchant who owns the shipment can see its applications")

        status_filter = parse_application_status(status) if status else None
        applications = self.repository.list_for_shipment(shipment_id, status_filter)
        return {
            "success": True,
            "message": f"{len(applications)} application(s) for shipment {shipment_id}",
            "applications": [application_payload(a) for a in applications],
            "count": len(applications),
        }


def parse_application_status(value) -> ApplicationStatus:
    try:
        return ApplicationStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in ApplicationStatus)
        raise ValidationError(f"Invalid application status '{value}'. Must be one of: {allowed}")
