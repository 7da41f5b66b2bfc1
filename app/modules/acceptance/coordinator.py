# app/modules/acceptance/coordinator.py
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import (
    ConflictError, ForbiddenError, NotFoundError, ValidationError
)
from app.modules.applications.repository import ApplicationRepository
from app.shared.database.models import (
    Application, ApplicationStatus, Shipment, ShipmentStatus, User, UserRole
)
from app.shared.database.transactions import commit_or_conflict
from .strategies import AcceptanceOutcome, AcceptanceStrategy

RECONCILE_ACTIONS = ("complete", "revert")


class AcceptanceCoordinator:
    """
    Resolves one winning bid per shipment.

    Preconditions are checked here before anything is written; the
    strategy decides how the three writes are committed.
    """

    def __init__(self, db: Session, strategy: AcceptanceStrategy, logger: Optional[logging.Logger] = None):
        self.db = db
        self.strategy = strategy
        self.repository = ApplicationRepository(db)
        self.logger = logger or logging.getLogger(__name__)

    def _load(self, application_id: int):
        application = self.repository.get(application_id, fresh=True)
        if not application:
            raise NotFoundError(f"Application {application_id} not found")
        shipment = self.repository.get_shipment(application.shipment_id, fresh=True)
        if not shipment:
            raise NotFoundError(f"Shipment {application.shipment_id} not found")
        return application, shipment

    def check_preconditions(self, application: Application, shipment: Shipment, actor: User):
        if actor.role != UserRole.MERCHANT or shipment.merchant_id != actor.id:
            raise ForbiddenError("Only the merchant who owns the shipment can accept applications")
        if shipment.status != ShipmentStatus.REQUESTED:
            raise ConflictError(
                "shipment not in REQUESTED status",
                details={"shipment_id": shipment.id, "current_status": shipment.status.value},
            )
        if application.status != ApplicationStatus.PENDING:
            raise ConflictError(
                f"application is not PENDING (status: {application.status.value})",
                details={"application_id": application.id, "current_status": application.status.value},
            )

    def accept(self, application_id: int, actor: User) -> AcceptanceOutcome:
        application, shipment = self._load(application_id)
        self.check_preconditions(application, shipment, actor)
        self.logger.info(
            f"🤝 Merchant {actor.id} accepting application {application_id} "
            f"for shipment {shipment.id} ({self.strategy.name})"
        )
        return self.strategy.execute(self.db, application, shipment, actor)

    # ==================== RECONCILIATION ====================

    def pending_reconciliations(self) -> List[Application]:
        items, _ = self.repository.search(needs_reconciliation=True, page=1, size=500)
        return items

    def reconcile(self, application_id: int, actor: User, action: str) -> AcceptanceOutcome:
        """
        Repair an acceptance left half-done by the sequential strategy.

        complete: finish rejecting competitors and confirm the shipment
        revert:   move the application ACCEPTED -> PENDING (the only
                  backward edge an application has)
        """
        if actor.role != UserRole.ADMIN:
            raise ForbiddenError("Only admins can reconcile acceptances")
        if action not in RECONCILE_ACTIONS:
            raise ValidationError(f"Unknown reconciliation action '{action}'. Use one of: {', '.join(RECONCILE_ACTIONS)}")

        application, shipment = self._load(application_id)
        if not application.needs_reconciliation:
            raise ConflictError(
                f"Application {application_id} is not flagged for reconciliation",
                details={"application_id": application_id},
            )
        if application.status != ApplicationStatus.ACCEPTED:
            raise ConflictError(
                f"Application {application_id} is {application.status.value}, expected ACCEPTED",
                details={"application_id": application_id, "current_status": application.status.value},
            )

        if action == "complete":
            return self._complete(application, shipment, actor)
        return self._revert(application, shipment, actor)

    def _complete(self, application: Application, shipment: Shipment, actor: User) -> AcceptanceOutcome:
        already_confirmed = shipment.selected_application_id == application.id
        if not already_confirmed and shipment.status != ShipmentStatus.REQUESTED:
            raise ConflictError(
                f"Shipment {shipment.id} moved to {shipment.status.value}; revert the acceptance instead",
                details={"shipment_id": shipment.id, "current_status": shipment.status.value},
            )

        rejected_ids = self.strategy.reject_competitors(self.db, application, actor)
        if not already_confirmed:
            self.strategy.confirm_shipment(self.db, application, shipment, actor)
        application.needs_reconciliation = False
        commit_or_conflict(self.db, f"Reconciliation of application {application.id}", self.logger)

        self.logger.warning(
            f"🔧 Admin {actor.id} completed acceptance of application {application.id} "
            f"for shipment {shipment.id} ({len(rejected_ids)} competitor(s) rejected)"
        )
        return AcceptanceOutcome(application, shipment, rejected_ids, "reconcile-complete")

    def _revert(self, application: Application, shipment: Shipment, actor: User) -> AcceptanceOutcome:
        if shipment.selected_application_id == application.id:
            raise ConflictError(
                f"Shipment {shipment.id} is already confirmed with this application; complete it instead",
                details={"shipment_id": shipment.id},
            )

        application.record_status(
            ApplicationStatus.PENDING,
            note="Acceptance reverted during reconciliation",
            changed_by=actor.id,
        )
        application.needs_reconciliation = False
        commit_or_conflict(self.db, f"Reconciliation of application {application.id}", self.logger)

        self.logger.warning(
            f"↩️ Admin {actor.id} reverted application {application.id} ACCEPTED -> PENDING "
            f"(shipment {shipment.id} stays {shipment.status.value})"
        )
        return AcceptanceOutcome(application, shipment, [], "reconcile-revert")
