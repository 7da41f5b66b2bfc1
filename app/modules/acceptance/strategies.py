# app/modules/acceptance/strategies.py
"""
Execution strategies for accepting a bid.

Both run the same three steps in the same order:
  1. accept the chosen application
  2. reject every other PENDING application of the shipment
  3. confirm the shipment with the winning truck and driver

TransactionalAcceptanceStrategy runs them in one unit of work.
SequentialAcceptanceStrategy commits after each step for backends
without multi-record atomicity; a failure after step 1 flags the
application and raises ReconciliationRequiredError.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import ConflictError, DomainError, ReconciliationRequiredError
from app.modules.applications.repository import ApplicationRepository
from app.shared.database.models import (
    Application, ApplicationStatus, Shipment, ShipmentStatus, Truck, User
)
from app.shared.database.transactions import commit_or_conflict

COMPETITOR_REJECTION_REASON = "another application was accepted"
CONFIRMATION_NOTE = "Application accepted and shipment confirmed"

STEP_REJECT = "reject_competitors"
STEP_CONFIRM = "confirm_shipment"


@dataclass
class AcceptanceOutcome:
    application: Application
    shipment: Shipment
    rejected_application_ids: List[int] = field(default_factory=list)
    strategy: str = ""


class AcceptanceStrategy:
    """Shared steps; subclasses decide where the commits go"""
    name = "base"

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def execute(self, db: Session, application: Application, shipment: Shipment,
                actor: User) -> AcceptanceOutcome:
        raise NotImplementedError

    # ==================== STEPS ====================

    def accept_chosen(self, db: Session, application: Application, actor: User):
        application.record_status(
            ApplicationStatus.ACCEPTED, note="Application accepted by merchant", changed_by=actor.id
        )
        db.flush()

    def reject_competitors(self, db: Session, application: Application, actor: User) -> List[int]:
        return ApplicationRepository(db).reject_pending_competitors(
            application.shipment_id,
            application.id,
            COMPETITOR_REJECTION_REASON,
            changed_by=actor.id,
        )

    def confirm_shipment(self, db: Session, application: Application, shipment: Shipment, actor: User):
        if shipment.status != ShipmentStatus.REQUESTED:
            raise ConflictError(
                "shipment not in REQUESTED status",
                details={"shipment_id": shipment.id, "current_status": shipment.status.value},
            )

        shipment.selected_application_id = application.id
        shipment.assigned_truck_id = application.truck_id
        shipment.assigned_driver_id = application.driver_id
        shipment.record_status(ShipmentStatus.CONFIRMED, note=CONFIRMATION_NOTE, recorded_by=actor.id)

        truck = db.get(Truck, application.truck_id)
        if truck is not None:
            truck.available = False
        driver = db.get(User, application.driver_id)
        if driver is not None:
            driver.is_available = False
        db.flush()


class TransactionalAcceptanceStrategy(AcceptanceStrategy):
    name = "transactional"

    def execute(self, db: Session, application: Application, shipment: Shipment,
                actor: User) -> AcceptanceOutcome:
        application_id = application.id
        shipment_id = shipment.id
        try:
            # Serialize against other writers of this shipment and re-check under the lock
            shipment = ApplicationRepository(db).get_shipment(shipment_id, lock=True)
            if shipment is None or shipment.status != ShipmentStatus.REQUESTED:
                raise ConflictError("shipment not in REQUESTED status", details={"shipment_id": shipment_id})
            application = ApplicationRepository(db).get(application_id, lock=True)
            if application is None or application.status != ApplicationStatus.PENDING:
                raise ConflictError("application is not PENDING", details={"application_id": application_id})

            self.accept_chosen(db, application, actor)
            rejected_ids = self.reject_competitors(db, application, actor)
            self.confirm_shipment(db, application, shipment, actor)
            db.commit()
        except DomainError:
            db.rollback()
            raise
        except (StaleDataError, IntegrityError) as e:
            db.rollback()
            self.logger.warning(f"⚠️ Acceptance of application {application_id} lost a race: {e}")
            raise ConflictError(
                "Shipment or application changed during acceptance; nothing was applied",
                details={"application_id": application_id, "shipment_id": shipment_id},
            ) from e
        except Exception:
            db.rollback()
            self.logger.exception(f"❌ Acceptance of application {application_id} rolled back")
            raise

        self.logger.info(
            f"🏆 Application {application_id} accepted for shipment {shipment_id} "
            f"({len(rejected_ids)} competitor(s) rejected, transactional)"
        )
        return AcceptanceOutcome(application, shipment, rejected_ids, self.name)


class SequentialAcceptanceStrategy(AcceptanceStrategy):
    name = "sequential"

    def execute(self, db: Session, application: Application, shipment: Shipment,
                actor: User) -> AcceptanceOutcome:
        application_id = application.id
        shipment_id = shipment.id

        # Step 1: failure here leaves nothing behind, report it as a normal error
        try:
            self.accept_chosen(db, application, actor)
        except StaleDataError as e:
            db.rollback()
            raise ConflictError(
                f"Application {application_id} was modified by another request; reload and retry",
                details={"application_id": application_id},
            ) from e
        commit_or_conflict(db, f"Application {application_id}", self.logger)

        step = STEP_REJECT
        rejected_ids: List[int] = []
        try:
            rejected_ids = self.reject_competitors(db, application, actor)
            db.commit()

            step = STEP_CONFIRM
            shipment = ApplicationRepository(db).get_shipment(shipment_id, fresh=True)
            if shipment is None:
                raise ConflictError("shipment no longer exists", details={"shipment_id": shipment_id})
            self.confirm_shipment(db, application, shipment, actor)
            db.commit()
        except Exception as e:
            db.rollback()
            self._flag_for_reconciliation(db, application_id, shipment_id, step, e)
            raise ReconciliationRequiredError(application_id, shipment_id, step, str(e)) from e

        self.logger.info(
            f"🏆 Application {application_id} accepted for shipment {shipment_id} "
            f"({len(rejected_ids)} competitor(s) rejected, sequential)"
        )
        return AcceptanceOutcome(application, shipment, rejected_ids, self.name)

    def _flag_for_reconciliation(self, db: Session, application_id: int, shipment_id: int,
                                 step: str, error: Exception):
        self.logger.error(
            f"🔧 RECONCILIATION REQUIRED shipment={shipment_id} application={application_id} "
            f"failed_step={step}: {error}"
        )
        try:
            db.query(Application).filter(Application.id == application_id).update(
                {Application.needs_reconciliation: True},
                synchronize_session=False,
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            self.logger.exception(
                f"❌ Could not flag application {application_id} for reconciliation; "
                f"repair shipment {shipment_id} manually"
            )
