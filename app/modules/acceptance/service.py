# app/modules/acceptance/service.py
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import ReconciliationRequiredError
from app.modules.applications.repository import ApplicationRepository
from app.modules.applications.schemas import application_payload
from app.modules.shipments.schemas import shipment_payload
from app.shared.database.models import User
from .coordinator import AcceptanceCoordinator
from .strategies import AcceptanceOutcome, AcceptanceStrategy


class AcceptanceService:
    def __init__(self, db: Session, strategy: AcceptanceStrategy, logger: Optional[logging.Logger] = None):
        self.db = db
        self.logger = logger or logging.getLogger(__name__)
        self.coordinator = AcceptanceCoordinator(db, strategy, logger=self.logger)

    def _outcome_payload(self, outcome: AcceptanceOutcome, message: str) -> Dict[str, Any]:
        return {
            "success": True,
            "message": message,
            "application": application_payload(outcome.application, include_history=True),
            "shipment": shipment_payload(outcome.shipment, include_timeline=True),
            "rejected_application_ids": outcome.rejected_application_ids,
            "strategy": outcome.strategy,
            "reconciliation_required": False,
        }

    async def accept_application(self, application_id: int, actor: User) -> Dict[str, Any]:
        """
        Accept a bid.

        A sequential run that fails after the chosen application was
        accepted still reports success, with reconciliation_required set
        and the failed step in the warning, so the caller knows the
        acceptance stands but needs an admin to finish it.
        """
        try:
            outcome = self.coordinator.accept(application_id, actor)
        except ReconciliationRequiredError as e:
            application = ApplicationRepository(self.db).get(application_id, fresh=True)
            return {
                "success": True,
                "message": "Application accepted; follow-up steps failed and need reconciliation",
                "application": application_payload(application, include_history=True) if application else None,
                "shipment": None,
                "rejected_application_ids": [],
                "strategy": self.coordinator.strategy.name,
                "reconciliation_required": True,
                "warning": e.details,
            }
        return self._outcome_payload(outcome, "Application accepted and shipment confirmed")

    async def list_reconciliations(self) -> Dict[str, Any]:
        applications = self.coordinator.pending_reconciliations()
        return {
            "success": True,
            "message": f"{len(applications)} application(s) need reconciliation",
            "applications": [application_payload(a, include_history=True) for a in applications],
            "count": len(applications),
        }

    async def reconcile(self, application_id: int, action: str, actor: User) -> Dict[str, Any]:
        outcome = self.coordinator.reconcile(application_id, actor, action)
        verb = "completed" if action == "complete" else "reverted"
        return self._outcome_payload(outcome, f"Acceptance of application {application_id} {verb}")
