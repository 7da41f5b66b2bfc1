# app/modules/admin/router.py
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from app.config.database import get_db
from app.core.auth.dependencies import require_roles
from app.modules.acceptance.dependencies import get_acceptance_strategy
from app.modules.applications.schemas import AcceptanceResponse, ApplicationResponse
from app.modules.shipments.schemas import ShipmentResponse
from .service import AdminService
from .schemas import (
    AdminStatusOverride, ForceAssignRequest, ReconcileRequest,
    AdminShipmentListResponse, AdminApplicationListResponse, AdminShipmentResponse,
    ReconciliationListResponse
)

router = APIRouter()

get_admin_user = require_roles(["Admin"])

# ==================== SHIPMENTS ====================

@router.get("/shipments", response_model=AdminShipmentListResponse)
async def list_shipments(
    status: Optional[str] = Query(None),
    merchant_id: Optional[int] = Query(None),
    driver_id: Optional[int] = Query(None),
    origin_country: Optional[str] = Query(None, min_length=2, max_length=2),
    destination_country: Optional[str] = Query(None, min_length=2, max_length=2),
    created_from: Optional[datetime] = Query(None),
    created_to: Optional[datetime] = Query(None),
    include_inactive: bool = Query(False, description="Include soft-deleted shipments"),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """All shipments with filters, pagination and per-status counts"""
    service = AdminService(db)
    return await service.list_shipments(
        status, merchant_id, driver_id, origin_country, destination_country,
        created_from, created_to, include_inactive, page, size
    )

@router.get("/shipments/{shipment_id}", response_model=AdminShipmentResponse)
async def get_shipment(
    shipment_id: int = Path(..., description="Shipment ID"),
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Shipment with timeline and every application, soft-deleted included"""
    service = AdminService(db)
    return await service.get_shipment(shipment_id)

@router.patch("/shipments/{shipment_id}/status", response_model=ShipmentResponse)
async def override_status(
    override: AdminStatusOverride,
    shipment_id: int = Path(..., description="Shipment ID"),
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """
    Force a shipment status

    **Audit:**
    - Bypasses role and status checks
    - Recorded in the timeline with the admin as author
    - Logged at WARNING
    """
    service = AdminService(db)
    return await service.override_status(shipment_id, override, current_user)

@router.post("/shipments/{shipment_id}/assign", response_model=ShipmentResponse)
async def force_assign(
    assignment: ForceAssignRequest,
    shipment_id: int = Path(..., description="Shipment ID"),
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """
    Assign a driver (and optionally a truck) outside the bidding flow

    **Rules:**
    - Shipment REQUESTED or CONFIRMED
    - Not already confirmed through an accepted application
    - Driver and truck must be available; both become unavailable
    """
    service = AdminService(db)
    return await service.force_assign(shipment_id, assignment, current_user)

# ==================== APPLICATIONS ====================

@router.get("/applications", response_model=AdminApplicationListResponse)
async def list_applications(
    status: Optional[str] = Query(None),
    shipment_id: Optional[int] = Query(None),
    owner_id: Optional[int] = Query(None),
    merchant_id: Optional[int] = Query(None),
    needs_reconciliation: Optional[bool] = Query(None),
    include_inactive: bool = Query(False),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    service = AdminService(db)
    return await service.list_applications(
        status, shipment_id, owner_id, merchant_id, needs_reconciliation, include_inactive, page, size
    )

@router.delete("/applications/{application_id}", response_model=ApplicationResponse)
async def delete_application(
    application_id: int = Path(..., description="Application ID"),
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Soft delete of an ACCEPTED, REJECTED or CANCELLED application"""
    service = AdminService(db)
    return await service.delete_application(application_id, current_user)

# ==================== RECONCILIATION ====================

@router.get("/reconciliations", response_model=ReconciliationListResponse)
async def list_reconciliations(
    current_user = Depends(get_admin_user),
    strategy = Depends(get_acceptance_strategy),
    db: Session = Depends(get_db)
):
    """Acceptances left half-done by the sequential strategy"""
    service = AdminService(db)
    return await service.list_reconciliations(strategy)

@router.post("/reconciliations/{application_id}", response_model=AcceptanceResponse)
async def reconcile(
    request: ReconcileRequest,
    application_id: int = Path(..., description="Application ID"),
    current_user = Depends(get_admin_user),
    strategy = Depends(get_acceptance_strategy),
    db: Session = Depends(get_db)
):
    """
    Repair a flagged acceptance

    **Actions:**
    - complete: reject remaining PENDING competitors and confirm the shipment
    - revert: move the application back to PENDING; the shipment is left as is
    """
    service = AdminService(db)
    return await service.reconcile(application_id, request.action, strategy, current_user)
