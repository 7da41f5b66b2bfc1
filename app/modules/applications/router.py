# app/modules/applications/router.py
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.orm import Session

from app.config.database import get_db
from app.core.auth.dependencies import get_current_user, require_roles
from app.modules.acceptance.dependencies import get_acceptance_strategy
from app.modules.acceptance.service import AcceptanceService
from .service import ApplicationService
from .schemas import (
    ApplicationCreate, ApplicationUpdate, ApplicationReject,
    ApplicationResponse, ApplicationListResponse, AcceptanceResponse
)

router = APIRouter()

@router.post("", response_model=ApplicationResponse, status_code=201)
async def create_application(
    application_data: ApplicationCreate,
    current_user = Depends(require_roles(["TruckOwner"])),
    db: Session = Depends(get_db)
):
    """
    Bid on a shipment

    **Validations:**
    - Shipment must be REQUESTED (re-checked at write time)
    - Truck owned by you and available
    - Driver is yours (or unattached) and available
    - One application per shipment and truck owner
    - Price positive, validity deadline in the future
    """
    service = ApplicationService(db)
    return await service.create_application(application_data, current_user)

@router.get("/my", response_model=ApplicationListResponse)
async def get_my_applications(
    status: Optional[str] = Query(None, description="Filter by status"),
    current_user = Depends(require_roles(["TruckOwner"])),
    db: Session = Depends(get_db)
):
    """Applications submitted by the current truck owner"""
    service = ApplicationService(db)
    return await service.list_my_applications(current_user, status)

@router.get("/shipment/{shipment_id}", response_model=ApplicationListResponse)
async def get_shipment_applications(
    shipment_id: int = Path(..., description="Shipment ID"),
    status: Optional[str] = Query(None, description="Filter by status"),
    current_user = Depends(require_roles(["Merchant", "Admin"])),
    db: Session = Depends(get_db)
):
    """Bids on one shipment, cheapest first"""
    service = ApplicationService(db)
    return await service.list_shipment_applications(shipment_id, current_user, status)

@router.get("/{application_id}", response_model=ApplicationResponse)
async def get_application(
    application_id: int = Path(..., description="Application ID"),
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    service = ApplicationService(db)
    return await service.get_application(application_id, current_user)

@router.patch("/{application_id}", response_model=ApplicationResponse)
async def update_application(
    application_data: ApplicationUpdate,
    application_id: int = Path(..., description="Application ID"),
    current_user = Depends(require_roles(["TruckOwner"])),
    db: Session = Depends(get_db)
):
    """Change bid, truck or driver while the application is PENDING"""
    service = ApplicationService(db)
    return await service.update_application(application_id, application_data, current_user)

@router.patch("/{application_id}/cancel", response_model=ApplicationResponse)
async def cancel_application(
    application_id: int = Path(..., description="Application ID"),
    current_user = Depends(require_roles(["TruckOwner"])),
    db: Session = Depends(get_db)
):
    """Withdraw a PENDING application"""
    service = ApplicationService(db)
    return await service.cancel_application(application_id, current_user)

@router.patch("/{application_id}/reject", response_model=ApplicationResponse)
async def reject_application(
    reject_data: ApplicationReject,
    application_id: int = Path(..., description="Application ID"),
    current_user = Depends(require_roles(["Merchant"])),
    db: Session = Depends(get_db)
):
    """Reject a single PENDING application with a reason"""
    service = ApplicationService(db)
    return await service.reject_application(application_id, reject_data.reason, current_user)

@router.patch("/{application_id}/accept", response_model=AcceptanceResponse)
async def accept_application(
    response: Response,
    application_id: int = Path(..., description="Application ID"),
    current_user = Depends(require_roles(["Merchant"])),
    strategy = Depends(get_acceptance_strategy),
    db: Session = Depends(get_db)
):
    """
    Accept a bid and confirm the shipment

    **Steps (in order):**
    1. Application -> ACCEPTED
    2. Every other PENDING application -> REJECTED
    3. Shipment -> CONFIRMED with the winning truck and driver

    **Responses:**
    - 200: all three steps applied
    - 202: application accepted but a later step failed; flagged for admin reconciliation
    - 409: shipment not REQUESTED or application not PENDING, nothing applied
    """
    service = AcceptanceService(db, strategy)
    result = await service.accept_application(application_id, current_user)
    if result.get("reconciliation_required"):
        response.status_code = status.HTTP_202_ACCEPTED
    return result
