# app/modules/shipments/router.py
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from app.config.database import get_db
from app.core.auth.dependencies import get_current_user, require_roles
from .service import ShipmentService
from .schemas import (
    ShipmentCreate, ShipmentUpdate, ShipmentCancel, TimelineEntryCreate,
    ShipmentResponse, ShipmentListResponse, ShipmentSearchResponse, TimelineResponse
)

router = APIRouter()

@router.post("", response_model=ShipmentResponse, status_code=201)
async def create_shipment(
    shipment_data: ShipmentCreate,
    current_user = Depends(require_roles(["Merchant"])),
    db: Session = Depends(get_db)
):
    """
    Create a shipment request

    **Behavior:**
    - Registers origin, destination, cargo and optional payment snapshot
    - Shipment starts in REQUESTED with its first timeline entry
    - Truck owners can bid on it until an application is accepted
    """
    service = ShipmentService(db)
    return await service.create_shipment(shipment_data, current_user)

@router.get("/my", response_model=ShipmentListResponse)
async def get_my_shipments(
    status: Optional[str] = Query(None, description="Filter by status"),
    current_user = Depends(require_roles(["Merchant"])),
    db: Session = Depends(get_db)
):
    """List the current merchant's shipments, newest first"""
    service = ShipmentService(db)
    return await service.list_my_shipments(current_user, status)

@router.get("/search", response_model=ShipmentSearchResponse)
async def search_shipments(
    status: Optional[str] = Query(None),
    origin_country: Optional[str] = Query(None, min_length=2, max_length=2),
    destination_country: Optional[str] = Query(None, min_length=2, max_length=2),
    created_from: Optional[datetime] = Query(None),
    created_to: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Search shipments with pagination

    **Scope by role:**
    - Merchant: own shipments
    - TruckOwner / Driver: open shipments (REQUESTED) only
    - Admin: everything
    """
    service = ShipmentService(db)
    return await service.search_shipments(
        current_user, status, origin_country, destination_country,
        created_from, created_to, page, size
    )

@router.get("/{shipment_id}", response_model=ShipmentResponse)
async def get_shipment(
    shipment_id: int = Path(..., description="Shipment ID"),
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Shipment detail with timeline, scoped to who may see it"""
    service = ShipmentService(db)
    return await service.get_shipment(shipment_id, current_user)

@router.patch("/{shipment_id}", response_model=ShipmentResponse)
async def update_shipment(
    shipment_data: ShipmentUpdate,
    shipment_id: int = Path(..., description="Shipment ID"),
    current_user = Depends(require_roles(["Merchant"])),
    db: Session = Depends(get_db)
):
    """
    Edit route, cargo or schedule

    **Rules:**
    - Only the merchant who created the shipment
    - Only while REQUESTED or CANCELLED
    """
    service = ShipmentService(db)
    return await service.update_shipment(shipment_id, shipment_data, current_user)

@router.post("/{shipment_id}/cancel", response_model=ShipmentResponse)
async def cancel_shipment(
    cancel_data: ShipmentCancel = ShipmentCancel(),
    shipment_id: int = Path(..., description="Shipment ID"),
    current_user = Depends(require_roles(["Merchant", "Admin"])),
    db: Session = Depends(get_db)
):
    """
    Cancel a shipment

    **Behavior:**
    - Allowed while REQUESTED or CONFIRMED
    - Pending applications are NOT rejected automatically
    """
    service = ShipmentService(db)
    return await service.cancel_shipment(shipment_id, cancel_data.reason, current_user)

@router.post("/{shipment_id}/timeline", response_model=ShipmentResponse)
async def add_timeline_entry(
    entry: TimelineEntryCreate,
    shipment_id: int = Path(..., description="Shipment ID"),
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Record a status change

    **Permissions by role (current status):**
    - Merchant: REQUESTED/CONFIRMED -> CANCELLED, DELIVERED -> COMPLETED
    - Driver / TruckOwner of the assigned truck: delivery progress statuses
    - Admin: any status (audited)
    """
    service = ShipmentService(db)
    return await service.add_timeline_entry(shipment_id, entry, current_user)

@router.get("/{shipment_id}/timeline", response_model=TimelineResponse)
async def get_timeline(
    shipment_id: int = Path(..., description="Shipment ID"),
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Full timeline in recording order"""
    service = ShipmentService(db)
    return await service.get_timeline(shipment_id, current_user)

@router.delete("/{shipment_id}")
async def delete_shipment(
    shipment_id: int = Path(..., description="Shipment ID"),
    current_user = Depends(require_roles(["Merchant", "Admin"])),
    db: Session = Depends(get_db)
):
    """Soft delete of a COMPLETED or CANCELLED shipment"""
    service = ShipmentService(db)
    return await service.delete_shipment(shipment_id, current_user)
