# app/modules/tracking/router.py
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from app.config.database import get_db
from app.core.auth.dependencies import get_current_user, require_roles
from .service import TrackingService, DEFAULT_ARRIVAL_RADIUS_KM
from .schemas import LocationUpdate, LocationHistoryCreate, LocationResponse, ArrivalCheckResponse

router = APIRouter()

@router.patch("/shipments/{shipment_id}/location", response_model=LocationResponse)
async def update_location(
    location: LocationUpdate,
    shipment_id: int = Path(..., description="Shipment ID"),
    current_user = Depends(require_roles(["Driver", "Admin"])),
    db: Session = Depends(get_db)
):
    """Update the current position (assigned driver or admin); status is untouched"""
    service = TrackingService(db)
    return await service.update_location(shipment_id, location.as_dict(), current_user)

@router.get("/shipments/{shipment_id}/location", response_model=LocationResponse)
async def get_location(
    shipment_id: int = Path(..., description="Shipment ID"),
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    service = TrackingService(db)
    return await service.get_location(shipment_id, current_user)

@router.post("/shipments/{shipment_id}/history", response_model=LocationResponse)
async def record_location_history(
    entry: LocationHistoryCreate,
    shipment_id: int = Path(..., description="Shipment ID"),
    current_user = Depends(require_roles(["Driver", "Admin"])),
    db: Session = Depends(get_db)
):
    """
    Add a timeline entry with the location

    The entry repeats the current status, so the shipment status does not change.
    """
    service = TrackingService(db)
    return await service.add_location_history(shipment_id, entry.as_dict(), current_user, entry.note)

@router.get("/shipments/{shipment_id}/arrival", response_model=ArrivalCheckResponse)
async def check_arrival(
    shipment_id: int = Path(..., description="Shipment ID"),
    radius_km: float = Query(DEFAULT_ARRIVAL_RADIUS_KM, gt=0, le=500),
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Radius check of the last reported position against the destination"""
    service = TrackingService(db)
    return await service.check_arrival(shipment_id, current_user, radius_km)
