# app/modules/driver/router.py
from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from app.config.database import get_db
from app.core.auth.dependencies import require_roles
from .service import DriverService
from .schemas import (
    DriverStatusUpdate, StartDelivery, CompleteDelivery, IssueReport,
    AvailabilityUpdate, DriverLocationReport,
    DriverShipmentsResponse, DriverShipmentResponse, AvailabilityResponse, DriverLocationResponse
)

router = APIRouter()

get_driver_user = require_roles(["Driver"])

# ==================== LISTS ====================

@router.get("/shipments/active", response_model=DriverShipmentsResponse)
async def get_active_shipments(
    current_user = Depends(get_driver_user),
    db: Session = Depends(get_db)
):
    """Shipments being worked on: ASSIGNED, LOADING, IN_TRANSIT, UNLOADING"""
    service = DriverService(db)
    return await service.get_active_shipments(current_user)

@router.get("/shipments/assigned", response_model=DriverShipmentsResponse)
async def get_assigned_shipments(
    current_user = Depends(get_driver_user),
    db: Session = Depends(get_db)
):
    """Every assigned shipment not yet delivered, completed or cancelled"""
    service = DriverService(db)
    return await service.get_assigned_shipments(current_user)

@router.get("/shipments/history", response_model=DriverShipmentsResponse)
async def get_shipment_history(
    current_user = Depends(get_driver_user),
    db: Session = Depends(get_db)
):
    service = DriverService(db)
    return await service.get_shipment_history(current_user)

# ==================== DELIVERY PROGRESS ====================

@router.patch("/shipments/{shipment_id}/status", response_model=DriverShipmentResponse)
async def update_shipment_status(
    status_data: DriverStatusUpdate,
    shipment_id: int = Path(..., description="Shipment ID"),
    current_user = Depends(get_driver_user),
    db: Session = Depends(get_db)
):
    """
    Record delivery progress

    **Allowed targets:** LOADING, IN_TRANSIT, AT_BORDER, UNLOADING, DELIVERED, DELAYED
    """
    service = DriverService(db)
    return await service.update_shipment_status(shipment_id, status_data, current_user)

@router.post("/shipments/{shipment_id}/start", response_model=DriverShipmentResponse)
async def start_delivery(
    start_data: StartDelivery = StartDelivery(),
    shipment_id: int = Path(..., description="Shipment ID"),
    current_user = Depends(get_driver_user),
    db: Session = Depends(get_db)
):
    """ASSIGNED or LOADING -> IN_TRANSIT"""
    service = DriverService(db)
    return await service.start_delivery(shipment_id, start_data, current_user)

@router.post("/shipments/{shipment_id}/complete", response_model=DriverShipmentResponse)
async def complete_delivery(
    complete_data: CompleteDelivery,
    shipment_id: int = Path(..., description="Shipment ID"),
    current_user = Depends(get_driver_user),
    db: Session = Depends(get_db)
):
    """IN_TRANSIT or UNLOADING -> DELIVERED, with the recipient's name"""
    service = DriverService(db)
    return await service.complete_delivery(shipment_id, complete_data, current_user)

@router.post("/shipments/{shipment_id}/issues", response_model=DriverShipmentResponse)
async def report_issue(
    issue: IssueReport,
    shipment_id: int = Path(..., description="Shipment ID"),
    current_user = Depends(get_driver_user),
    db: Session = Depends(get_db)
):
    """
    Report a problem on the road

    **Severe types** (ACCIDENT, CARGO_DAMAGED, VEHICLE_BREAKDOWN) move the shipment to DELAYED;
    anything else is noted in the timeline without changing status.
    """
    service = DriverService(db)
    return await service.report_issue(shipment_id, issue, current_user)

# ==================== DRIVER STATE ====================

@router.patch("/availability", response_model=AvailabilityResponse)
async def update_availability(
    availability: AvailabilityUpdate,
    current_user = Depends(get_driver_user),
    db: Session = Depends(get_db)
):
    service = DriverService(db)
    return await service.set_availability(current_user, availability.is_available)

@router.post("/location", response_model=DriverLocationResponse)
async def report_location(
    report: DriverLocationReport,
    current_user = Depends(get_driver_user),
    db: Session = Depends(get_db)
):
    """Report current position; applied to the shipment(s) in progress"""
    service = DriverService(db)
    location = {"lat": report.lat, "lng": report.lng, "address": report.address}
    return await service.report_location(current_user, location, report.shipment_id)
