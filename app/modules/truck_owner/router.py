# app/modules/truck_owner/router.py
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from app.config.database import get_db
from app.core.auth.dependencies import require_roles
from app.modules.shipments.schemas import ShipmentResponse
from .service import TruckOwnerService
from .schemas import (
    AssignDriverRequest, DriverUpdate,
    OwnerShipmentListResponse, OpenShipmentListResponse,
    DriverListResponse, DriverResponse, TruckListResponse
)

router = APIRouter()

get_truck_owner_user = require_roles(["TruckOwner"])

# ==================== SHIPMENTS ====================

@router.get("/shipments", response_model=OwnerShipmentListResponse)
async def get_my_shipments(
    current_user = Depends(get_truck_owner_user),
    db: Session = Depends(get_db)
):
    """Shipments won through an accepted application"""
    service = TruckOwnerService(db)
    return await service.get_my_shipments(current_user)

@router.get("/shipments/available", response_model=OpenShipmentListResponse)
async def get_available_shipments(
    origin_country: Optional[str] = Query(None, min_length=2, max_length=2),
    destination_country: Optional[str] = Query(None, min_length=2, max_length=2),
    min_weight: Optional[Decimal] = Query(None, ge=0),
    max_weight: Optional[Decimal] = Query(None, ge=0),
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    current_user = Depends(get_truck_owner_user),
    db: Session = Depends(get_db)
):
    """REQUESTED shipments still open for bids, newest first"""
    service = TruckOwnerService(db)
    return await service.get_available_shipments(
        origin_country=origin_country,
        destination_country=destination_country,
        min_weight=min_weight,
        max_weight=max_weight,
        page=page,
        size=size,
    )

@router.patch("/shipments/{shipment_id}/assign", response_model=ShipmentResponse)
async def assign_driver(
    assignment: AssignDriverRequest,
    shipment_id: int = Path(..., description="Shipment ID"),
    current_user = Depends(get_truck_owner_user),
    db: Session = Depends(get_db)
):
    """
    Put one of your drivers on a shipment you won

    **Rules:**
    - You hold the ACCEPTED application for the shipment
    - Shipment CONFIRMED or ASSIGNED (reassignment before loading)
    - Driver and truck are yours and available; the truck defaults to the one you bid with
    """
    service = TruckOwnerService(db)
    return await service.assign_driver(shipment_id, assignment, current_user)

# ==================== FLEET ====================

@router.get("/drivers", response_model=DriverListResponse)
async def get_drivers(
    is_available: Optional[bool] = Query(None),
    current_user = Depends(get_truck_owner_user),
    db: Session = Depends(get_db)
):
    service = TruckOwnerService(db)
    return await service.get_drivers(current_user, is_available=is_available)

@router.get("/drivers/available", response_model=DriverListResponse)
async def get_available_drivers(
    current_user = Depends(get_truck_owner_user),
    db: Session = Depends(get_db)
):
    service = TruckOwnerService(db)
    return await service.get_drivers(current_user, is_available=True)

@router.patch("/drivers/{driver_id}", response_model=DriverResponse)
async def update_driver(
    driver_update: DriverUpdate,
    driver_id: int = Path(..., description="Driver ID"),
    current_user = Depends(get_truck_owner_user),
    db: Session = Depends(get_db)
):
    """Update availability, license number or phone of one of your drivers"""
    service = TruckOwnerService(db)
    return await service.update_driver(driver_id, driver_update, current_user)

@router.get("/trucks/available", response_model=TruckListResponse)
async def get_available_trucks(
    current_user = Depends(get_truck_owner_user),
    db: Session = Depends(get_db)
):
    service = TruckOwnerService(db)
    return await service.get_available_trucks(current_user)
