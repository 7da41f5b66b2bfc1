# app/modules/shipments/schemas.py
from pydantic import BaseModel, Field, validator
from typing import Optional, Dict, Any, List
from datetime import datetime
from decimal import Decimal

from app.shared.schemas.common import BaseResponse, GeoPoint, as_float, strip_timezone
from app.shared.database.models import Shipment, ShipmentTimelineEntry

# ==================== REQUESTS ====================

class RoutePoint(BaseModel):
    address: str = Field(..., min_length=3, description="Street address")
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    country: Optional[str] = Field(None, min_length=2, max_length=2, description="ISO country code")

    @validator('country')
    def upper_country(cls, v):
        return v.upper() if v else v

class CargoInfo(BaseModel):
    description: str = Field(..., min_length=3)
    weight: Decimal = Field(..., gt=0, description="Weight in kg")
    volume: Optional[Decimal] = Field(None, gt=0)
    category: Optional[str] = None
    hazardous: bool = False

class PaymentInfo(BaseModel):
    amount: Optional[Decimal] = Field(None, ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)

class ShipmentCreate(BaseModel):
    origin: RoutePoint
    destination: RoutePoint
    cargo: CargoInfo
    payment: Optional[PaymentInfo] = None
    estimated_pickup_date: Optional[datetime] = None
    estimated_delivery_date: Optional[datetime] = None

    @validator('estimated_pickup_date', 'estimated_delivery_date')
    def naive_dates(cls, v):
        return strip_timezone(v)

    class Config:
        json_schema_extra = {
            "example": {
                "origin": {"address": "Av. Reforma 100, CDMX", "lat": 19.43, "lng": -99.13, "country": "MX"},
                "destination": {"address": "1200 Main St, Dallas TX", "lat": 32.78, "lng": -96.80, "country": "US"},
                "cargo": {"description": "Auto parts, 12 pallets", "weight": 8500},
                "payment": {"amount": 2400, "currency": "USD"}
            }
        }

class ShipmentUpdate(BaseModel):
    origin: Optional[RoutePoint] = None
    destination: Optional[RoutePoint] = None
    cargo: Optional[CargoInfo] = None
    payment: Optional[PaymentInfo] = None
    estimated_pickup_date: Optional[datetime] = None
    estimated_delivery_date: Optional[datetime] = None

    @validator('estimated_pickup_date', 'estimated_delivery_date')
    def naive_dates(cls, v):
        return strip_timezone(v)

    def to_changes(self) -> Dict[str, Any]:
        """Flatten into model column names"""
        changes: Dict[str, Any] = {}
        for prefix in ("origin", "destination"):
            point = getattr(self, prefix)
            if point is not None:
                changes[f"{prefix}_address"] = point.address
                changes[f"{prefix}_lat"] = point.lat
                changes[f"{prefix}_lng"] = point.lng
                changes[f"{prefix}_country"] = point.country
        if self.cargo is not None:
            changes["cargo_description"] = self.cargo.description
            changes["cargo_weight"] = self.cargo.weight
            changes["cargo_volume"] = self.cargo.volume
            changes["cargo_category"] = self.cargo.category
            changes["cargo_hazardous"] = self.cargo.hazardous
        if self.payment is not None:
            changes["payment_amount"] = self.payment.amount
            changes["payment_currency"] = self.payment.currency
        if self.estimated_pickup_date is not None:
            changes["estimated_pickup_date"] = self.estimated_pickup_date
        if self.estimated_delivery_date is not None:
            changes["estimated_delivery_date"] = self.estimated_delivery_date
        return changes

class ShipmentCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500, description="Cancellation reason")

class TimelineEntryCreate(BaseModel):
    status: str = Field(..., description="Target shipment status")
    note: Optional[str] = Field(None, max_length=1000)
    location: Optional[GeoPoint] = None
    documents: Optional[List[str]] = Field(None, description="Document references")

# ==================== RESPONSES ====================

class ShipmentResponse(BaseResponse):
    shipment: Dict[str, Any]

class ShipmentListResponse(BaseResponse):
    shipments: List[Dict[str, Any]]
    count: int

class ShipmentSearchResponse(BaseResponse):
    items: List[Dict[str, Any]]
    total: int
    page: int
    size: int
    pages: int

class TimelineResponse(BaseResponse):
    shipment_id: int
    status: str
    timeline: List[Dict[str, Any]]

# ==================== SERIALIZATION ====================

def timeline_entry_payload(entry: ShipmentTimelineEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "status": entry.status.value,
        "note": entry.note,
        "location": entry.location,
        "documents": entry.documents,
        "recorded_by": entry.recorded_by,
        "recorded_at": entry.recorded_at,
    }

def shipment_payload(shipment: Shipment, include_timeline: bool = False) -> Dict[str, Any]:
    data = {
        "id": shipment.id,
        "merchant_id": shipment.merchant_id,
        "status": shipment.status.value,
        "origin": {
            "address": shipment.origin_address,
            "lat": as_float(shipment.origin_lat),
            "lng": as_float(shipment.origin_lng),
            "country": shipment.origin_country,
        },
        "destination": {
            "address": shipment.destination_address,
            "lat": as_float(shipment.destination_lat),
            "lng": as_float(shipment.destination_lng),
            "country": shipment.destination_country,
        },
        "cargo": {
            "description": shipment.cargo_description,
            "weight": as_float(shipment.cargo_weight),
            "volume": as_float(shipment.cargo_volume),
            "category": shipment.cargo_category,
            "hazardous": shipment.cargo_hazardous,
        },
        "payment": {
            "amount": as_float(shipment.payment_amount),
            "currency": shipment.payment_currency,
            "verified": shipment.payment_verified,
            "payment_date": shipment.payment_date,
        },
        "selected_application_id": shipment.selected_application_id,
        "assigned_truck_id": shipment.assigned_truck_id,
        "assigned_driver_id": shipment.assigned_driver_id,
        "current_location": shipment.current_location,
        "estimated_pickup_date": shipment.estimated_pickup_date,
        "estimated_delivery_date": shipment.estimated_delivery_date,
        "actual_pickup_date": shipment.actual_pickup_date,
        "actual_delivery_date": shipment.actual_delivery_date,
        "active": shipment.active,
        "created_at": shipment.created_at,
        "updated_at": shipment.updated_at,
    }
    if include_timeline:
        data["timeline"] = [timeline_entry_payload(e) for e in shipment.timeline]
    return data
