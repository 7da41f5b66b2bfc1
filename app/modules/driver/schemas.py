# app/modules/driver/schemas.py
from pydantic import BaseModel, Field, validator
from typing import Optional, Dict, Any, List

from app.shared.schemas.common import BaseResponse, GeoPoint

class DriverStatusUpdate(BaseModel):
    status: str = Field(..., description="Target shipment status")
    note: Optional[str] = Field(None, max_length=1000)
    location: Optional[GeoPoint] = None

class StartDelivery(BaseModel):
    note: Optional[str] = Field(None, max_length=1000)
    location: Optional[GeoPoint] = None

class CompleteDelivery(BaseModel):
    received_by: str = Field(..., min_length=2, max_length=200, description="Name of the person receiving the cargo")
    note: Optional[str] = Field(None, max_length=1000)
    location: Optional[GeoPoint] = None
    documents: Optional[List[str]] = None

class IssueReport(BaseModel):
    issue_type: str = Field(..., min_length=3, max_length=50, description="e.g. ACCIDENT, TRAFFIC, WEATHER")
    description: str = Field(..., min_length=3, max_length=1000)
    location: Optional[GeoPoint] = None

    @validator('issue_type')
    def upper_issue_type(cls, v):
        return v.strip().upper()

class AvailabilityUpdate(BaseModel):
    is_available: bool

class DriverLocationReport(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    address: Optional[str] = Field(None, max_length=500)
    shipment_id: Optional[int] = Field(None, gt=0, description="Only this shipment; default all in progress")

class DriverShipmentsResponse(BaseResponse):
    shipments: List[Dict[str, Any]]
    count: int

class DriverShipmentResponse(BaseResponse):
    shipment: Dict[str, Any]

class AvailabilityResponse(BaseResponse):
    driver_id: int
    is_available: bool

class DriverLocationResponse(BaseResponse):
    location: Dict[str, Any]
    updated_shipment_ids: List[int]
