# app/modules/applications/schemas.py
from pydantic import BaseModel, Field, validator
from typing import Optional, Dict, Any, List
from datetime import datetime
from decimal import Decimal

from app.shared.schemas.common import BaseResponse, as_float, strip_timezone
from app.shared.database.models import Application

class BidDetails(BaseModel):
    price: Decimal = Field(..., gt=0, description="Offered price")
    currency: str = Field("USD", min_length=3, max_length=3)
    notes: Optional[str] = Field(None, max_length=1000)
    valid_until: Optional[datetime] = Field(None, description="Bid expiry")

    @validator('currency')
    def upper_currency(cls, v):
        return v.upper()

    @validator('valid_until')
    def naive_valid_until(cls, v):
        return strip_timezone(v)

class ApplicationCreate(BaseModel):
    shipment_id: int = Field(..., gt=0)
    truck_id: int = Field(..., gt=0)
    driver_id: int = Field(..., gt=0)
    bid: BidDetails

    class Config:
        json_schema_extra = {
            "example": {
                "shipment_id": 12,
                "truck_id": 3,
                "driver_id": 7,
                "bid": {"price": 1850, "currency": "USD", "notes": "Can load tomorrow morning"}
            }
        }

class ApplicationUpdate(BaseModel):
    truck_id: Optional[int] = Field(None, gt=0)
    driver_id: Optional[int] = Field(None, gt=0)
    bid: Optional[BidDetails] = None

class ApplicationReject(BaseModel):
    reason: str = Field(..., min_length=3, max_length=500, description="Why the bid was rejected")

class ApplicationResponse(BaseResponse):
    application: Dict[str, Any]

class ApplicationListResponse(BaseResponse):
    applications: List[Dict[str, Any]]
    count: int

def application_payload(application: Application, include_history: bool = False) -> Dict[str, Any]:
    data = {
        "id": application.id,
        "shipment_id": application.shipment_id,
        "owner_id": application.owner_id,
        "truck_id": application.truck_id,
        "driver_id": application.driver_id,
        "status": application.status.value,
        "bid": {
            "price": as_float(application.bid_price),
            "currency": application.bid_currency,
            "notes": application.bid_notes,
            "valid_until": application.bid_valid_until,
        },
        "rejection_reason": application.rejection_reason,
        "needs_reconciliation": application.needs_reconciliation,
        "created_at": application.created_at,
        "updated_at": application.updated_at,
    }
    if include_history:
        data["status_history"] = [
            {
                "status": h.status.value,
                "note": h.note,
                "changed_by": h.changed_by,
                "timestamp": h.timestamp,
            }
            for h in application.status_history
        ]
    return data

class AcceptanceResponse(BaseResponse):
    application: Optional[Dict[str, Any]] = None
    shipment: Optional[Dict[str, Any]] = None
    rejected_application_ids: List[int] = []
    strategy: str
    reconciliation_required: bool = False
    warning: Optional[Dict[str, Any]] = None
