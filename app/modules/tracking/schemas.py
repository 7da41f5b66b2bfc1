# app/modules/tracking/schemas.py
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any

from app.shared.schemas.common import BaseResponse

class LocationUpdate(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    address: Optional[str] = Field(None, max_length=500)

    def as_dict(self) -> Dict[str, Any]:
        return {"lat": self.lat, "lng": self.lng, "address": self.address}

class LocationHistoryCreate(LocationUpdate):
    note: Optional[str] = Field(None, max_length=1000)

class LocationResponse(BaseResponse):
    shipment_id: int
    status: str
    location: Optional[Dict[str, Any]] = None

class ArrivalCheckResponse(BaseResponse):
    shipment_id: int
    radius_km: float
    distance_km: Optional[float] = None
    within_geofence: bool
