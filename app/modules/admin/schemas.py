# app/modules/admin/schemas.py
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List

from app.shared.schemas.common import BaseResponse, GeoPoint

# ==================== REQUESTS ====================

class AdminStatusOverride(BaseModel):
    status: str = Field(..., description="Any shipment status")
    note: Optional[str] = Field(None, max_length=1000, description="Audit note")
    location: Optional[GeoPoint] = None

class ForceAssignRequest(BaseModel):
    driver_id: int = Field(..., gt=0)
    truck_id: Optional[int] = Field(None, gt=0)
    note: Optional[str] = Field(None, max_length=1000)

class ReconcileRequest(BaseModel):
    action: str = Field(..., pattern="^(complete|revert)$", description="complete | revert")

# ==================== RESPONSES ====================

class AdminShipmentListResponse(BaseResponse):
    items: List[Dict[str, Any]]
    total: int
    page: int
    size: int
    pages: int
    status_counts: Dict[str, int] = {}

class AdminApplicationListResponse(BaseResponse):
    items: List[Dict[str, Any]]
    total: int
    page: int
    size: int
    pages: int

class AdminShipmentResponse(BaseResponse):
    shipment: Dict[str, Any]
    applications: Optional[List[Dict[str, Any]]] = None

class ReconciliationListResponse(BaseResponse):
    applications: List[Dict[str, Any]]
    count: int
