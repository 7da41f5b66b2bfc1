# app/modules/truck_owner/schemas.py
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List

from app.shared.database.models import Truck, User
from app.shared.schemas.common import BaseResponse, as_float

# ==================== REQUESTS ====================

class AssignDriverRequest(BaseModel):
    driver_id: int = Field(..., gt=0)
    truck_id: Optional[int] = Field(None, gt=0, description="Defaults to the truck on the accepted application")
    note: Optional[str] = Field(None, max_length=1000)

class DriverUpdate(BaseModel):
    is_available: Optional[bool] = None
    license_number: Optional[str] = Field(None, min_length=3, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)

# ==================== RESPONSES ====================

class OwnerShipmentListResponse(BaseResponse):
    shipments: List[Dict[str, Any]]
    count: int

class OpenShipmentListResponse(BaseResponse):
    shipments: List[Dict[str, Any]]
    count: int
    total: int
    page: int
    pages: int

class DriverListResponse(BaseResponse):
    drivers: List[Dict[str, Any]]
    count: int

class DriverResponse(BaseResponse):
    driver: Dict[str, Any]

class TruckListResponse(BaseResponse):
    trucks: List[Dict[str, Any]]
    count: int

def driver_payload(driver: User) -> Dict[str, Any]:
    return {
        "id": driver.id,
        "name": driver.name,
        "email": driver.email,
        "phone": driver.phone,
        "license_number": driver.license_number,
        "is_available": driver.is_available,
    }

def truck_payload(truck: Truck) -> Dict[str, Any]:
    return {
        "id": truck.id,
        "plate_number": truck.plate_number,
        "model": truck.model,
        "capacity": as_float(truck.capacity),
        "year": truck.year,
        "available": truck.available,
    }
