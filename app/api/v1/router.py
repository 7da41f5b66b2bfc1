# app/api/v1/router.py
from fastapi import APIRouter

from app.api.v1.auth import router as auth_router
from app.modules.shipments.router import router as shipments_router
from app.modules.applications.router import router as applications_router
from app.modules.tracking.router import router as tracking_router
from app.modules.driver.router import router as driver_router
from app.modules.admin.router import router as admin_router
from app.modules.truck_owner.router import router as truck_owner_router

api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["Authentication"])

api_router.include_router(
    shipments_router,
    prefix="/shipments",
    tags=["Shipments"]
)

api_router.include_router(
    applications_router,
    prefix="/applications",
    tags=["Applications"]
)

api_router.include_router(
    tracking_router,
    prefix="/tracking",
    tags=["Tracking"]
)

api_router.include_router(
    driver_router,
    prefix="/driver",
    tags=["Driver"]
)

api_router.include_router(
    admin_router,
    prefix="/admin",
    tags=["Admin"]
)

api_router.include_router(
    truck_owner_router,
    prefix="/truck-owner",
    tags=["Truck Owner"]
)
