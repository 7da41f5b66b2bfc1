"""
Admin surface: unscoped shipment and application views, audited status
overrides, force assignment and repair of half-done acceptances.

Architecture:
- router.py: FastAPI endpoints
- service.py: business operations
- repository.py: data access
- schemas.py: Pydantic request/response models
"""
from .service import AdminService
from .repository import AdminRepository

__all__ = ["AdminService", "AdminRepository"]
