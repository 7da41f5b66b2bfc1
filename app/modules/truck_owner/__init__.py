"""
Truck owner surface: won shipments, the open market, driver assignment
and the owner's own drivers and trucks.
"""
from .service import TruckOwnerService
from .repository import TruckOwnerRepository

__all__ = ["TruckOwnerService", "TruckOwnerRepository"]
