"""
Shipment location tracking: current position, location history and a
radius check against the destination.
"""
from .geo import haversine_km, is_within_geofence
from .service import TrackingService

__all__ = ["TrackingService", "haversine_km", "is_within_geofence"]
