# app/modules/tracking/geo.py
import math

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometres"""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def is_within_geofence(location: dict, center_lat: float, center_lng: float, radius_km: float) -> bool:
    """Circular geofence; the boundary counts as inside"""
    distance = haversine_km(location["lat"], location["lng"], center_lat, center_lng)
    return distance <= radius_km
