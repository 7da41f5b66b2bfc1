"""
Driver surface: assigned shipments, delivery progress, availability and location.
"""
from .service import DriverService, ACTIVE_STATUSES, ASSIGNED_STATUSES, HISTORY_STATUSES

__all__ = ["DriverService", "ACTIVE_STATUSES", "ASSIGNED_STATUSES", "HISTORY_STATUSES"]
