"""
Applications (bids) submitted by truck owners on REQUESTED shipments.
"""
from .repository import ApplicationRepository
from .service import ApplicationService, parse_application_status

__all__ = ["ApplicationRepository", "ApplicationService", "parse_application_status"]
