# app/modules/shipments/__init__.py
"""
Shipments module - merchant shipment requests and their lifecycle

- state_machine.py: role-scoped status transitions and timeline entries
- repository.py: shipment queries (fresh reads, locks, search)
- service.py: merchant operations (create, edit, cancel, search, soft delete)
- router.py: /shipments endpoints
- schemas.py: request/response models and serialization
"""

from .state_machine import ShipmentStateMachine, ROLE_TRANSITIONS, TRANSITION_GRAPH
from .repository import ShipmentRepository

__all__ = [
    "ShipmentStateMachine",
    "ROLE_TRANSITIONS",
    "TRANSITION_GRAPH",
    "ShipmentRepository",
]
