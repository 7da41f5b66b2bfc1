# app/modules/transitions/__init__.py
"""
Transitions module - gateway for shipment mutations

Validates actor role and current status before delegating to the
shipment state machine:
- merchant cancel / edit
- admin status override and direct driver assignment
- driver delivery progress and issue reports

Bid acceptance does not go through here; see app.modules.acceptance.
"""

from .gateway import TransitionGateway, SEVERE_ISSUE_TYPES

__all__ = [
    "TransitionGateway",
    "SEVERE_ISSUE_TYPES",
]
