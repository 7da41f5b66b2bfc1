"""
Bid acceptance: one winning application per shipment.

The strategy (transactional or sequential) is picked once at startup
by probing the storage backend.
"""
from .coordinator import AcceptanceCoordinator, RECONCILE_ACTIONS
from .probe import select_acceptance_strategy, supports_transactions
from .strategies import (
    AcceptanceOutcome,
    AcceptanceStrategy,
    SequentialAcceptanceStrategy,
    TransactionalAcceptanceStrategy,
)

__all__ = [
    "AcceptanceCoordinator",
    "AcceptanceOutcome",
    "AcceptanceStrategy",
    "RECONCILE_ACTIONS",
    "SequentialAcceptanceStrategy",
    "TransactionalAcceptanceStrategy",
    "select_acceptance_strategy",
    "supports_transactions",
]
