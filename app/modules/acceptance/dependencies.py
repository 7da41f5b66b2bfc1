# app/modules/acceptance/dependencies.py
from fastapi import Request

from app.config.database import engine
from app.config.settings import settings
from .probe import select_acceptance_strategy
from .strategies import AcceptanceStrategy


def get_acceptance_strategy(request: Request) -> AcceptanceStrategy:
    """Strategy chosen at startup; probed lazily if the lifespan did not run"""
    strategy = getattr(request.app.state, "acceptance_strategy", None)
    if strategy is None:
        strategy = select_acceptance_strategy(engine, settings)
        request.app.state.acceptance_strategy = strategy
    return strategy
