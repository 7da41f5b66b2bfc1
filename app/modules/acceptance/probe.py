# app/modules/acceptance/probe.py
import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.config.settings import Settings, settings as default_settings
from .strategies import (
    AcceptanceStrategy, SequentialAcceptanceStrategy, TransactionalAcceptanceStrategy
)

logger = logging.getLogger(__name__)


def supports_transactions(engine: Engine, settings: Optional[Settings] = None,
                          log: Optional[logging.Logger] = None) -> bool:
    """
    Capability probe: can the storage backend commit a multi-statement unit of work?

    Returns False without touching the database when USE_TRANSACTIONS is off.

    The check itself is a SELECT 1 inside BEGIN/COMMIT, which every SQL
    backend SQLAlchemy speaks will accept. It only tells reachable from
    unreachable; it cannot detect a backend that lacks multi-record
    atomicity. In practice USE_TRANSACTIONS picks the strategy: set it to
    false for such backends to get sequential best-effort writes.
    """
    settings = settings or default_settings
    log = log or logger

    if not settings.use_transactions:
        log.info("🔌 Transactions disabled by configuration")
        return False

    try:
        with engine.connect() as connection:
            transaction = connection.begin()
            connection.execute(text("SELECT 1"))
            transaction.commit()
    except SQLAlchemyError as e:
        log.warning(f"⚠️ Transaction probe failed, falling back to sequential writes: {e}")
        return False

    return True


def select_acceptance_strategy(engine: Engine, settings: Optional[Settings] = None,
                               log: Optional[logging.Logger] = None) -> AcceptanceStrategy:
    log = log or logger
    if supports_transactions(engine, settings, log):
        strategy = TransactionalAcceptanceStrategy()
    else:
        strategy = SequentialAcceptanceStrategy()
    log.info(f"🧭 Acceptance strategy: {strategy.name}")
    return strategy
