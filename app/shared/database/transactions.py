# app/shared/database/transactions.py
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import ConflictError

logger = logging.getLogger(__name__)


def commit_or_conflict(db: Session, label: str, log: Optional[logging.Logger] = None):
    """
    Commit the session, translating lost races into ConflictError.

    StaleDataError: a versioned row changed since it was read.
    IntegrityError: a unique constraint caught a duplicate.
    Anything else is rolled back and re-raised as is.
    """
    log = log or logger
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        log.warning(f"⚠️ Stale write on {label}, another request updated it first")
        raise ConflictError(
            f"{label} was modified by another request; reload and retry",
            details={"entity": label},
        )
    except IntegrityError as e:
        db.rollback()
        log.warning(f"⚠️ Integrity conflict on {label}: {e.orig}")
        raise ConflictError(f"{label} conflicts with an existing record", details={"entity": label})
    except SQLAlchemyError:
        db.rollback()
        log.exception(f"❌ Error committing {label}")
        raise
