import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import exc as sa_exc
from sqlmodel import Session

from patentflow.core.errors import PatentFlowError, StoreTimeout, StoreUnavailable

logger = logging.getLogger(__name__)

_TIMEOUT_MARKERS = ("database is locked", "timeout", "timed out", "canceling statement")


def _is_timeout(error: sa_exc.SQLAlchemyError) -> bool:
    if isinstance(error, sa_exc.TimeoutError):
        return True
    if isinstance(error, sa_exc.OperationalError):
        message = str(error.orig or error).lower()
        return any(marker in message for marker in _TIMEOUT_MARKERS)
    return False


@contextmanager
def store_guard(db: Session, operation: str, project_id: Optional[str] = None) -> Iterator[Session]:
    """
    Run a unit of store work; on any database failure roll the whole unit back
    and re-raise it as StoreTimeout (retryable) or StoreUnavailable.
    """
    try:
        yield db
    except PatentFlowError:
        db.rollback()
        raise
    except sa_exc.SQLAlchemyError as error:
        db.rollback()
        logger.error(
            "Store operation failed: %s", error,
            extra={"operation": operation, "project_id": project_id},
        )
        if _is_timeout(error):
            raise StoreTimeout() from error
        raise StoreUnavailable() from error
