"""Bounded retry of operations that lose an optimistic-concurrency race."""
import logging
from typing import Callable, Optional, TypeVar

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ConcurrentModification

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_with_retry(db: Session, operation: Callable[[], T], retries: Optional[int] = None) -> T:
    """Run ``operation`` and commit, retrying on ConcurrentModification.

    The session is rolled back between attempts so the operation re-reads
    fresh state. The last ConcurrentModification propagates once the
    retry budget is spent.
    """
    budget = settings.CONCURRENT_MODIFICATION_RETRIES if retries is None else retries
    attempt = 0
    while True:
        try:
            result = operation()
            db.commit()
            return result
        except ConcurrentModification:
            db.rollback()
            if attempt >= budget:
                raise
            attempt += 1
            logger.warning("Concurrent modification, retrying (%d/%d)", attempt, budget)
        except Exception:
            db.rollback()
            raise
