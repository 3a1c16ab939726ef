# Overview: Service-layer helpers for row locking and commit boundaries.

from __future__ import annotations

import logging
from contextlib import contextmanager

from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query, of=None):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    `of` restricts the lock to one entity when eager joins are present
    (PostgreSQL refuses FOR UPDATE on the nullable side of an outer join).
    Correctness never depends on the lock alone: the contended writes are
    guarded atomic UPDATE expressions.
    """
    return query.with_for_update(of=of)


@contextmanager
def atomic(label: str):
    """
    Single commit boundary for a multi-write operation.

    Everything executed inside the block commits together; any exception
    rolls the whole unit back and propagates unchanged. There is no retry:
    the caller decides whether to resubmit.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.warning("%s rolled back", label)
        raise
