# Overview: Row locking and retry helpers for store-serialized pack and day-close work.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Store
from lotto.errors import NotFoundError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def lock_store(store_id: int) -> Store:
    """
    Take the store-scoped serializing lock.

    Every operation that can change bin occupancy or write day-close rows
    locks the store row first, so two activations cannot both see a bin as
    free and two day closes cannot both count the same closing.
    """
    store = lock_for_update(db.session.query(Store).filter_by(id=store_id)).first()
    if not store:
        raise NotFoundError(f"Store {store_id} not found")
    return store


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts).
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
