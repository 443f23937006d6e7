# Overview: Service-layer concurrency helpers; row locks, per-entity locks, and bounded retries.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import DomainError, StoreUnavailable
from ..extensions import db


_registry_guard = threading.Lock()
_entity_locks: dict[tuple[str, int], threading.RLock] = {}


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    populate_existing() makes sure a row already in the identity map is
    re-read instead of served stale.
    """
    return query.with_for_update().populate_existing()


def _lock_for(kind: str, entity_id: int) -> threading.RLock:
    with _registry_guard:
        lock = _entity_locks.get((kind, entity_id))
        if lock is None:
            lock = threading.RLock()
            _entity_locks[(kind, entity_id)] = lock
        return lock


@contextmanager
def entity_lock(kind: str, entity_id: int, *, timeout: float | None = None):
    """
    Serialize read-then-write work on one entity inside this process.

    SQLite is single-writer and ignores FOR UPDATE, so the row lock alone
    does not stop two requests from reading the same "current high bid".
    The lock is re-entrant so a settlement nested in a batch transition can
    take it again on the same thread.

    Raises StoreUnavailable if the lock is not acquired within the timeout.
    """
    if timeout is None:
        timeout = current_app.config.get("LOCK_TIMEOUT_SECONDS", 10)
    lock = _lock_for(kind, entity_id)
    if not lock.acquire(timeout=timeout):
        raise StoreUnavailable(f"Timed out waiting for {kind} {entity_id}")
    try:
        yield
    finally:
        lock.release()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks, timeouts) and
    StaleDataError (optimistic locking conflicts). A retried operation
    re-reads current state, so a losing status transition fails its own
    precondition check on the next attempt. When attempts run out the
    failure surfaces as StoreUnavailable.
    """
    for attempt in range(attempts):
        try:
            return func()
        except DomainError:
            # Business rule failures are final; drop any half-applied changes.
            db.session.rollback()
            raise
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning("Store operation failed after %s attempts: %s", attempts, exc)
                raise StoreUnavailable("The data store is busy or unavailable, try again") from exc
            time.sleep(backoff_base * (2 ** attempt))


def commit_with_retry(*, attempts: int = 3, backoff_base: float = 0.1):
    """Commit current session with retry handling."""
    def _op():
        db.session.commit()
    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
