"""
Transactional unit of work for ledger mutations.

A unit groups the balance update, the transaction log append, the campaign
usage increment and the redemption record so they commit or roll back
together. Locks taken through the unit are released on every exit path.

Usage:
    with UnitOfWork() as uow:
        uow.lock(balance_key(tenant_id, user_id))
        balance = balance_store.apply_delta(uow, user_id, tenant_id, amount)
        transaction_log.append(uow, ...)
    # committed here, or rolled back if the block raised
"""
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from ..extensions import db, locks
from .exceptions import ConcurrencyConflictError, StoreFaultError
from .logging_config import get_logger

logger = get_logger(__name__)

_LOCK_MARKERS = ('lock', 'deadlock', 'could not serialize')


def translate_store_error(error: SQLAlchemyError) -> Exception:
    """Map driver errors onto the retryable / fatal split."""
    if isinstance(error, IntegrityError):
        return ConcurrencyConflictError(f"Concurrent write conflict: {error.orig}")
    if isinstance(error, OperationalError):
        text = str(error.orig).lower() if error.orig is not None else str(error).lower()
        if any(marker in text for marker in _LOCK_MARKERS):
            return ConcurrencyConflictError(f"Store lock contention: {error.orig}")
    logger.error(f"Store fault: {error}")
    return StoreFaultError(f"Store unavailable: {error.__class__.__name__}", original_error=error)


class UnitOfWork:
    """
    One all-or-nothing group of ledger writes.

    Args:
        session: SQLAlchemy session (defaults to the Flask-SQLAlchemy scoped session)
        lock_provider: lock-by-key backend (defaults to the app's KeyedLockManager)
        lock_timeout: seconds to wait per key before ConcurrencyConflictError
    """

    def __init__(self, session=None, lock_provider=None, lock_timeout: Optional[float] = None):
        self.session = session if session is not None else db.session
        self.lock_provider = lock_provider if lock_provider is not None else locks
        self.lock_timeout = lock_timeout
        self._held: List[str] = []
        self._active = False

    def __enter__(self) -> 'UnitOfWork':
        if self._active:
            raise RuntimeError("UnitOfWork is not reentrant")
        self._active = True
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc_type is None:
                try:
                    self.session.commit()
                except SQLAlchemyError as e:
                    self.session.rollback()
                    raise translate_store_error(e) from e
            else:
                self.session.rollback()
                if isinstance(exc, SQLAlchemyError):
                    raise translate_store_error(exc) from exc
        finally:
            self._release_all()
            self._active = False
        return False

    # ==================== Locks ====================

    def lock(self, *keys: str) -> None:
        """
        Acquire exclusive locks for the rest of the unit.

        Keys already held by this unit are skipped; new keys are taken in
        sorted order.
        """
        if not self._active:
            raise RuntimeError("UnitOfWork.lock() called outside of a with-block")
        for key in sorted(set(keys)):
            if key in self._held:
                continue
            if not self.lock_provider.acquire(key, timeout=self.lock_timeout):
                raise ConcurrencyConflictError(f"Timed out waiting for lock on {key}", key=key)
            self._held.append(key)

    def holds(self, key: str) -> bool:
        return key in self._held

    def _release_all(self) -> None:
        while self._held:
            self.lock_provider.release(self._held.pop())

    # ==================== Session passthrough ====================

    def add(self, instance) -> None:
        self.session.add(instance)

    def flush(self) -> None:
        self.session.flush()

    def query(self, *entities):
        return self.session.query(*entities)
