"""
Lock-by-key primitives for the ledger's atomic units.

Every read-modify-write on an account balance or a campaign usage counter
runs while holding the exclusive lock for that key. Keys for different
accounts are independent, so unrelated accounts never wait on each other.

Usage:
    from loyalty_ledger.extensions import locks

    with locks.hold(balance_key(tenant_id, user_id)):
        ...

KeyedLockManager is process-local. Row locks (SELECT ... FOR UPDATE) taken
inside the same unit of work cover multi-process deployments on engines that
support them.
"""
import threading
from contextlib import contextmanager
from typing import Dict, Iterable, List, Optional

from .exceptions import ConcurrencyConflictError
from .logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_LOCK_TIMEOUT_SECONDS = 10.0


def balance_key(tenant_id, user_id) -> str:
    """Lock key for one (user, tenant) account."""
    return f"balance:{tenant_id}:{user_id}"


def campaign_key(tenant_id, campaign_id) -> str:
    """Lock key for one campaign row and its usage counter."""
    return f"campaign:{tenant_id}:{campaign_id}"


class LockProvider:
    """Interface for lock-by-key backends."""

    def acquire(self, key: str, timeout: Optional[float] = None) -> bool:
        raise NotImplementedError

    def release(self, key: str) -> None:
        raise NotImplementedError

    @contextmanager
    def hold(self, *keys: str, timeout: Optional[float] = None):
        """
        Hold several keys for the duration of the block.

        Keys are acquired in sorted order so two callers asking for the
        same pair can't deadlock. Partially acquired keys are released
        if a later acquisition times out.
        """
        acquired: List[str] = []
        try:
            for key in sorted(set(keys)):
                if not self.acquire(key, timeout=timeout):
                    raise ConcurrencyConflictError(f"Timed out waiting for lock on {key}", key=key)
                acquired.append(key)
            yield acquired
        finally:
            for key in reversed(acquired):
                self.release(key)


class _KeyLock:
    __slots__ = ('lock', 'refs')

    def __init__(self):
        self.lock = threading.Lock()
        self.refs = 0  # holder + waiters


class KeyedLockManager(LockProvider):
    """
    In-process exclusive locks addressed by string key.

    Entries are created on demand and dropped once nobody holds or waits
    for them, so the table only grows with the number of keys in flight.
    """

    def __init__(self, default_timeout: Optional[float] = DEFAULT_LOCK_TIMEOUT_SECONDS):
        self.default_timeout = default_timeout
        self._guard = threading.Lock()
        self._locks: Dict[str, _KeyLock] = {}

    def init_app(self, app):
        timeout = app.config.get('LEDGER_LOCK_TIMEOUT_SECONDS', self.default_timeout)
        self.default_timeout = float(timeout) if timeout is not None else None
        app.extensions['ledger_locks'] = self

    def _timeout(self, timeout: Optional[float]) -> float:
        if timeout is None:
            timeout = self.default_timeout
        return -1 if timeout is None else max(0.0, float(timeout))

    def acquire(self, key: str, timeout: Optional[float] = None) -> bool:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _KeyLock()
            entry.refs += 1

        if entry.lock.acquire(timeout=self._timeout(timeout)):
            return True

        logger.warning(f"Lock wait timed out for {key}")
        with self._guard:
            self._drop_ref(key, entry)
        return False

    def release(self, key: str) -> None:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                raise RuntimeError(f"Lock {key} is not held")
            entry.lock.release()
            self._drop_ref(key, entry)

    def _drop_ref(self, key: str, entry: _KeyLock) -> None:
        entry.refs -= 1
        if entry.refs <= 0:
            self._locks.pop(key, None)

    def is_locked(self, key: str) -> bool:
        with self._guard:
            entry = self._locks.get(key)
            return entry is not None and entry.lock.locked()

    def active_keys(self) -> Iterable[str]:
        with self._guard:
            return sorted(self._locks)
