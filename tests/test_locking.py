"""
Tests for the keyed lock manager and the unit of work.
"""
import threading
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from loyalty_ledger.extensions import locks
from loyalty_ledger.models import PointsBalance
from loyalty_ledger.utils.exceptions import ConcurrencyConflictError, StoreFaultError
from loyalty_ledger.utils.locking import KeyedLockManager, balance_key, campaign_key
from loyalty_ledger.utils.unit_of_work import UnitOfWork, translate_store_error

from conftest import TENANT_ID, USER_ID


class TestKeyedLockManager:
    """Tests for KeyedLockManager."""

    def test_keys(self):
        assert balance_key('t1', 'u1') == 'balance:t1:u1'
        assert campaign_key('t1', 'c1') == 'campaign:t1:c1'

    def test_acquire_and_release(self):
        manager = KeyedLockManager(default_timeout=1)

        assert manager.acquire('k1') is True
        assert manager.is_locked('k1')
        manager.release('k1')

        assert not manager.is_locked('k1')
        assert list(manager.active_keys()) == []

    def test_timeout_returns_false(self):
        manager = KeyedLockManager(default_timeout=1)
        manager.acquire('k1')

        result = []
        thread = threading.Thread(target=lambda: result.append(manager.acquire('k1', timeout=0.05)))
        thread.start()
        thread.join()

        assert result == [False]
        manager.release('k1')
        assert list(manager.active_keys()) == []

    def test_different_keys_do_not_block(self):
        manager = KeyedLockManager(default_timeout=1)
        manager.acquire('balance:t:a')

        result = []
        thread = threading.Thread(target=lambda: result.append(manager.acquire('balance:t:b', timeout=0.05)))
        thread.start()
        thread.join()

        assert result == [True]
        manager.release('balance:t:a')
        manager.release('balance:t:b')

    def test_release_unknown_key_raises(self):
        with pytest.raises(RuntimeError):
            KeyedLockManager().release('never-held')

    def test_hold_acquires_sorted_and_releases(self):
        manager = KeyedLockManager(default_timeout=1)

        with manager.hold('campaign:t:c', 'balance:t:u') as held:
            assert held == ['balance:t:u', 'campaign:t:c']
            assert manager.is_locked('campaign:t:c')

        assert not manager.is_locked('campaign:t:c')
        assert not manager.is_locked('balance:t:u')

    def test_hold_timeout_raises_and_releases_partial(self):
        manager = KeyedLockManager(default_timeout=1)
        manager.acquire('b')

        errors = []

        def contender():
            try:
                with manager.hold('a', 'b', timeout=0.05):
                    pass
            except ConcurrencyConflictError as e:
                errors.append(e)

        thread = threading.Thread(target=contender)
        thread.start()
        thread.join()

        assert len(errors) == 1
        assert errors[0].retryable is True
        assert errors[0].code == 'CONCURRENCY_CONFLICT'
        assert not manager.is_locked('a')
        manager.release('b')

    def test_init_app_reads_timeout(self, app):
        assert app.extensions['ledger_locks'] is locks
        assert locks.default_timeout == 5.0


class TestUnitOfWork:
    """Tests for UnitOfWork."""

    def test_commit_on_success(self, app):
        with app.app_context():
            with UnitOfWork() as uow:
                uow.add(PointsBalance(user_id=USER_ID, tenant_id=TENANT_ID, balance=Decimal('5')))

            assert PointsBalance.query.count() == 1

    def test_rollback_on_error(self, app):
        with app.app_context():
            with pytest.raises(ValueError):
                with UnitOfWork() as uow:
                    uow.add(PointsBalance(user_id=USER_ID, tenant_id=TENANT_ID, balance=Decimal('5')))
                    uow.flush()
                    raise ValueError('nope')

            assert PointsBalance.query.count() == 0

    def test_lock_outside_block_raises(self, app):
        with app.app_context():
            with pytest.raises(RuntimeError):
                UnitOfWork().lock('k')

    def test_lock_is_idempotent_and_released(self, app):
        with app.app_context():
            key = balance_key(TENANT_ID, USER_ID)
            with UnitOfWork() as uow:
                uow.lock(key)
                uow.lock(key)
                assert uow.holds(key)
            assert not locks.is_locked(key)

    def test_lock_timeout_raises_conflict(self, app):
        with app.app_context():
            key = balance_key(TENANT_ID, USER_ID)
            locks.acquire(key)
            try:
                with pytest.raises(ConcurrencyConflictError):
                    with UnitOfWork(lock_timeout=0.05) as uow:
                        uow.lock(key)
            finally:
                locks.release(key)

    def test_duplicate_account_row_is_a_conflict(self, app):
        """Two rows for one account violate the unique constraint and map to a retryable conflict."""
        with app.app_context():
            with UnitOfWork() as uow:
                uow.add(PointsBalance(user_id=USER_ID, tenant_id=TENANT_ID, balance=Decimal('1')))

            with pytest.raises(ConcurrencyConflictError):
                with UnitOfWork() as uow:
                    uow.add(PointsBalance(user_id=USER_ID, tenant_id=TENANT_ID, balance=Decimal('2')))

            assert PointsBalance.query.count() == 1

    def test_custom_lock_provider(self, app):
        with app.app_context():
            provider = MagicMock()
            provider.acquire.return_value = True

            with UnitOfWork(lock_provider=provider) as uow:
                uow.lock('b', 'a')

            assert [c.args[0] for c in provider.acquire.call_args_list] == ['a', 'b']
            assert [c.args[0] for c in provider.release.call_args_list] == ['b', 'a']


class TestTranslateStoreError:
    """Tests for translate_store_error."""

    def test_lock_errors_are_retryable(self):
        error = OperationalError('UPDATE ...', {}, Exception('database is locked'))
        assert isinstance(translate_store_error(error), ConcurrencyConflictError)

    def test_integrity_errors_are_retryable(self):
        error = IntegrityError('INSERT ...', {}, Exception('UNIQUE constraint failed'))
        assert isinstance(translate_store_error(error), ConcurrencyConflictError)

    def test_other_errors_are_store_faults(self):
        error = OperationalError('SELECT 1', {}, Exception('unable to open database file'))
        translated = translate_store_error(error)

        assert isinstance(translated, StoreFaultError)
        assert translated.code == 'STORE_FAULT'
        assert translated.retryable is False
