"""
Tests for the Balance Store.

Covers:
- Zero balance for unknown accounts
- Lazy row creation on first credit
- Non-negative guard on debits
- Expiry updates
- Lock requirement for writes
"""
from datetime import datetime
from decimal import Decimal

import pytest

from loyalty_ledger.extensions import db, locks
from loyalty_ledger.models import PointsBalance
from loyalty_ledger.services.balance_store import BalanceStore
from loyalty_ledger.utils.exceptions import InsufficientPointsError
from loyalty_ledger.utils.locking import balance_key
from loyalty_ledger.utils.unit_of_work import UnitOfWork

from conftest import TENANT_ID, USER_ID


class TestBalanceStoreGet:
    """Tests for BalanceStore.get."""

    def test_unknown_account_has_zero_balance(self, app):
        """An account that never accrued reads as zero without a row."""
        with app.app_context():
            balance = BalanceStore().get(USER_ID, TENANT_ID)

            assert balance.balance == Decimal('0.00')
            assert balance.expires_at is None
            assert PointsBalance.query.count() == 0

    def test_balances_are_tenant_scoped(self, app, grant_points):
        """The same user id in two tenants holds two separate balances."""
        with app.app_context():
            grant_points(50, tenant_id='tenant-a')
            grant_points(7, tenant_id='tenant-b')

            store = BalanceStore()
            assert store.get(USER_ID, 'tenant-a').balance == Decimal('50.00')
            assert store.get(USER_ID, 'tenant-b').balance == Decimal('7.00')


class TestBalanceStoreApplyDelta:
    """Tests for BalanceStore.apply_delta."""

    def test_first_credit_creates_row(self, app):
        with app.app_context():
            with UnitOfWork() as uow:
                row = BalanceStore().apply_delta(uow, USER_ID, TENANT_ID, Decimal('12.345'))
                assert row.balance == Decimal('12.35')

            assert PointsBalance.query.filter_by(user_id=USER_ID, tenant_id=TENANT_ID).count() == 1

    def test_debit_to_exactly_zero_is_allowed(self, app, grant_points):
        with app.app_context():
            grant_points(100)

            with UnitOfWork() as uow:
                row = BalanceStore().apply_delta(uow, USER_ID, TENANT_ID, Decimal('-100'))
                assert row.balance == Decimal('0.00')

            assert BalanceStore().get(USER_ID, TENANT_ID).balance == Decimal('0.00')

    def test_overdraft_is_rejected_and_rolled_back(self, app, grant_points):
        """A debit below zero raises and leaves the balance untouched."""
        with app.app_context():
            grant_points(Decimal('999.99'))

            with pytest.raises(InsufficientPointsError) as exc_info:
                with UnitOfWork() as uow:
                    BalanceStore().apply_delta(uow, USER_ID, TENANT_ID, Decimal('-1000'))

            assert exc_info.value.code == 'INSUFFICIENT_POINTS'
            assert BalanceStore().get(USER_ID, TENANT_ID).balance == Decimal('999.99')

    def test_new_expiry_replaces_old(self, app):
        with app.app_context():
            first = datetime(2030, 1, 1)
            second = datetime(2031, 6, 1)

            with UnitOfWork() as uow:
                BalanceStore().apply_delta(uow, USER_ID, TENANT_ID, Decimal('10'), new_expiry=first)
            with UnitOfWork() as uow:
                BalanceStore().apply_delta(uow, USER_ID, TENANT_ID, Decimal('10'), new_expiry=second)
            with UnitOfWork() as uow:
                BalanceStore().apply_delta(uow, USER_ID, TENANT_ID, Decimal('10'))

            balance = BalanceStore().get(USER_ID, TENANT_ID)
            assert balance.balance == Decimal('30.00')
            assert balance.expires_at == second

    def test_write_takes_account_lock(self, app):
        """apply_delta holds the account key until the unit ends."""
        with app.app_context():
            key = balance_key(TENANT_ID, USER_ID)

            with UnitOfWork() as uow:
                BalanceStore().apply_delta(uow, USER_ID, TENANT_ID, Decimal('1'))
                assert uow.holds(key)
                assert locks.is_locked(key)

            assert not locks.is_locked(key)

    def test_exception_rolls_back_credit(self, app):
        with app.app_context():
            with pytest.raises(RuntimeError):
                with UnitOfWork() as uow:
                    BalanceStore().apply_delta(uow, USER_ID, TENANT_ID, Decimal('25'))
                    raise RuntimeError('boom')

            db.session.expire_all()
            assert BalanceStore().get(USER_ID, TENANT_ID).balance == Decimal('0.00')
