"""
Shared fixtures for the ledger test suite.

`app` runs against in-memory SQLite. Tests that drive the ledger from
several threads use `file_app`, which points at a SQLite file so every
thread gets its own connection.
"""
from datetime import timedelta
from decimal import Decimal

import pytest

from loyalty_ledger import create_app
from loyalty_ledger.extensions import db
from loyalty_ledger.models import (
    AccrualRule,
    AccrualRuleType,
    Campaign,
    CampaignStatus,
    CampaignType,
    DiscountType,
    PointsTransactionType,
)
from loyalty_ledger.services.balance_store import BalanceStore
from loyalty_ledger.services.transaction_log import TransactionLog
from loyalty_ledger.utils.clock import utcnow
from loyalty_ledger.utils.locking import balance_key
from loyalty_ledger.utils.unit_of_work import UnitOfWork

TENANT_ID = 'tenant-test'
USER_ID = 'user-1'


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **delta):
        self.now = self.now + timedelta(**delta)
        return self.now


def _build_app(overrides=None):
    app = create_app('testing', config_overrides=overrides)
    with app.app_context():
        db.create_all()
    return app


def _teardown_app(app):
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def app():
    """Create application for testing."""
    app = _build_app()
    yield app
    _teardown_app(app)


@pytest.fixture
def file_app(tmp_path):
    """Application backed by a SQLite file, for multi-threaded tests."""
    app = _build_app({'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'ledger.db'}"})
    yield app
    _teardown_app(app)


@pytest.fixture
def clock():
    return FixedClock(utcnow().replace(microsecond=0))


@pytest.fixture
def create_rule():
    """Factory for accrual rules. Call inside an app context; returns the rule id."""
    def _create(tenant_id=TENANT_ID, **fields):
        values = dict(
            name='Points per Dollar',
            rule_type=AccrualRuleType.POINTS_PER_CURRENCY.value,
            is_active=True,
            points_per_currency=Decimal('1'),
        )
        values.update(fields)
        rule = AccrualRule(tenant_id=tenant_id, **values)
        db.session.add(rule)
        db.session.commit()
        return rule.id
    return _create


@pytest.fixture
def create_campaign():
    """Factory for campaigns. Call inside an app context; returns the campaign id."""
    def _create(tenant_id=TENANT_ID, now=None, **fields):
        now = now or utcnow()
        values = dict(
            name='Test Campaign',
            campaign_type=CampaignType.DISCOUNT_ORDER_BASED.value,
            status=CampaignStatus.ACTIVE.value,
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=30),
            discount_type=DiscountType.PERCENTAGE.value,
            discount_value=Decimal('10'),
        )
        values.update(fields)
        campaign = Campaign(tenant_id=tenant_id, **values)
        db.session.add(campaign)
        db.session.commit()
        return campaign.id
    return _create


@pytest.fixture
def grant_points():
    """
    Put points on an account the way an admin adjustment would:
    balance and ledger entry in one unit. Call inside an app context.
    """
    def _grant(amount, user_id=USER_ID, tenant_id=TENANT_ID):
        amount = Decimal(str(amount))
        with UnitOfWork() as uow:
            uow.lock(balance_key(tenant_id, user_id))
            row = BalanceStore().apply_delta(uow, user_id, tenant_id, amount)
            TransactionLog().append(
                uow,
                user_id=user_id,
                tenant_id=tenant_id,
                transaction_type=PointsTransactionType.ADJUSTED.value,
                amount=amount,
                balance_after=row.balance,
                description='Test grant',
            )
    return _grant
