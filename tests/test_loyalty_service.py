"""
Tests for the LoyaltyService facade envelopes.
"""
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from loyalty_ledger.extensions import db
from loyalty_ledger.models import CampaignType, DiscountType
from loyalty_ledger.services.loyalty_service import LoyaltyService
from loyalty_ledger.utils.exceptions import ConcurrencyConflictError

from conftest import TENANT_ID, USER_ID


class TestLoyaltyServiceAccrue:
    """Tests for LoyaltyService.accrue."""

    def test_accrue_success_envelope(self, app, create_rule):
        with app.app_context():
            create_rule()
            result = LoyaltyService(TENANT_ID).accrue(USER_ID, 100.50, order_id='ORDER-1')

            assert result['success'] is True
            assert result['data']['points_earned'] == 100.5
            assert result['data']['new_balance'] == 100.5
            assert result['data']['expires_at'] is None

    def test_accrue_no_rules(self, app):
        with app.app_context():
            result = LoyaltyService(TENANT_ID).accrue(USER_ID, 10)

            assert result == {
                'success': False,
                'error': {
                    'message': 'No active loyalty rules found for tenant',
                    'code': 'NO_ACTIVE_RULES',
                },
            }

    def test_rejection_rolls_back_session(self, app):
        with app.app_context():
            result = LoyaltyService(TENANT_ID).accrue(USER_ID, 10)

            assert result['error']['code'] == 'NO_ACTIVE_RULES'
            assert not db.session.in_transaction()

    def test_accrue_validation_error(self, app, create_rule):
        with app.app_context():
            create_rule()
            result = LoyaltyService(TENANT_ID).accrue(USER_ID, 'ten')

            assert result['success'] is False
            assert result['error']['code'] == 'INVALID_ORDER_VALUE'


class TestLoyaltyServiceRedemption:
    """Tests for LoyaltyService.evaluate and apply."""

    def test_evaluate_rejection_is_a_successful_call(self, app, create_campaign):
        with app.app_context():
            campaign_id = create_campaign(min_order_value=Decimal('100'))
            result = LoyaltyService(TENANT_ID).evaluate(campaign_id, USER_ID, 50)

            assert result['success'] is True
            assert result['data']['is_valid'] is False
            assert result['data']['code'] == 'BELOW_MIN_ORDER_VALUE'

    def test_apply_success_and_balance(self, app, create_campaign, grant_points):
        with app.app_context():
            campaign_id = create_campaign(
                campaign_type=CampaignType.DISCOUNT_REWARD_BASED.value,
                discount_type=DiscountType.FIXED.value,
                discount_value=Decimal('20'),
                points_required=1000,
            )
            grant_points(1200)
            service = LoyaltyService(TENANT_ID)

            result = service.apply(campaign_id, USER_ID, 80, 'ORDER-1')

            assert result['success'] is True
            assert result['data']['discount_amount'] == 20.0
            assert result['data']['points_used'] == 1000.0
            assert result['data']['new_balance'] == 200.0
            assert result['data']['status'] == 'completed'

            balance = service.get_balance(USER_ID)
            assert balance == {
                'success': True,
                'data': {
                    'user_id': USER_ID,
                    'tenant_id': TENANT_ID,
                    'balance': 200.0,
                    'expires_at': None,
                },
            }

    def test_apply_rejection_envelope(self, app, create_campaign):
        with app.app_context():
            campaign_id = create_campaign(global_usage_limit=1, current_usage_count=1)
            result = LoyaltyService(TENANT_ID).apply(campaign_id, USER_ID, 80, 'ORDER-1')

            assert result['success'] is False
            assert result['error']['code'] == 'GLOBAL_LIMIT_REACHED'
            assert result['error']['message'] == 'Campaign has reached its global usage limit'

    def test_apply_unknown_campaign(self, app):
        with app.app_context():
            result = LoyaltyService(TENANT_ID).apply('missing', USER_ID, 80, 'ORDER-1')
            assert result['error']['code'] == 'CAMPAIGN_NOT_FOUND'

    def test_conflict_is_marked_retryable(self, app, create_campaign):
        with app.app_context():
            campaign_id = create_campaign()
            service = LoyaltyService(TENANT_ID)

            with patch.object(service.redemptions, 'apply', side_effect=ConcurrencyConflictError()):
                result = service.apply(campaign_id, USER_ID, 80, 'ORDER-1')

            assert result['success'] is False
            assert result['error']['code'] == 'CONCURRENCY_CONFLICT'
            assert result['error']['retryable'] is True

    def test_store_error_becomes_store_fault(self, app):
        with app.app_context():
            service = LoyaltyService(TENANT_ID)
            error = OperationalError('SELECT', {}, Exception('server closed the connection'))

            with patch.object(service.balances, 'get', side_effect=error):
                result = service.get_balance(USER_ID)

            assert result['success'] is False
            assert result['error']['code'] == 'STORE_FAULT'
            assert 'retryable' not in result['error']

    def test_unexpected_error_is_internal(self, app):
        with app.app_context():
            service = LoyaltyService(TENANT_ID)

            with patch.object(service.balances, 'get', side_effect=KeyError('boom')):
                result = service.get_balance(USER_ID)

            assert result == {
                'success': False,
                'error': {'message': 'An unexpected error occurred', 'code': 'INTERNAL_ERROR'},
            }


class TestLoyaltyServiceHistory:
    """Tests for history reads."""

    def test_history_pages(self, app, create_rule):
        with app.app_context():
            create_rule()
            service = LoyaltyService(TENANT_ID)
            for i in range(3):
                service.accrue(USER_ID, 10, order_id=f'ORDER-{i}')

            page = service.get_history(USER_ID, limit=2)
            assert page['success'] is True
            assert page['data']['count'] == 2
            assert [t['reference_id'] for t in page['data']['transactions']] == ['ORDER-2', 'ORDER-1']

            rest = service.get_history(USER_ID, limit=2, before_id=page['data']['next_before_id'])
            assert [t['reference_id'] for t in rest['data']['transactions']] == ['ORDER-0']

    def test_history_for_unknown_user_is_empty(self, app):
        with app.app_context():
            result = LoyaltyService(TENANT_ID).get_history('nobody')
            assert result['data'] == {'transactions': [], 'count': 0, 'next_before_id': None}

    def test_redemption_history(self, app, create_campaign):
        with app.app_context():
            campaign_id = create_campaign(name='Ten Off')
            service = LoyaltyService(TENANT_ID)
            service.apply(campaign_id, USER_ID, 100, 'ORDER-1')

            result = service.get_redemption_history(USER_ID)

            assert result['success'] is True
            assert result['data']['count'] == 1
            assert result['data']['redemptions'][0]['campaign_name'] == 'Ten Off'
            assert result['data']['redemptions'][0]['discount_amount'] == 10.0
