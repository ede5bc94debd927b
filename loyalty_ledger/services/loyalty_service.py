"""
Loyalty Service - tenant-scoped entry point to the points ledger.

Wraps the accrual engine, the campaign rule evaluator and the redemption
coordinator and turns their results and typed errors into response
envelopes:

    {"success": True, "data": {...}}
    {"success": False, "error": {"code": "...", "message": "..."}}

Decimals leave this layer as floats rounded to 2 decimal places and
datetimes as ISO-8601 strings.
"""
from typing import Any, Dict, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..utils.clock import utcnow
from ..utils.errors import ErrorCode, error_response, exception_response, success_response
from ..utils.exceptions import LedgerError
from ..utils.money import as_float, require_id
from ..utils.unit_of_work import translate_store_error
from .accrual_engine import AccrualEngine
from .balance_store import BalanceStore
from .catalog import RuleCatalog
from .redemption_coordinator import RedemptionCoordinator
from .rule_evaluator import RuleEvaluator
from .transaction_log import TransactionLog


class LoyaltyService:
    """
    Points ledger operations for one tenant.

    Usage:
        service = LoyaltyService('tenant-1')

        # Earn points for an order
        result = service.accrue('user-1', 100.50, order_id='ORDER-1')

        # Check and apply a campaign
        check = service.evaluate(campaign_id, 'user-1', 150)
        result = service.apply(campaign_id, 'user-1', 150, 'ORDER-2')
    """

    def __init__(self, tenant_id: str, clock=None, lock_timeout: Optional[float] = None):
        """
        Initialize LoyaltyService.

        Args:
            tenant_id: Tenant whose rules, campaigns and accounts are used
            clock: Callable returning naive UTC now (tests inject a fixed one)
            lock_timeout: Seconds to wait for an account/campaign lock
        """
        self.tenant_id = tenant_id
        self.clock = clock or utcnow

        self.catalog = RuleCatalog()
        self.balances = BalanceStore()
        self.log = TransactionLog(clock=self.clock)
        self.evaluator = RuleEvaluator(catalog=self.catalog, balances=self.balances, clock=self.clock)
        self.accruals = AccrualEngine(
            catalog=self.catalog,
            balances=self.balances,
            log=self.log,
            clock=self.clock,
            lock_timeout=lock_timeout,
        )
        self.redemptions = RedemptionCoordinator(
            evaluator=self.evaluator,
            catalog=self.catalog,
            balances=self.balances,
            log=self.log,
            clock=self.clock,
            lock_timeout=lock_timeout,
        )

    # ==================== Accrual ====================

    def accrue(
        self,
        user_id: str,
        order_value,
        order_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Earn points for an order under the tenant's active rules."""
        return self._run(
            'accrue',
            lambda: self.accruals.accrue(
                user_id, self.tenant_id, order_value, order_id=order_id, metadata=metadata
            ).to_dict()
        )

    # ==================== Redemption ====================

    def evaluate(self, campaign_id: str, user_id: str, order_value) -> Dict[str, Any]:
        """
        Check a redemption without changing anything.

        A rejected check is still a successful call: the decision comes back
        in ``data`` with ``is_valid`` False and the rejection code.
        """
        return self._run(
            'evaluate',
            lambda: self.evaluator.evaluate(self.tenant_id, campaign_id, user_id, order_value).to_dict()
        )

    def apply(
        self,
        campaign_id: str,
        user_id: str,
        order_value,
        order_id: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Redeem a campaign for an order."""
        return self._run(
            'apply',
            lambda: self.redemptions.apply(
                self.tenant_id, campaign_id, user_id, order_value, order_id, metadata=metadata
            ).to_dict()
        )

    # ==================== Reads ====================

    def get_balance(self, user_id: str) -> Dict[str, Any]:
        def read():
            uid = require_id(user_id, 'user_id')
            balance = self.balances.get(uid, self.tenant_id)
            return {
                'user_id': uid,
                'tenant_id': self.tenant_id,
                'balance': as_float(balance.balance),
                'expires_at': balance.expires_at.isoformat() if balance.expires_at else None,
            }
        return self._run('get_balance', read)

    def get_history(self, user_id: str, limit: Optional[int] = None, before_id: Optional[int] = None) -> Dict[str, Any]:
        """Ledger entries newest first; pass the last id seen as before_id for the next page."""
        def read():
            uid = require_id(user_id, 'user_id')
            entries = self.log.history(uid, self.tenant_id, limit=limit, before_id=before_id)
            return {
                'transactions': [entry.to_dict() for entry in entries],
                'count': len(entries),
                'next_before_id': entries[-1].id if entries else None,
            }
        return self._run('get_history', read)

    def get_redemption_history(self, user_id: str, limit: Optional[int] = None) -> Dict[str, Any]:
        def read():
            redemptions = self.redemptions.history(user_id, self.tenant_id, limit=limit)
            return {
                'redemptions': [redemption.to_dict() for redemption in redemptions],
                'count': len(redemptions),
            }
        return self._run('get_redemption_history', read)

    # ==================== Helpers ====================

    def _run(self, operation: str, func) -> Dict[str, Any]:
        try:
            return success_response(func())
        except LedgerError as e:
            db.session.rollback()
            return exception_response(e)
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"{operation} failed for tenant {self.tenant_id}: {e}")
            return exception_response(translate_store_error(e))
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(
                f"{operation} failed for tenant {self.tenant_id}: {e}", exc_info=True
            )
            return error_response('An unexpected error occurred', ErrorCode.INTERNAL_ERROR)
