"""
Points Accrual Engine.

Converts an order event into earned points using the tenant's active
accrual rules and commits the result to the balance and the ledger as one
unit.

EARNING MATH:
- points_per_currency rules add order_value * rate
- points_per_purchase rules add a flat amount
- custom rules contribute nothing here (computed by tenant administration)
- every active rule applies; the total is rounded half away from zero
  to 2 decimal places

EXPIRY:
- if any active rule sets points_expiry_days, the account's expires_at
  moves to now + days, using the shortest window among those rules
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from flask import current_app

from ..models.points import PointsTransactionType
from ..models.rules import AccrualRule, AccrualRuleType
from ..utils.clock import utcnow
from ..utils.exceptions import NoActiveRulesError, ValidationError
from ..utils.locking import balance_key
from ..utils.money import ZERO, as_float, parse_amount, q2, require_id, to_decimal
from ..utils.unit_of_work import UnitOfWork
from .balance_store import BalanceStore
from .catalog import RuleCatalog
from .transaction_log import TransactionLog


@dataclass
class AccrualResult:
    """Outcome of a committed accrual."""
    points_earned: Decimal
    new_balance: Decimal
    transaction_id: int
    expires_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'points_earned': as_float(self.points_earned),
            'new_balance': as_float(self.new_balance),
            'transaction_id': self.transaction_id,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
        }


def calculate_points(rules: Iterable[AccrualRule], order_value: Decimal) -> Decimal:
    """Sum the contribution of every rule for one order."""
    total = ZERO
    for rule in rules:
        if rule.rule_type == AccrualRuleType.POINTS_PER_CURRENCY.value and rule.points_per_currency:
            total += order_value * to_decimal(rule.points_per_currency)
        elif rule.rule_type == AccrualRuleType.POINTS_PER_PURCHASE.value and rule.points_per_purchase:
            total += to_decimal(rule.points_per_purchase)
    return q2(total)


def resolve_expiry_days(rules: Iterable[AccrualRule]) -> Optional[int]:
    """Shortest points_expiry_days among the rules, or None."""
    windows = [rule.points_expiry_days for rule in rules if rule.points_expiry_days and rule.points_expiry_days > 0]
    return min(windows) if windows else None


class AccrualEngine:
    """
    Earns points for orders.

    Usage:
        engine = AccrualEngine()
        result = engine.accrue('user-1', 'tenant-1', Decimal('100.50'), order_id='ORDER-1')
    """

    def __init__(
        self,
        catalog: RuleCatalog = None,
        balances: BalanceStore = None,
        log: TransactionLog = None,
        clock=None,
        lock_timeout: Optional[float] = None
    ):
        self.catalog = catalog or RuleCatalog()
        self.balances = balances or BalanceStore()
        self.log = log or TransactionLog()
        self.clock = clock or utcnow
        self.lock_timeout = lock_timeout

    def accrue(
        self,
        user_id: str,
        tenant_id: str,
        order_value,
        order_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> AccrualResult:
        """
        Earn points for an order and commit them.

        Args:
            user_id: User earning the points
            tenant_id: Tenant whose rules apply
            order_value: Order value in currency units (>= 0)
            order_id: Optional order reference stored on the ledger entry
            metadata: Optional JSON-serializable context for the entry

        Returns:
            AccrualResult with points earned and the new balance

        Raises:
            ValidationError: malformed input
            NoActiveRulesError: tenant has no active rules
            ConcurrencyConflictError: account lock not obtained in time
            StoreFaultError: database failure
        """
        user_id = require_id(user_id, 'user_id')
        tenant_id = require_id(tenant_id, 'tenant_id')
        order_value = parse_amount(order_value, 'order_value')
        if order_id is not None:
            order_id = require_id(order_id, 'order_id')
        if metadata is not None and not isinstance(metadata, dict):
            raise ValidationError("metadata must be an object", 'metadata')

        rules = self.catalog.active_rules(tenant_id)
        if not rules:
            raise NoActiveRulesError(tenant_id)

        points_earned = calculate_points(rules, order_value)

        expiry_days = resolve_expiry_days(rules)

        with UnitOfWork(lock_timeout=self.lock_timeout) as uow:
            uow.lock(balance_key(tenant_id, user_id))

            # Stamped under the lock so entry timestamps follow commit order
            now = self.clock()
            expires_at = now + timedelta(days=expiry_days) if expiry_days else None

            balance = self.balances.apply_delta(
                uow, user_id, tenant_id, points_earned, new_expiry=expires_at
            )
            entry = self.log.append(
                uow,
                user_id=user_id,
                tenant_id=tenant_id,
                transaction_type=PointsTransactionType.EARNED.value,
                amount=points_earned,
                balance_after=balance.balance,
                description=f"Points earned from order {order_id or 'N/A'}",
                reference_id=order_id,
                metadata=metadata,
                created_at=now,
            )
            result = AccrualResult(
                points_earned=points_earned,
                new_balance=q2(to_decimal(balance.balance)),
                transaction_id=entry.id,
                expires_at=balance.expires_at,
            )

        current_app.logger.info(
            f"Points earned: user {user_id} (tenant {tenant_id}) +{points_earned} pts "
            f"from {len(rules)} rule(s). New balance: {result.new_balance}"
        )
        return result
