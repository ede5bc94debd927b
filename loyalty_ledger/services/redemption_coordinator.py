"""
Redemption Coordinator.

Applies a campaign redemption as one atomic unit:

1. lock the campaign and the user's account, re-evaluate under the locks
2. reward-based campaigns: deduct the required points and log a
   'redeemed' entry
3. bump the campaign's usage counter
4. persist a completed Redemption record

Any failure rolls the whole unit back: no partial deduction, no counter
increment without a record, no orphaned record. Evaluation is repeated
inside the unit rather than trusted from an earlier validate call, so two
requests racing for the last use or the same points can't both pass.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models.campaign import CampaignType
from ..models.points import PointsTransactionType
from ..models.redemption import Redemption, RedemptionStatus
from ..utils.clock import utcnow
from ..utils.errors import ErrorCode
from ..utils.exceptions import (
    CampaignNotFoundError,
    RedemptionInvalidError,
    UsageLimitExceededError,
    ValidationError,
)
from ..utils.locking import balance_key, campaign_key
from ..utils.money import ZERO, as_float, parse_amount, q2, require_id, to_decimal
from ..utils.unit_of_work import UnitOfWork
from .balance_store import BalanceStore
from .catalog import RuleCatalog
from .rule_evaluator import RuleEvaluator
from .transaction_log import TransactionLog


@dataclass
class RedemptionResult:
    """Outcome of a committed redemption."""
    redemption_id: str
    discount_amount: Decimal
    points_used: Decimal
    new_balance: Decimal
    status: str = RedemptionStatus.COMPLETED.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            'redemption_id': self.redemption_id,
            'discount_amount': as_float(self.discount_amount),
            'points_used': as_float(self.points_used),
            'new_balance': as_float(self.new_balance),
            'status': self.status,
        }


class RedemptionCoordinator:
    """
    Orchestrates evaluation, point deduction, usage counting and the
    redemption record.

    Usage:
        coordinator = RedemptionCoordinator()
        result = coordinator.apply('tenant-1', campaign_id, 'user-1',
                                   Decimal('150.00'), 'ORDER-42')
    """

    def __init__(
        self,
        evaluator: RuleEvaluator = None,
        catalog: RuleCatalog = None,
        balances: BalanceStore = None,
        log: TransactionLog = None,
        clock=None,
        lock_timeout: Optional[float] = None
    ):
        self.clock = clock or utcnow
        self.catalog = catalog or RuleCatalog()
        self.balances = balances or BalanceStore()
        self.log = log or TransactionLog(clock=self.clock)
        self.evaluator = evaluator or RuleEvaluator(
            catalog=self.catalog, balances=self.balances, clock=self.clock
        )
        self.lock_timeout = lock_timeout

    def apply(
        self,
        tenant_id: str,
        campaign_id: str,
        user_id: str,
        order_value,
        order_id: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> RedemptionResult:
        """
        Redeem a campaign for an order.

        Returns:
            RedemptionResult for the committed redemption

        Raises:
            ValidationError: malformed input
            CampaignNotFoundError: campaign unknown for the tenant
            RedemptionInvalidError: evaluation rejected the request
            InsufficientPointsError: balance dropped below the requirement
            UsageLimitExceededError: global usage limit already used up
            ConcurrencyConflictError: locks not obtained in time (retryable)
            StoreFaultError: database failure
        """
        tenant_id = require_id(tenant_id, 'tenant_id')
        campaign_id = require_id(campaign_id, 'campaign_id')
        user_id = require_id(user_id, 'user_id')
        order_value = parse_amount(order_value, 'order_value')
        order_id = require_id(order_id, 'order_id')
        if metadata is not None and not isinstance(metadata, dict):
            raise ValidationError("metadata must be an object", 'metadata')

        with UnitOfWork(lock_timeout=self.lock_timeout) as uow:
            uow.lock(campaign_key(tenant_id, campaign_id), balance_key(tenant_id, user_id))
            now = self.clock()

            decision = self.evaluator.evaluate(tenant_id, campaign_id, user_id, order_value, uow=uow)
            if not decision.is_valid:
                current_app.logger.warning(
                    f"Redemption rejected: campaign {campaign_id} user {user_id} "
                    f"[{decision.code}] {decision.reason}"
                )
                if decision.code == ErrorCode.CAMPAIGN_NOT_FOUND.value:
                    raise CampaignNotFoundError(campaign_id)
                raise RedemptionInvalidError(
                    decision.reason, decision.code, points_required=decision.points_required
                )

            campaign = self.catalog.campaign(tenant_id, campaign_id, uow=uow)

            points_used = ZERO
            if campaign.campaign_type == CampaignType.DISCOUNT_REWARD_BASED.value:
                points_used = q2(to_decimal(decision.points_required, ZERO))

            if points_used > 0:
                balance = self.balances.apply_delta(uow, user_id, tenant_id, -points_used)
                self.log.append(
                    uow,
                    user_id=user_id,
                    tenant_id=tenant_id,
                    transaction_type=PointsTransactionType.REDEEMED.value,
                    amount=-points_used,
                    balance_after=balance.balance,
                    description=f"Redeemed points for campaign: {campaign.name}",
                    reference_id=order_id,
                    created_at=now,
                )
            else:
                balance = self.balances.get(user_id, tenant_id, uow=uow)
            new_balance = q2(to_decimal(balance.balance, ZERO))

            if campaign.global_limit_reached():
                raise UsageLimitExceededError(campaign.global_usage_limit, campaign.current_usage_count)
            campaign.current_usage_count = (campaign.current_usage_count or 0) + 1

            redemption = Redemption(
                user_id=user_id,
                tenant_id=tenant_id,
                campaign_id=campaign.id,
                status=RedemptionStatus.COMPLETED.value,
                points_used=points_used,
                discount_amount=decision.discount_amount,
                order_value=order_value,
                order_id=order_id,
                extra_data=metadata,
                created_at=now,
                updated_at=now,
            )
            uow.add(redemption)
            uow.flush()

            result = RedemptionResult(
                redemption_id=redemption.id,
                discount_amount=decision.discount_amount,
                points_used=points_used,
                new_balance=new_balance,
            )
            usage_count = campaign.current_usage_count

        current_app.logger.info(
            f"Redemption applied: campaign {campaign_id} user {user_id} order {order_id} "
            f"-{points_used} pts, discount {result.discount_amount}. "
            f"New balance: {new_balance}, campaign uses: {usage_count}"
        )
        return result

    def history(self, user_id: str, tenant_id: str, limit: Optional[int] = None) -> List[Redemption]:
        """A user's redemptions for the tenant, newest first, with their campaigns loaded."""
        user_id = require_id(user_id, 'user_id')
        tenant_id = require_id(tenant_id, 'tenant_id')
        limit = TransactionLog._clamp_limit(limit)

        return (
            db.session.query(Redemption)
            .options(joinedload(Redemption.campaign))
            .filter(Redemption.user_id == user_id, Redemption.tenant_id == tenant_id)
            .order_by(Redemption.created_at.desc(), Redemption.id.desc())
            .limit(limit)
            .all()
        )
