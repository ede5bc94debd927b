"""
Campaign Rule Evaluator.

Decides whether a user may redeem a campaign right now and what the
redemption is worth. Evaluation is read-only and never raises for a
business outcome: each failed check returns a decision with a stable code
and a human-readable reason. Store errors still propagate.

Checks run in this order and stop at the first failure:
1. campaign exists for the tenant
2. now is inside [start_date, end_date] and the campaign is active
3. global usage limit
4. per-user usage limit (completed redemptions)
5. per-user cooldown since the last completed redemption
6. minimum order value
7. campaign effect (discount amount, points required and balance)
"""
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, Optional

from flask import current_app

from ..extensions import db
from ..models.campaign import Campaign, CampaignType, DiscountType
from ..models.redemption import Redemption, RedemptionStatus
from ..utils.clock import utcnow
from ..utils.errors import ErrorCode
from ..utils.money import ZERO, as_float, parse_amount, q2, require_id, to_decimal
from .balance_store import BalanceStore
from .catalog import RuleCatalog

VALID = 'VALID'


@dataclass
class RedemptionDecision:
    """Result of evaluating one redemption request."""
    is_valid: bool
    code: str
    reason: str
    discount_amount: Optional[Decimal] = None
    points_required: Optional[Decimal] = None
    campaign_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_valid': self.is_valid,
            'code': self.code,
            'message': self.reason,
            'discount_amount': as_float(self.discount_amount),
            'points_required': as_float(self.points_required),
            'campaign_type': self.campaign_type,
        }


def compute_discount(
    order_value: Decimal,
    discount_type: Optional[str],
    discount_value: Optional[Decimal],
    max_cap: Optional[Decimal] = None
) -> Decimal:
    """
    Discount for an order-based campaign.

    percentage: order_value * discount_value / 100
    fixed:      discount_value
    The result is clamped to [0, min(order_value, max_cap)] and rounded
    half away from zero to 2 decimal places. A zero cap counts as no cap.
    """
    value = to_decimal(discount_value, ZERO)

    if discount_type == DiscountType.PERCENTAGE.value:
        discount = order_value * value / Decimal(100)
    elif discount_type == DiscountType.FIXED.value:
        discount = value
    else:
        discount = ZERO

    upper = order_value
    if max_cap:
        upper = min(upper, to_decimal(max_cap))

    discount = max(ZERO, min(discount, upper))
    return q2(discount)


def _reject(code: ErrorCode, reason: str, campaign: Campaign = None, points_required=None) -> RedemptionDecision:
    return RedemptionDecision(
        is_valid=False,
        code=code.value,
        reason=reason,
        points_required=points_required,
        campaign_type=campaign.campaign_type if campaign is not None else None,
    )


class RuleEvaluator:
    """
    Read-only campaign eligibility checks.

    Usage:
        evaluator = RuleEvaluator()
        decision = evaluator.evaluate('tenant-1', campaign_id, 'user-1', Decimal('120.00'))
        if decision.is_valid:
            ...
    """

    def __init__(self, catalog: RuleCatalog = None, balances: BalanceStore = None, clock=None):
        self.catalog = catalog or RuleCatalog()
        self.balances = balances or BalanceStore()
        self.clock = clock or utcnow

    def evaluate(self, tenant_id: str, campaign_id: str, user_id: str, order_value, uow=None) -> RedemptionDecision:
        """
        Evaluate a redemption request.

        Args:
            tenant_id: Tenant owning the campaign
            campaign_id: Campaign to redeem
            user_id: Redeeming user
            order_value: Order value in currency units (>= 0)
            uow: Unit of work of a redemption in progress; reads then go
                 through its locks so the decision holds until commit

        Returns:
            RedemptionDecision

        Raises:
            ValidationError: malformed input (before any store access)
        """
        tenant_id = require_id(tenant_id, 'tenant_id')
        campaign_id = require_id(campaign_id, 'campaign_id')
        user_id = require_id(user_id, 'user_id')
        order_value = parse_amount(order_value, 'order_value')

        now = self.clock()
        session = uow.session if uow is not None else db.session

        campaign = self.catalog.campaign(tenant_id, campaign_id, uow=uow)
        if campaign is None:
            return _reject(ErrorCode.CAMPAIGN_NOT_FOUND, 'Campaign not found')

        if not campaign.is_within_window(now):
            return _reject(
                ErrorCode.CAMPAIGN_OUT_OF_WINDOW,
                'Campaign is not active in current date range',
                campaign
            )

        if not campaign.is_active():
            return _reject(ErrorCode.CAMPAIGN_INACTIVE, 'Campaign is not active', campaign)

        if campaign.global_limit_reached():
            return _reject(
                ErrorCode.GLOBAL_LIMIT_REACHED,
                'Campaign has reached its global usage limit',
                campaign
            )

        completed = session.query(Redemption).filter(
            Redemption.campaign_id == campaign.id,
            Redemption.user_id == user_id,
            Redemption.status == RedemptionStatus.COMPLETED.value,
        )

        if campaign.usage_limit_per_user:
            if completed.count() >= campaign.usage_limit_per_user:
                return _reject(
                    ErrorCode.USER_LIMIT_REACHED,
                    'User has reached the usage limit for this campaign',
                    campaign
                )

        if campaign.cooldown_hours:
            window_start = now - timedelta(hours=campaign.cooldown_hours)
            recent = completed.filter(Redemption.created_at > window_start).first()
            if recent is not None:
                return _reject(
                    ErrorCode.COOLDOWN_ACTIVE,
                    f'Cooldown period active. Please wait {campaign.cooldown_hours} hours between redemptions',
                    campaign
                )

        if campaign.min_order_value is not None:
            min_order_value = q2(to_decimal(campaign.min_order_value))
            if order_value < min_order_value:
                return _reject(
                    ErrorCode.BELOW_MIN_ORDER_VALUE,
                    f'Order value must be at least {min_order_value}',
                    campaign
                )

        discount_amount = ZERO
        points_required = ZERO

        if campaign.campaign_type == CampaignType.DISCOUNT_ORDER_BASED.value:
            discount_amount = compute_discount(
                order_value,
                campaign.discount_type,
                campaign.discount_value,
                campaign.max_discount_cap,
            )

        elif campaign.campaign_type == CampaignType.DISCOUNT_REWARD_BASED.value:
            points_required = q2(to_decimal(campaign.points_required, ZERO))
            balance = self.balances.get(user_id, tenant_id, uow=uow)
            if to_decimal(balance.balance, ZERO) < points_required:
                return _reject(
                    ErrorCode.INSUFFICIENT_POINTS,
                    'Insufficient points for this redemption',
                    campaign,
                    points_required=points_required
                )
            discount_amount = q2(to_decimal(campaign.discount_value, ZERO))

        current_app.logger.debug(
            f"Redemption valid: campaign {campaign.id} user {user_id} "
            f"discount {discount_amount} points {points_required}"
        )

        return RedemptionDecision(
            is_valid=True,
            code=VALID,
            reason='Redemption is valid',
            discount_amount=discount_amount,
            points_required=points_required,
            campaign_type=campaign.campaign_type,
        )
