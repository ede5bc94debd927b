"""
Campaign model for discount and reward redemptions.

Supports:
- Order-based discounts (percentage or fixed, optional cap and minimum order)
- Reward-based discounts (spend points for a flat discount)
- Time windows (start/end dates)
- Usage limits (global and per user) and per-user cooldowns
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict

from ..extensions import db
from ..utils.clock import utcnow
from ..utils.money import as_float


class CampaignType(str, Enum):
    """Types of campaigns."""
    DISCOUNT_ORDER_BASED = 'discount_order_based'    # Discount computed from the order
    DISCOUNT_REWARD_BASED = 'discount_reward_based'  # Points exchanged for a flat discount
    LOYALTY = 'loyalty'                              # Tracked usage, no monetary effect


class CampaignStatus(str, Enum):
    """Campaign lifecycle status."""
    ACTIVE = 'active'
    INACTIVE = 'inactive'
    EXPIRED = 'expired'


class DiscountType(str, Enum):
    """How an order-based discount is computed."""
    PERCENTAGE = 'percentage'
    FIXED = 'fixed'


class Campaign(db.Model):
    """
    Redemption campaign for one tenant.

    Design notes:
    - current_usage_count lives on the campaign row so incrementing it is
      part of the same locked unit as the redemption
    - is_stackable is stored for the caller; the ledger does not enforce
      cross-campaign stacking
    """
    __tablename__ = 'campaigns'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = db.Column(db.String(64), nullable=False, index=True)

    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)

    campaign_type = db.Column(db.String(30), nullable=False)  # CampaignType
    status = db.Column(db.String(20), nullable=False, default=CampaignStatus.ACTIVE.value, index=True)

    # Time window (inclusive at both ends)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)

    # Order-based discount
    min_order_value = db.Column(db.Numeric(10, 2))
    discount_type = db.Column(db.String(20))  # DiscountType
    discount_value = db.Column(db.Numeric(10, 2))
    max_discount_cap = db.Column(db.Numeric(10, 2))

    # Reward-based discount
    points_required = db.Column(db.Integer)

    # Usage controls
    usage_limit_per_user = db.Column(db.Integer)
    global_usage_limit = db.Column(db.Integer)
    current_usage_count = db.Column(db.Integer, nullable=False, default=0)
    is_stackable = db.Column(db.Boolean, default=False)
    cooldown_hours = db.Column(db.Integer)

    extra_data = db.Column('metadata', db.JSON)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    redemptions = db.relationship('Redemption', back_populates='campaign', lazy='dynamic')

    def __repr__(self):
        return f'<Campaign {self.name} ({self.campaign_type})>'

    def is_within_window(self, now: datetime) -> bool:
        """True while now lies in [start_date, end_date]."""
        return self.start_date <= now <= self.end_date

    def is_active(self) -> bool:
        return self.status == CampaignStatus.ACTIVE.value

    def global_limit_reached(self) -> bool:
        if not self.global_usage_limit:
            return False
        return (self.current_usage_count or 0) >= self.global_usage_limit

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'name': self.name,
            'description': self.description,
            'type': self.campaign_type,
            'status': self.status,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'min_order_value': as_float(self.min_order_value),
            'discount_type': self.discount_type,
            'discount_value': as_float(self.discount_value),
            'max_discount_cap': as_float(self.max_discount_cap),
            'points_required': self.points_required,
            'usage_limit_per_user': self.usage_limit_per_user,
            'global_usage_limit': self.global_usage_limit,
            'current_usage_count': self.current_usage_count or 0,
            'is_stackable': bool(self.is_stackable),
            'cooldown_hours': self.cooldown_hours,
            'metadata': self.extra_data,
        }
