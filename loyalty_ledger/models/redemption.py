"""
Redemption record model.
"""
import uuid
from enum import Enum
from typing import Any, Dict

from ..extensions import db
from ..utils.clock import utcnow
from ..utils.money import as_float


class RedemptionStatus(str, Enum):
    """Status of a redemption."""
    PENDING = 'pending'       # Reserved for asynchronous settlement
    COMPLETED = 'completed'   # Committed by the coordinator
    FAILED = 'failed'
    CANCELLED = 'cancelled'


class Redemption(db.Model):
    """
    Result of one committed campaign redemption.

    Only the redemption coordinator creates rows, and only as part of a
    successful unit of work, so every row here has status 'completed'
    unless changed later by an external settlement flow.
    """
    __tablename__ = 'redemptions'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(db.String(64), nullable=False)
    tenant_id = db.Column(db.String(64), nullable=False)
    campaign_id = db.Column(db.String(36), db.ForeignKey('campaigns.id'), nullable=False, index=True)

    status = db.Column(db.String(20), nullable=False, default=RedemptionStatus.PENDING.value, index=True)

    points_used = db.Column(db.Numeric(10, 2))
    discount_amount = db.Column(db.Numeric(10, 2))
    order_value = db.Column(db.Numeric(10, 2))
    order_id = db.Column(db.String(100))
    failure_reason = db.Column(db.Text)
    extra_data = db.Column('metadata', db.JSON)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    campaign = db.relationship('Campaign', back_populates='redemptions')

    __table_args__ = (
        db.Index('ix_redemptions_user_tenant', 'user_id', 'tenant_id'),
        db.Index('ix_redemptions_campaign_user_status', 'campaign_id', 'user_id', 'status'),
    )

    def __repr__(self):
        return f'<Redemption {self.id}: campaign {self.campaign_id} user {self.user_id}>'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'tenant_id': self.tenant_id,
            'campaign_id': self.campaign_id,
            'campaign_name': self.campaign.name if self.campaign else None,
            'status': self.status,
            'points_used': as_float(self.points_used),
            'discount_amount': as_float(self.discount_amount),
            'order_value': as_float(self.order_value),
            'order_id': self.order_id,
            'failure_reason': self.failure_reason,
            'metadata': self.extra_data,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
