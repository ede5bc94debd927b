"""
Accrual rule model.

Rules are owned by the tenant administration side; the ledger only reads
the active ones when converting an order into points.
"""
import uuid
from enum import Enum
from typing import Any, Dict

from ..extensions import db
from ..utils.clock import utcnow
from ..utils.money import as_float


class AccrualRuleType(str, Enum):
    """Types of accrual rules."""
    POINTS_PER_CURRENCY = 'points_per_currency'  # rate * order value
    POINTS_PER_PURCHASE = 'points_per_purchase'  # flat amount per order
    CUSTOM = 'custom'                            # computed outside the ledger


class AccrualRule(db.Model):
    """
    Points earning rule for one tenant.

    Design notes:
    - Every active rule applies to an order (rules are cumulative)
    - points_expiry_days pushes the account's expires_at forward
    - points_to_currency_rate and use_custom_logic are stored for the
      administration side; accrual math does not read them
    """
    __tablename__ = 'accrual_rules'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = db.Column(db.String(64), nullable=False, index=True)

    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)

    rule_type = db.Column(db.String(30), nullable=False)  # AccrualRuleType
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    points_per_currency = db.Column(db.Numeric(10, 2))
    points_per_purchase = db.Column(db.Integer)
    points_to_currency_rate = db.Column(db.Numeric(10, 4))
    use_custom_logic = db.Column(db.Boolean, default=False)
    points_expiry_days = db.Column(db.Integer)

    extra_data = db.Column('metadata', db.JSON)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.Index('ix_accrual_rules_tenant_active', 'tenant_id', 'is_active'),
    )

    def __repr__(self):
        return f'<AccrualRule {self.name} ({self.rule_type})>'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'name': self.name,
            'description': self.description,
            'type': self.rule_type,
            'is_active': self.is_active,
            'points_per_currency': as_float(self.points_per_currency),
            'points_per_purchase': self.points_per_purchase,
            'points_to_currency_rate': float(self.points_to_currency_rate) if self.points_to_currency_rate is not None else None,
            'use_custom_logic': bool(self.use_custom_logic),
            'points_expiry_days': self.points_expiry_days,
            'metadata': self.extra_data,
        }
