"""
Points balance and transaction ledger models.

PointsBalance is the cached sum; PointsTransaction rows are the ledger.
For every (user, tenant) account the balance equals the sum of its
transaction amounts, and each transaction's balance_after is the running
total at the moment it was written.
"""
from decimal import Decimal
from enum import Enum
from typing import Any, Dict

from ..extensions import db
from ..utils.clock import utcnow
from ..utils.money import as_float


class PointsTransactionType(str, Enum):
    """Types of points transactions."""
    EARNED = 'earned'       # Points accrued from an order (positive)
    REDEEMED = 'redeemed'   # Points spent on a campaign (negative)
    EXPIRED = 'expired'     # Points expired (negative)
    ADJUSTED = 'adjusted'   # Manual correction (positive)


class PointsBalance(db.Model):
    """
    Current points balance for one (user, tenant) account.

    Design notes:
    - One row per account (unique constraint on user_id + tenant_id)
    - Created lazily on first accrual, never deleted
    - Only mutated inside a locked unit of work
    """
    __tablename__ = 'points_balances'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False)
    tenant_id = db.Column(db.String(64), nullable=False)

    balance = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0.00'))
    expires_at = db.Column(db.DateTime)  # Recorded only; no sweeper runs here

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.UniqueConstraint('user_id', 'tenant_id', name='uq_points_balances_user_tenant'),
    )

    def __repr__(self):
        return f'<PointsBalance user={self.user_id} tenant={self.tenant_id} pts={self.balance}>'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id,
            'tenant_id': self.tenant_id,
            'balance': as_float(self.balance or Decimal('0.00')),
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
        }


class PointsTransaction(db.Model):
    """
    Append-only points ledger entry.

    Immutable once written. Amount is signed: earned/adjusted positive,
    redeemed/expired negative.
    """
    __tablename__ = 'points_transactions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False)
    tenant_id = db.Column(db.String(64), nullable=False)

    transaction_type = db.Column(db.String(20), nullable=False)  # PointsTransactionType
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    balance_after = db.Column(db.Numeric(12, 2), nullable=False)

    description = db.Column(db.String(500))
    reference_id = db.Column(db.String(100))  # Order ID, etc.
    extra_data = db.Column('metadata', db.JSON)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        db.Index('ix_points_transactions_account_created', 'user_id', 'tenant_id', 'created_at'),
    )

    def __repr__(self):
        return f'<PointsTransaction {self.id}: {self.amount} pts for user {self.user_id}>'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'tenant_id': self.tenant_id,
            'type': self.transaction_type,
            'amount': as_float(self.amount),
            'balance_after': as_float(self.balance_after),
            'description': self.description,
            'reference_id': self.reference_id,
            'metadata': self.extra_data,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
