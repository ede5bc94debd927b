"""
Transaction Log - append-only points ledger.

Entries are written once, inside the unit of work that changed the balance,
and never updated or deleted. Reading history is bounded and restartable:
pass the id of the oldest entry already seen as ``before_id`` to continue.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models.points import PointsTransaction, PointsTransactionType
from ..utils.clock import utcnow
from ..utils.exceptions import ValidationError
from ..utils.locking import balance_key
from ..utils.money import ZERO, q2, to_decimal

DEFAULT_HISTORY_LIMIT = 100

# Sign each transaction type must carry
_POSITIVE_TYPES = {PointsTransactionType.EARNED.value, PointsTransactionType.ADJUSTED.value}
_NEGATIVE_TYPES = {PointsTransactionType.REDEEMED.value, PointsTransactionType.EXPIRED.value}


class TransactionLog:
    """Appends and reads PointsTransaction rows."""

    def __init__(self, session=None, clock=None):
        self._session = session
        self.clock = clock or utcnow

    def _session_for(self, uow=None):
        if uow is not None:
            return uow.session
        return self._session if self._session is not None else db.session

    def append(
        self,
        uow,
        user_id: str,
        tenant_id: str,
        transaction_type: str,
        amount: Decimal,
        balance_after: Decimal,
        description: Optional[str] = None,
        reference_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None
    ) -> PointsTransaction:
        """
        Write one ledger entry.

        The unit of work must already hold the account lock, which is what
        keeps entries for one account in commit order.

        Returns:
            The flushed entry with its id and timestamp assigned
        """
        if not uow.holds(balance_key(tenant_id, user_id)):
            raise RuntimeError(
                f"Ledger append for {user_id}/{tenant_id} outside of the account lock"
            )

        transaction_type = PointsTransactionType(transaction_type).value
        amount = q2(to_decimal(amount))
        if transaction_type in _POSITIVE_TYPES and amount < 0:
            raise ValidationError(f"{transaction_type} amount must not be negative", 'amount')
        if transaction_type in _NEGATIVE_TYPES and amount > 0:
            raise ValidationError(f"{transaction_type} amount must not be positive", 'amount')

        entry = PointsTransaction(
            user_id=user_id,
            tenant_id=tenant_id,
            transaction_type=transaction_type,
            amount=amount,
            balance_after=q2(to_decimal(balance_after)),
            description=description,
            reference_id=reference_id,
            extra_data=metadata,
            created_at=created_at or self.clock(),
        )
        uow.add(entry)
        uow.flush()
        return entry

    def history(
        self,
        user_id: str,
        tenant_id: str,
        limit: Optional[int] = None,
        before_id: Optional[int] = None
    ) -> List[PointsTransaction]:
        """
        Entries for one account, newest first.

        Args:
            limit: Page size, capped at LEDGER_HISTORY_LIMIT (100)
            before_id: Only return entries older than this entry id
        """
        limit = self._clamp_limit(limit)

        query = self._session_for().query(PointsTransaction).filter(
            PointsTransaction.user_id == user_id,
            PointsTransaction.tenant_id == tenant_id,
        )
        if before_id is not None:
            query = query.filter(PointsTransaction.id < before_id)

        return (
            query.order_by(PointsTransaction.created_at.desc(), PointsTransaction.id.desc())
            .limit(limit)
            .all()
        )

    def total(self, user_id: str, tenant_id: str) -> Decimal:
        """Sum of every amount ever written for the account."""
        result = self._session_for().query(
            func.sum(PointsTransaction.amount)
        ).filter(
            PointsTransaction.user_id == user_id,
            PointsTransaction.tenant_id == tenant_id,
        ).scalar()
        return q2(to_decimal(result, ZERO))

    @staticmethod
    def _clamp_limit(limit: Optional[int]) -> int:
        cap = int(current_app.config.get('LEDGER_HISTORY_LIMIT', DEFAULT_HISTORY_LIMIT))
        if limit is None:
            return cap
        try:
            limit = int(limit)
        except (TypeError, ValueError):
            raise ValidationError("limit must be an integer", 'limit')
        if limit < 1:
            raise ValidationError("limit must be at least 1", 'limit')
        return min(limit, cap)
