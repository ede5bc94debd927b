"""
Balance Store - the current points balance for each (user, tenant) account.

get() never fails for an unknown account: absence means the user never
accrued, so a zero balance is returned. apply_delta() is the only way a
balance changes, and it always runs inside a unit of work holding the
account's lock, so the non-negative check and the write can't interleave
with another caller on the same account.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from flask import current_app

from ..extensions import db
from ..models.points import PointsBalance
from ..utils.exceptions import InsufficientPointsError
from ..utils.locking import balance_key
from ..utils.money import ZERO, q2, to_decimal


class BalanceStore:
    """Reads and locked writes of PointsBalance rows."""

    def __init__(self, session=None):
        self._session = session

    def _session_for(self, uow=None):
        if uow is not None:
            return uow.session
        return self._session if self._session is not None else db.session

    def get(self, user_id: str, tenant_id: str, uow=None) -> PointsBalance:
        """
        Current balance for an account.

        Args:
            user_id: User identifier
            tenant_id: Tenant identifier
            uow: When given, the account is locked and the row re-read
                 with FOR UPDATE inside that unit

        Returns:
            The stored PointsBalance, or an unsaved zero balance
        """
        row = self._load(user_id, tenant_id, uow)
        if row is None:
            return PointsBalance(user_id=user_id, tenant_id=tenant_id, balance=ZERO, expires_at=None)
        return row

    def apply_delta(
        self,
        uow,
        user_id: str,
        tenant_id: str,
        amount: Decimal,
        new_expiry: Optional[datetime] = None
    ) -> PointsBalance:
        """
        Add a signed amount to an account's balance.

        Creates the row on first accrual. Must be called inside the same
        unit of work as the matching TransactionLog.append().

        Raises:
            InsufficientPointsError: if a negative amount would take the
                balance below zero
        """
        amount = q2(to_decimal(amount))
        row = self._load(user_id, tenant_id, uow)

        if row is None:
            row = PointsBalance(user_id=user_id, tenant_id=tenant_id, balance=ZERO)
            uow.add(row)

        current = to_decimal(row.balance, ZERO)
        new_balance = q2(current + amount)

        if amount < 0 and new_balance < 0:
            current_app.logger.info(
                f"Balance check failed for user {user_id} (tenant {tenant_id}): "
                f"has {current}, needs {-amount}"
            )
            raise InsufficientPointsError(current, -amount)

        row.balance = new_balance
        if new_expiry is not None:
            row.expires_at = new_expiry

        uow.flush()
        return row

    def _load(self, user_id: str, tenant_id: str, uow=None) -> Optional[PointsBalance]:
        query = self._session_for(uow).query(PointsBalance).filter(
            PointsBalance.user_id == user_id,
            PointsBalance.tenant_id == tenant_id,
        )
        if uow is not None:
            uow.lock(balance_key(tenant_id, user_id))
            query = query.with_for_update().populate_existing()
        return query.first()
