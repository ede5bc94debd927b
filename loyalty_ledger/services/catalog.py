"""
Read-only access to accrual rules and campaigns.

Rules and campaigns are created and edited by tenant administration; by the
time a request reaches the ledger it has already been authorized and scoped
to one tenant. The ledger never writes through this module, except for the
campaign usage counter which the redemption coordinator bumps on the row
returned by a locked read.
"""
from typing import List, Optional

from ..extensions import db
from ..models.rules import AccrualRule
from ..models.campaign import Campaign
from ..utils.locking import campaign_key


class RuleCatalog:
    """Tenant-scoped lookups for rules and campaigns."""

    def __init__(self, session=None):
        self._session = session

    def _session_for(self, uow=None):
        if uow is not None:
            return uow.session
        return self._session if self._session is not None else db.session

    def active_rules(self, tenant_id: str, uow=None) -> List[AccrualRule]:
        """Active accrual rules in creation order."""
        return (
            self._session_for(uow).query(AccrualRule)
            .filter(AccrualRule.tenant_id == tenant_id, AccrualRule.is_active.is_(True))
            .order_by(AccrualRule.created_at.asc(), AccrualRule.id.asc())
            .all()
        )

    def campaign(self, tenant_id: str, campaign_id: str, uow=None) -> Optional[Campaign]:
        """
        Campaign by id within the tenant.

        Inside a unit of work the campaign key is locked first and the row
        is re-read with FOR UPDATE, refreshing any copy already loaded in
        the session.
        """
        query = self._session_for(uow).query(Campaign).filter(
            Campaign.id == campaign_id,
            Campaign.tenant_id == tenant_id,
        )
        if uow is not None:
            uow.lock(campaign_key(tenant_id, campaign_id))
            query = query.with_for_update().populate_existing()
        return query.first()
