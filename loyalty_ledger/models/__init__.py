"""
Database models for the points ledger and redemption engine.
"""
from .points import PointsTransactionType, PointsBalance, PointsTransaction
from .rules import AccrualRuleType, AccrualRule
from .campaign import CampaignType, CampaignStatus, DiscountType, Campaign
from .redemption import RedemptionStatus, Redemption

__all__ = [
    # Ledger
    'PointsTransactionType',
    'PointsBalance',
    'PointsTransaction',
    # Accrual rules
    'AccrualRuleType',
    'AccrualRule',
    # Campaigns
    'CampaignType',
    'CampaignStatus',
    'DiscountType',
    'Campaign',
    # Redemptions
    'RedemptionStatus',
    'Redemption',
]
