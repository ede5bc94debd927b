"""
Business logic services for the points ledger.
"""
from .catalog import RuleCatalog
from .balance_store import BalanceStore
from .transaction_log import TransactionLog
from .accrual_engine import AccrualEngine, AccrualResult
from .rule_evaluator import RuleEvaluator, RedemptionDecision
from .redemption_coordinator import RedemptionCoordinator, RedemptionResult
from .loyalty_service import LoyaltyService

__all__ = [
    'RuleCatalog',
    'BalanceStore',
    'TransactionLog',
    'AccrualEngine',
    'AccrualResult',
    'RuleEvaluator',
    'RedemptionDecision',
    'RedemptionCoordinator',
    'RedemptionResult',
    'LoyaltyService',
]
