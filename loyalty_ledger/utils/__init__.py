"""
Utility modules for the points ledger.
"""
from .logging_config import setup_logging, get_logger
from .errors import (
    ErrorCode,
    success_response,
    error_response,
    exception_response,
)
from .exceptions import (
    LedgerError,
    NotFoundError,
    CampaignNotFoundError,
    ValidationError,
    NoActiveRulesError,
    InsufficientBalanceError,
    InsufficientPointsError,
    RedemptionInvalidError,
    LimitExceededError,
    UsageLimitExceededError,
    ConcurrencyConflictError,
    StoreFaultError,
)
from .locking import KeyedLockManager, LockProvider, balance_key, campaign_key
from .money import q2, to_decimal, parse_amount, require_id
