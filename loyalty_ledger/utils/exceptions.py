"""
Custom exceptions for the points ledger and redemption engine.

These exceptions provide more specific error handling than generic Exception,
allowing the service facade to turn them into stable error codes.

Taxonomy:
- ValidationError: malformed input, rejected before any store access
- Business rule rejections: no active rules, insufficient points,
  redemption not permitted (limits, cooldown, window, minimum order)
- NotFoundError: unknown campaign
- ConcurrencyConflictError: lock timeout, safe to retry with backoff
- StoreFaultError: durable store unavailable
"""


class LedgerError(Exception):
    """Base exception for all ledger business logic errors."""

    retryable = False

    def __init__(self, message: str, code: str = "LEDGER_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(LedgerError):
    """Resource not found."""

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with ID {identifier} not found"
        super().__init__(message, f"{resource.upper()}_NOT_FOUND")


class CampaignNotFoundError(NotFoundError):
    """Campaign not found for the tenant."""

    def __init__(self, identifier=None):
        super().__init__("Campaign", identifier)


class ValidationError(LedgerError):
    """Invalid input data."""

    def __init__(self, message: str, field: str = None):
        self.field = field
        code = f"INVALID_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(message, code)


class NoActiveRulesError(LedgerError):
    """Tenant has no active accrual rules."""

    def __init__(self, tenant_id=None):
        self.tenant_id = tenant_id
        super().__init__("No active loyalty rules found for tenant", "NO_ACTIVE_RULES")


class InsufficientBalanceError(LedgerError):
    """Not enough balance for the operation."""

    def __init__(self, current, required, currency: str = "credits"):
        self.current = current
        self.required = required
        message = f"Insufficient {currency}. Current: {current}, Required: {required}"
        super().__init__(message, "INSUFFICIENT_BALANCE")


class InsufficientPointsError(InsufficientBalanceError):
    """Not enough points for the operation."""

    def __init__(self, current, required):
        super().__init__(current, required, "points")
        self.code = "INSUFFICIENT_POINTS"


class RedemptionInvalidError(LedgerError):
    """Campaign evaluation rejected the redemption."""

    def __init__(self, reason: str, code: str = "REDEMPTION_INVALID", points_required=None):
        self.reason = reason
        self.points_required = points_required
        super().__init__(reason, code)


class LimitExceededError(LedgerError):
    """Resource limit exceeded."""

    def __init__(self, resource: str, limit: int, current: int):
        self.limit = limit
        self.current = current
        message = f"{resource} limit exceeded. Limit: {limit}, Current: {current}"
        super().__init__(message, f"{resource.upper()}_LIMIT_EXCEEDED")


class UsageLimitExceededError(LimitExceededError):
    """Campaign global usage counter would pass its limit."""

    def __init__(self, limit: int, current: int):
        super().__init__("Campaign usage", limit, current)
        self.code = "GLOBAL_LIMIT_REACHED"


class ConcurrencyConflictError(LedgerError):
    """Could not obtain an exclusive lock in time."""

    retryable = True

    def __init__(self, message: str = "Resource is busy, retry later", key: str = None):
        self.key = key
        super().__init__(message, "CONCURRENCY_CONFLICT")


class StoreFaultError(LedgerError):
    """Durable store failure."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(message, "STORE_FAULT")
