"""
Standardized response envelopes for ledger operations.

Every caller-facing operation returns one of:
{
    "success": true,
    "data": {...}
}
{
    "success": false,
    "error": {
        "message": "User-friendly error message",
        "code": "ERROR_CODE"
    }
}

Usage:
    from loyalty_ledger.utils.errors import error_response, ErrorCode

    return error_response("Campaign not found", ErrorCode.CAMPAIGN_NOT_FOUND)
"""
from enum import Enum
from typing import Any, Optional

from .exceptions import LedgerError
from .logging_config import get_logger

logger = get_logger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for ledger responses."""

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Not Found
    NOT_FOUND = "NOT_FOUND"
    CAMPAIGN_NOT_FOUND = "CAMPAIGN_NOT_FOUND"

    # Business Rule Rejections
    NO_ACTIVE_RULES = "NO_ACTIVE_RULES"
    INSUFFICIENT_POINTS = "INSUFFICIENT_POINTS"
    CAMPAIGN_INACTIVE = "CAMPAIGN_INACTIVE"
    CAMPAIGN_OUT_OF_WINDOW = "CAMPAIGN_OUT_OF_WINDOW"
    GLOBAL_LIMIT_REACHED = "GLOBAL_LIMIT_REACHED"
    USER_LIMIT_REACHED = "USER_LIMIT_REACHED"
    COOLDOWN_ACTIVE = "COOLDOWN_ACTIVE"
    BELOW_MIN_ORDER_VALUE = "BELOW_MIN_ORDER_VALUE"

    # Retryable
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"

    # Server Errors
    STORE_FAULT = "STORE_FAULT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


def success_response(data: Any = None) -> dict:
    """Wrap a successful result."""
    return {"success": True, "data": data}


def error_response(
    message: str,
    code=ErrorCode.INTERNAL_ERROR,
    log_error: bool = False,
    details: Optional[dict] = None
) -> dict:
    """
    Create a standardized error envelope.

    Args:
        message: User-friendly error message
        code: ErrorCode member or a plain code string
        log_error: Whether to log the error
        details: Optional additional details (only logged, not returned)

    Returns:
        Envelope dict ready for serialization
    """
    code_value = code.value if isinstance(code, ErrorCode) else str(code)

    if log_error:
        logger.error(f"Ledger Error [{code_value}]: {message}", extra={"details": details})

    return {
        "success": False,
        "error": {
            "message": message,
            "code": code_value
        }
    }


def exception_response(exc: LedgerError) -> dict:
    """Envelope for a typed ledger exception."""
    response = error_response(exc.message, exc.code)
    if exc.retryable:
        response["error"]["retryable"] = True
    return response
