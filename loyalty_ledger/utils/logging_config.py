"""
Logging configuration for the ledger.

Plain text on the console by default; set LOG_FORMAT=json for one JSON
object per line (log shippers).
"""
import json
import logging
import logging.config
import os
from typing import Optional

from .clock import utcnow

_configured = False


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        details = getattr(record, "details", None)
        if details:
            log_data["details"] = details
        return json.dumps(log_data, default=str)


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Configure root logging once per process.

    Args:
        level: Log level name (defaults to LOG_LEVEL env var, then INFO)
        log_format: 'text' or 'json' (defaults to LOG_FORMAT env var)
    """
    global _configured
    if _configured:
        return

    level = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    log_format = (log_format or os.getenv('LOG_FORMAT', 'text')).lower()

    logging.config.dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'text': {
                'format': '%(asctime)s %(levelname)s [%(name)s] %(message)s',
            },
            'json': {
                '()': JSONFormatter,
            },
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'json' if log_format == 'json' else 'text',
            },
        },
        'root': {
            'level': level,
            'handlers': ['console'],
        },
        'loggers': {
            # SQL echo is controlled by SQLALCHEMY_ECHO, keep the engine quiet otherwise
            'sqlalchemy.engine': {'level': 'WARNING'},
        },
    })
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Module logger helper."""
    return logging.getLogger(name)
