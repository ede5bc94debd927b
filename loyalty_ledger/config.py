"""
Configuration management for the points ledger.
"""
import os
from dotenv import load_dotenv

load_dotenv()


class BaseConfig:
    """Base configuration."""
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Seconds a unit of work waits for an account/campaign lock
    LEDGER_LOCK_TIMEOUT_SECONDS = float(os.getenv('LEDGER_LOCK_TIMEOUT_SECONDS', '10'))

    # Cap for history reads (transactions, redemptions)
    LEDGER_HISTORY_LIMIT = int(os.getenv('LEDGER_HISTORY_LIMIT', '100'))

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


class DevelopmentConfig(BaseConfig):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'sqlite:///loyalty_ledger_dev.db'  # SQLite fallback for local dev
    )


class ProductionConfig(BaseConfig):
    """Production configuration."""
    DEBUG = False

    _db_url = os.getenv('DATABASE_URL', '')
    if _db_url.startswith('postgres://'):
        # SQLAlchemy requires postgresql:// not postgres://
        _db_url = _db_url.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = _db_url

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 5,
        'pool_recycle': 300,
        'pool_pre_ping': True,  # Verify connections before using
    }


class TestingConfig(BaseConfig):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    LEDGER_LOCK_TIMEOUT_SECONDS = 5.0
    LEDGER_HISTORY_LIMIT = 100


config_map = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}


def get_config(config_name: str = 'development'):
    """Get configuration class by name."""
    return config_map.get(config_name, DevelopmentConfig)


def validate_config(config_name: str = 'development', config: dict = None) -> None:
    """
    Validate configuration before app startup.

    Raises:
        RuntimeError: If production has no database or the lock timeout is unusable
    """
    config = config or {}
    if config_name == 'production' and not config.get('SQLALCHEMY_DATABASE_URI'):
        raise RuntimeError(
            "CRITICAL: DATABASE_URL environment variable is not set!\n"
            "Production deployments MUST point at a durable database."
        )

    timeout = config.get('LEDGER_LOCK_TIMEOUT_SECONDS')
    if timeout is not None and float(timeout) <= 0:
        raise RuntimeError("LEDGER_LOCK_TIMEOUT_SECONDS must be greater than 0")
