"""
Loyalty Points Ledger & Redemption Engine
Flask application factory
"""
import os
import logging
from flask import Flask

from .extensions import db, migrate, locks
from .config import get_config, validate_config
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def create_app(config_name: str = None, config_overrides: dict = None) -> Flask:
    """
    Application factory for creating Flask app instances.

    The app hosts the database session, migrations, the lock manager and
    the CLI; the ledger exposes no HTTP routes of its own.

    Args:
        config_name: Configuration environment (development, production, testing)
        config_overrides: Extra config values applied after the config class

    Returns:
        Configured Flask application
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(get_config(config_name))
    if config_overrides:
        app.config.update(config_overrides)

    # Setup logging before anything else touches the store
    setup_logging(app.config.get('LOG_LEVEL'))

    validate_config(config_name, app.config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    locks.init_app(app)

    # Make sure models are registered on the metadata
    from . import models  # noqa: F401

    # Register CLI commands
    from .commands import init_app as init_commands
    init_commands(app)

    logger.info(f"Loyalty ledger initialised ({config_name})")
    return app
