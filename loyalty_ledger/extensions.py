"""
Flask extensions initialization.
"""
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .utils.locking import KeyedLockManager

# Database
db = SQLAlchemy()

# Migrations
migrate = Migrate()

# Per-account / per-campaign exclusive locks
locks = KeyedLockManager()
