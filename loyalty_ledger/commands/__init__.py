"""
CLI Commands for the points ledger.

Usage:
    flask ledger seed-demo --tenant-id demo              # Seed a demo rule and campaigns
    flask ledger balance --tenant-id demo --user-id u1   # Show balance and recent entries
    flask ledger audit --tenant-id demo --user-id u1     # Verify balance against the ledger
"""
from .ledger import init_app as init_ledger_commands


def init_app(app):
    """Register all CLI commands with the Flask app."""
    init_ledger_commands(app)
