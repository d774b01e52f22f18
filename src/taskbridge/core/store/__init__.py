"""
Local persistence.

The SQLite-backed LocalStore and the one-time import of the legacy
db.json file.
"""

from .database import LocalStore
from .migration import LegacyMigrator, MigrationState

__all__ = ["LocalStore", "LegacyMigrator", "MigrationState"]
