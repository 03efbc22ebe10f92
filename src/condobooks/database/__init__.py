"""Database layer for condobooks application."""

from condobooks.database.base import Database
from condobooks.database.factories import create_sqlite_database

__all__ = ["Database", "create_sqlite_database"]
