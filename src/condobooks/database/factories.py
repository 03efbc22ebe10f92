"""Database factory functions for creating database instances."""

import os
from pathlib import Path
from typing import Optional

from condobooks.database.sqlalchemy_db import SQLAlchemyDatabase

IN_MEMORY = ":memory:"


def default_database_path() -> Path:
    """``~/.condobooks/condobooks.db``."""
    return Path.home() / ".condobooks" / "condobooks.db"


def create_sqlite_database(database_path: Optional[str] = None) -> SQLAlchemyDatabase:
    """Create a SQLite database instance.

    The parent directory of a file database is created if missing.

    Args:
        database_path: Path to the database file, or ":memory:". Falls back
            to CONDOBOOKS_DB_PATH, then to :func:`default_database_path`.

    Returns:
        SQLAlchemyDatabase instance configured for SQLite
    """
    database_path = database_path or os.environ.get("CONDOBOOKS_DB_PATH") or str(default_database_path())
    if database_path != IN_MEMORY:
        path = Path(database_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        database_path = str(path)

    db = SQLAlchemyDatabase(f"sqlite:///{database_path}")
    db.database_path = database_path
    return db
