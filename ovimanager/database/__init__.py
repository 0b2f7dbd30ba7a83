"""Database package - async SQLite with mixin-based composition.

``Database(path)`` is a plain class: the app builds one in ``core.bootstrap``
and tests build their own against ``":memory:"``.
"""
import os
from pathlib import Path

_DEFAULT_DB_PATH = Path("ovimanager.db")
DB_PATH: Path = Path(os.getenv("OVIMANAGER_DB_PATH", str(_DEFAULT_DB_PATH)))

from database.helpers import DatabaseError  # noqa: E402
from database.core import DatabaseCore  # noqa: E402
from database.storage import CollectionsMixin  # noqa: E402


class Database(DatabaseCore, CollectionsMixin):
    """Composed database class combining all mixins."""
    pass


__all__ = ["Database", "DatabaseError", "DB_PATH"]
