"""
SQLAlchemy models for the todo store.

Exposes ``Base`` (whose metadata Alembic compares against), ``now_utc`` and
the ORM classes.
"""

from .base import Base, now_utc  # re-export
from .todos import TITLE_MAX_LENGTH, Todo

__all__ = [
    "Base",
    "now_utc",
    "Todo",
    "TITLE_MAX_LENGTH",
]
