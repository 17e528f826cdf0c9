"""Custom SQLAlchemy types used by the persistence layer."""
from __future__ import annotations

from datetime import UTC, datetime
from typing import Optional

from sqlalchemy.types import DateTime, TypeDecorator


class UTCDateTime(TypeDecorator[datetime]):
    """Timezone-aware UTC timestamps on every dialect.

    PostgreSQL stores ``timestamptz`` natively. SQLite has no timezone
    support and hands back naive values, which are re-tagged as UTC here so
    callers can always compare against ``now_utc()``.
    """

    cache_ok = True
    impl = DateTime(timezone=True)

    def process_bind_param(self, value: Optional[datetime], dialect):  # type: ignore[override]
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("UTCDateTime requires a timezone-aware datetime")
        value = value.astimezone(UTC)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: Optional[datetime], dialect):  # type: ignore[override]
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
