"""
Column Types
============

Custom SQLAlchemy column types shared by all bounded contexts.
"""

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator

from src.core.clock import ensure_utc


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime column that always round-trips in UTC.

    SQLite has no timezone support, so values are stored there as naive
    UTC and re-attached to UTC on load.
    """

    impl = DateTime
    cache_ok = True

    def __init__(self):
        super().__init__(timezone=True)

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = ensure_utc(value)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return ensure_utc(value)
