"""
Module: movement_kernel.db.types
Responsibility: Column types shared by every model, so that timestamps
    behave identically on PostgreSQL and SQLite.
Architecture position: Kernel > DB.  May be imported by models/ and
    selectors/.  MUST NOT import from those layers.

Invariants enforced:
    - Timestamps read back timezone-aware (UTC assumed when the backend
      drops the offset, as SQLite does).
"""

from datetime import timezone

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator


def as_utc(value):
    """Return ``value`` as an aware UTC datetime; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class AwareDateTime(TypeDecorator):
    """DateTime(timezone=True) that never returns a naive datetime."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return as_utc(value)

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

