"""
Module: approval_kernel.db.types
Responsibility: Column types shared by every model.  Centralizes timestamp
    normalization so that deadline arithmetic behaves identically on
    PostgreSQL and SQLite.
Architecture position: Kernel > DB.  MUST NOT import from models/, domain/,
    services/ or selectors/.

Invariants enforced:
    - Every datetime written is converted to UTC first.  Naive datetimes are
      rejected rather than guessed.
    - Every datetime read back is timezone-aware UTC.  SQLite has no
      timezone support, so values are stored there as naive UTC and the
      zone is reattached on load; string ordering stays chronological.

Failure modes:
    - ValueError when a naive datetime is bound.
"""

from datetime import timezone

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetime on every backend."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime not allowed: {value!r}")
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
