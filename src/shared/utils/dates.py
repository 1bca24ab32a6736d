"""Timestamp helpers.

Timestamps are stored as naive UTC, which is what SQLite hands back anyway.
Anything read from the database goes through ``as_utc`` before it is
compared with an aware ``datetime``.
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def db_timestamp(value: datetime | None = None) -> datetime:
    """Naive UTC form of ``value`` (default: now)."""
    return as_utc(value or utcnow()).replace(tzinfo=None)


def isoformat(value: datetime | None) -> str | None:
    return as_utc(value).isoformat() if value is not None else None
