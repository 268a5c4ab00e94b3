"""Timestamp helpers for Cassandra rows."""

from datetime import UTC, datetime


def as_utc(dt: datetime | None) -> datetime | None:
    """Cassandra returns naive datetimes that are already UTC; tag them."""
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt
