"""UTC datetime utilities for consistent timezone handling across the package.

This module provides:
1. Custom SQLAlchemy type that enforces UTC and stores as ISO 8601 with 'Z'
2. Utility functions for datetime operations

Usage:
    from user_records.common.datetime_utils import UTCDateTime, utcnow

    # In table definitions:
    Column("created_at", UTCDateTime, nullable=True)

    # In Python code:
    now = utcnow()  # Always returns timezone-aware UTC datetime
"""

from datetime import UTC, date, datetime, time

from sqlalchemy import String, TypeDecorator

# Fixed-width so that stored values sort chronologically as text
ISO8601_UTC_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


class UTCDateTime(TypeDecorator):
    """SQLAlchemy type that enforces UTC timestamps.

    Storage:
        ISO 8601 string with microseconds and 'Z' suffix stored as TEXT
        (e.g., '2025-01-15T10:30:00.000000Z')

    Python:
        Always returns timezone-aware datetime objects in UTC.
        Rejects naive datetimes on input. ISO 8601 strings with an offset
        are accepted and converted.
    """

    impl = String
    cache_ok = True

    def process_bind_param(self, value: datetime | date | str | None, dialect) -> str | None:
        """Convert Python datetime to database format.

        Args:
            value: Timezone-aware datetime, date, ISO 8601 string (with offset,
                or date-only), or None. Dates are stored as midnight UTC.

        Returns:
            ISO 8601 string with 'Z' suffix, or None

        Raises:
            ValueError: If datetime is naive (no timezone)
        """
        if value is None:
            return None

        if isinstance(value, str):
            value = parse_iso8601(value)
        elif not isinstance(value, datetime) and isinstance(value, date):
            value = midnight_utc(value)

        return format_iso8601_utc(value)

    def process_result_value(self, value: str | None, dialect) -> datetime | None:
        """Convert database format to Python datetime.

        Args:
            value: ISO 8601 string from database

        Returns:
            Timezone-aware datetime in UTC, or None
        """
        if value is None:
            return None

        return parse_iso8601(value)


def utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Use this instead of datetime.now() or datetime.utcnow().

    Returns:
        Current time in UTC with timezone information.
    """
    return datetime.now(UTC)


def midnight_utc(d: date) -> datetime:
    """Midnight UTC on the given calendar date."""
    return datetime.combine(d, time.min, tzinfo=UTC)


def validate_aware_datetime(dt: datetime) -> datetime:
    """Validate that datetime is timezone-aware.

    Args:
        dt: Datetime to validate

    Returns:
        The same datetime if valid

    Raises:
        ValueError: If datetime is naive
    """
    if dt.tzinfo is None:
        raise ValueError(
            f"Naive datetime not allowed: {dt}. "
            "All datetimes must be timezone-aware (use datetime.now(UTC) or utcnow())."
        )
    return dt


def parse_iso8601(value: str) -> datetime:
    """Parse an ISO 8601 string into a UTC datetime.

    Handles both 'Z' suffix and '+00:00' formats.
    A date-only string (YYYY-MM-DD) is read as midnight UTC.

    Raises:
        ValueError: If the string is not ISO 8601 or carries no offset
    """
    if len(value) == 10:
        return midnight_utc(date.fromisoformat(value))

    if value.endswith("Z"):
        value = value[:-1] + "+00:00"

    dt = validate_aware_datetime(datetime.fromisoformat(value))
    return dt.astimezone(UTC)


def format_iso8601_utc(dt: datetime) -> str:
    """Format datetime as ISO 8601 with 'Z' suffix.

    Args:
        dt: Timezone-aware datetime

    Returns:
        ISO 8601 string with 'Z' suffix (e.g., '2025-01-15T10:30:00.000000Z')

    Raises:
        ValueError: If datetime is naive
    """
    validate_aware_datetime(dt)
    utc_dt = dt.astimezone(UTC)
    return utc_dt.strftime(ISO8601_UTC_FORMAT)
