"""Date and timestamp parsing for values read from the data store or requests."""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from commission_tracker.errors import InvalidDate, ValidationFailed


def parse_date(value: Any) -> date:
    """Parse a calendar date.

    Accepts ``date`` and ``datetime`` objects and ISO strings, either a bare
    ``YYYY-MM-DD`` or a full timestamp (only the calendar date is kept).

    Raises:
        InvalidDate: If the value is missing or cannot be parsed.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            return _parse_iso_timestamp(text).date()
        except ValueError as exc:
            raise InvalidDate(f"Invalid date: {value!r}") from exc
    raise InvalidDate(f"Invalid date: {value!r}")


def parse_timestamp(value: Any) -> datetime:
    """Parse a timestamp, returning an aware UTC datetime.

    Naive values and bare dates are taken to be UTC.

    Raises:
        InvalidDate: If the value is missing or cannot be parsed.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if isinstance(value, str) and value.strip():
        try:
            parsed = _parse_iso_timestamp(value.strip())
        except ValueError as exc:
            raise InvalidDate(f"Invalid timestamp: {value!r}") from exc
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    raise InvalidDate(f"Invalid timestamp: {value!r}")


def parse_optional_date(value: Any) -> date | None:
    """Like parse_date, but empty values map to None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_date(value)


def parse_optional_timestamp(value: Any) -> datetime | None:
    """Like parse_timestamp, but empty values map to None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_timestamp(value)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def local_now(timezone: str, now: datetime | None = None) -> datetime:
    """Wall-clock time in an IANA timezone such as ``America/New_York``.

    Raises:
        ValidationFailed: If the timezone name is unknown.
    """
    try:
        zone = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationFailed(
            "Unknown timezone", problems=[f"timezone: {timezone!r} is not a known IANA zone"]
        ) from exc
    return (now or utc_now()).astimezone(zone)


def _parse_iso_timestamp(text: str) -> datetime:
    # PostgREST emits "+00:00" offsets; JavaScript clients emit a "Z" suffix.
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)
