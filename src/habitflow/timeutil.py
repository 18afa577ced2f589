"""Clock and calendar-day helpers shared by the calculator and services."""

from __future__ import annotations

from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utcnow() -> datetime:
    """Return the current instant as an aware UTC datetime."""

    return datetime.now(timezone.utc)


def resolve_timezone(name: str | None, default: str = "UTC") -> tzinfo:
    """Return a tzinfo for ``name``, falling back to ``default`` when unknown."""

    for candidate in (name, default):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            continue
    return timezone.utc


def is_valid_timezone(name: str) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_day(value: datetime, tz: tzinfo) -> date:
    """Return the calendar day ``value`` falls on in ``tz``."""

    return ensure_utc(value).astimezone(tz).date()


def today_in(tz: tzinfo, *, now: datetime | None = None) -> date:
    return local_day(now or utcnow(), tz)


def parse_timestamp(raw: str) -> datetime:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into an aware datetime.

    Date-only strings resolve to midnight UTC. Raises ``ValueError`` when the
    value cannot be parsed.
    """

    text = raw.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    if len(text) == 10:
        parsed_day = date.fromisoformat(text)
        return datetime(parsed_day.year, parsed_day.month, parsed_day.day, tzinfo=timezone.utc)
    return ensure_utc(datetime.fromisoformat(text))


__all__ = [
    "ensure_utc",
    "is_valid_timezone",
    "local_day",
    "parse_timestamp",
    "resolve_timezone",
    "today_in",
    "utcnow",
]
