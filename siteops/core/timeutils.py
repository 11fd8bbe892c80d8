from __future__ import annotations

import calendar
from datetime import date, datetime, time, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from siteops.core.errors import ValidationError


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: str | datetime | date | None) -> datetime:
    if value is None:
        return now_utc()
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValidationError(f"invalid ISO date: {value!r}") from exc
    return as_utc(parsed)


def isoformat_z(value: datetime | None) -> str | None:
    if value is None:
        return None
    return as_utc(value).isoformat().replace("+00:00", "Z")


def report_zone(name: str) -> tzinfo:
    if name.upper() in {"UTC", "Z"}:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError(f"unknown timezone: {name}") from exc


def month_range(year: int, month: int, tz_name: str = "UTC") -> tuple[datetime, datetime]:
    """Return the first and the last instant of a calendar month.

    Both bounds are inclusive and expressed in UTC; the month itself is
    interpreted in ``tz_name``.
    """
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")
    if not 1 <= year <= 9999:
        raise ValidationError("year out of range")
    zone = report_zone(tz_name)
    last_day = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1, tzinfo=zone)
    end = datetime.combine(date(year, month, last_day), time.max, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
