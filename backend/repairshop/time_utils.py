from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(moment: datetime) -> datetime:
    """Aware datetimes are converted to UTC; naive ones are already UTC."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Query-string / payload timestamps -> UTC-naive datetime.

    Blank input gives None. "2024-05-01" means midnight UTC, a trailing Z or
    an explicit offset is honoured. Raises ValueError on anything else.
    """
    raw = (value or "").strip()
    if not raw:
        return None
    if raw[-1] in "zZ":
        raw = raw[:-1] + "+00:00"
    return as_naive_utc(datetime.fromisoformat(raw))


def end_of_day(moment: datetime) -> datetime:
    """Last representable moment of moment's calendar day."""
    return datetime.combine(moment.date(), time.max)


def to_utc_z(moment: Optional[datetime]) -> Optional[str]:
    """Whole-second ISO-8601 in UTC with a trailing 'Z' (naive input is taken as UTC)."""
    if moment is None:
        return None
    return as_naive_utc(moment).replace(microsecond=0).isoformat() + "Z"


def to_iso_date(value) -> Optional[str]:
    """Render a DATE() result (str on SQLite, date on Postgres) as YYYY-MM-DD."""
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.strftime("%Y-%m-%d")
    return str(value)[:10]
