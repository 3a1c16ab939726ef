from __future__ import annotations

from datetime import datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _is_date_only(value: str) -> bool:
    return len(value) == 10 and value[4] == "-" and value[7] == "-"


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DD" is midnight UTC of that day
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


class DateWindowError(ValueError):
    """Bad filter window; field names the offending bound ("start" or "end")."""

    def __init__(self, message: str, field: str):
        super().__init__(message)
        self.field = field


def _parse_bound(value: Optional[str], field: str) -> Optional[datetime]:
    try:
        return parse_iso_datetime(value)
    except (TypeError, ValueError):
        raise DateWindowError(f"{field} is not an ISO-8601 date or datetime", field)


def parse_date_window(
    start: Optional[str],
    end: Optional[str],
) -> tuple[Optional[datetime], Optional[datetime]]:
    """
    Parse an inclusive [start, end] filter window.

    A date-only end ("2026-03-01") covers that whole day, so the upper bound
    becomes the last microsecond of the day. Raises DateWindowError on bad
    input or when start is after end.
    """
    start_dt = _parse_bound(start, "start")
    end_dt = _parse_bound(end, "end")

    if end_dt is not None and _is_date_only(end.strip()):
        end_dt = datetime.combine(end_dt.date(), time.max)

    if start_dt and end_dt and start_dt > end_dt:
        raise DateWindowError("start must not be after end", "end")
    return start_dt, end_dt


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
