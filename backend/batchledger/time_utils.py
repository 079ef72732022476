from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Optional

# 9999-12-31T23:59:59Z, the last instant datetime can represent
MAX_TIMESTAMP = 253402300799


def now_ts() -> int:
    """Server-side 'now' as integer seconds since epoch (canonical)."""
    return int(time.time())


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
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
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _bounded(ts: int) -> int:
    if ts < 0 or ts > MAX_TIMESTAMP:
        raise ValueError("timestamp out of range")
    return ts


def parse_timestamp(value) -> Optional[int]:
    """
    Normalize a caller-supplied instant to epoch seconds.

    Accepts ints, digit strings and ISO-8601 strings. Returns None for None / "".
    Raises ValueError for anything else, including instants before 1970 or
    after 9999-12-31.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("invalid timestamp")
    if isinstance(value, int):
        return _bounded(value)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            raise ValueError("invalid timestamp")
        return _bounded(int(value))
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        if s.lstrip("-").isdigit():
            return _bounded(int(s))
        dt = parse_iso_datetime(s)
        return _bounded(int(dt.replace(tzinfo=timezone.utc).timestamp()))
    raise ValueError("invalid timestamp")


def to_utc_z(ts: Optional[int]) -> Optional[str]:
    """Serializes epoch seconds to ISO-8601 with trailing 'Z'."""
    if ts is None:
        return None
    dt = datetime.fromtimestamp(ts, tz=timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")


def local_day(ts: int, tz_offset_minutes: int = 0) -> str:
    """
    Calendar day of `ts` for a caller whose offset follows the browser
    convention (minutes *behind* UTC, e.g. -180 for UTC+3).
    """
    local = datetime.fromtimestamp(ts - tz_offset_minutes * 60, tz=timezone.utc)
    return local.strftime("%Y-%m-%d")


def months_back_start(now: int, months: int) -> int:
    """Epoch seconds of 00:00 UTC on the first day of the month `months` before `now`."""
    dt = datetime.fromtimestamp(now, tz=timezone.utc)
    month_index = dt.year * 12 + (dt.month - 1) - months
    year, month = divmod(month_index, 12)
    start = datetime(year, month + 1, 1, tzinfo=timezone.utc)
    return int(start.timestamp())
