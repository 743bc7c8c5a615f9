from __future__ import annotations

import math
from datetime import date, datetime, timedelta, timezone
from typing import Union

FRIDGE = "FRIDGE"

DateLike = Union[date, str]


def local_today() -> date:
    # Local wall-clock calendar date, never derived from a UTC instant.
    return date.today()


def iso_now() -> str:
    # Use UTC ISO timestamps for audit columns only.
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def now_millis() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def parse_local_date(value: DateLike) -> date:
    """
    Accepts a date or a 'YYYY-MM-DD' string (a trailing time part is ignored).
    No timezone conversion is applied: the calendar day written is the day read.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        raise ValueError("Date is required.")
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        raise ValueError(f"Invalid date '{s}'. Use YYYY-MM-DD.")


def previous_day(d: DateLike) -> date:
    return parse_local_date(d) - timedelta(days=1)


def in_range(d: date, start: date | None, end: date | None) -> bool:
    if start is not None and d < start:
        return False
    if end is not None and d > end:
        return False
    return True


def safe_div(n: float, d: float) -> float:
    return float(n) / float(d) if d else 0.0


def round_half_up(x: float) -> int:
    return int(math.floor(float(x) + 0.5))
