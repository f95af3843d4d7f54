from __future__ import annotations

import calendar
from datetime import date, datetime
from typing import Iterable, List, Tuple, Union

import numpy as np
import pandas as pd
from dateutil.relativedelta import relativedelta

DateLike = Union[date, datetime, str, pd.Timestamp]


def as_date(value: DateLike) -> date:
    """Coerce ISO strings, datetimes and Timestamps to a calendar ``date``."""
    if value is None:
        raise ValueError("date value is required")
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    ts = pd.Timestamp(value)
    if pd.isna(ts):
        raise ValueError(f"Not a valid date: {value!r}")
    return ts.date()


def require_columns(df: pd.DataFrame, cols: Iterable[str]) -> None:
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")


def round_half_up(x) -> int:
    """Round half away from zero to a whole number of cents."""
    x = float(np.asarray(x, dtype=float))
    return int(np.sign(x) * np.floor(np.abs(x) + 0.5))


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamp_day(year: int, month: int, day: int) -> date:
    """Build a date, clamping ``day`` to the month's length (31 -> Feb 28/29)."""
    return date(year, month, min(max(day, 1), last_day_of_month(year, month)))


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    return date(year, month, 1), date(year, month, last_day_of_month(year, month))


def add_months(d: date, n: int) -> date:
    return d + relativedelta(months=n)


def days_inclusive(start: date, end: date) -> int:
    return (end - start).days + 1


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def months_in_range(start: date, end: date) -> List[date]:
    """First-of-month dates for every calendar month touched by ``[start, end]``."""
    if start > end:
        return []
    periods = pd.period_range(pd.Timestamp(start), pd.Timestamp(end), freq="M")
    return [p.to_timestamp().date() for p in periods]


def months_between(start: date, end: date) -> int:
    """Whole calendar-month difference (month granularity, day ignored)."""
    return (end.year - start.year) * 12 + (end.month - start.month)
