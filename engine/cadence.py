"""
Cadence calendar — pure date math for recurring rules.

Two views of a cadence:
  count_occurrences:          cheap period count used for amount totals
                              (no specific day required)
  generate_occurrence_dates:  exact dated instances used to place a rule on
                              a calendar
"""

from __future__ import annotations

import math
from datetime import date, timedelta
from typing import Iterator, Optional

from core.schema import CADENCES, Rule
from core.utils import DateLike, add_months, as_date, clamp_day, days_inclusive

_STEP_DAYS = {"weekly": 7, "fortnightly": 14}


def _check_cadence(cadence: str) -> None:
    if cadence not in CADENCES:
        raise ValueError(f"Unknown cadence {cadence!r}; expected one of {CADENCES}")


def _quarter_index(d: date) -> int:
    return (d.month - 1) // 3


def count_occurrences(cadence: str, range_start: DateLike, range_end: DateLike) -> int:
    """
    Number of times a ``cadence`` lands in ``[range_start, range_end]`` inclusive.

    Weekly/fortnightly use ``ceil(days / 7|14)``; monthly, quarterly and yearly
    count every calendar period touched regardless of day alignment. An
    inverted range counts zero.
    """
    _check_cadence(cadence)
    start, end = as_date(range_start), as_date(range_end)
    if start > end:
        return 0

    if cadence in _STEP_DAYS:
        return math.ceil(days_inclusive(start, end) / _STEP_DAYS[cadence])
    if cadence == "monthly":
        return (end.year - start.year) * 12 + (end.month - start.month) + 1
    if cadence == "quarterly":
        return (end.year - start.year) * 4 + (_quarter_index(end) - _quarter_index(start)) + 1
    return end.year - start.year + 1


def _python_weekday(day_of_week: int) -> int:
    """0 = Sunday convention -> ``date.weekday()`` (0 = Monday)."""
    return (day_of_week - 1) % 7


class OccurrenceDates:
    """
    Lazy, finite, restartable sequence of the dates a rule falls on.

    Every ``iter()`` starts a fresh walk from the range start, so the same
    object can be consumed any number of times.
    """

    def __init__(self, rule: Rule, range_start: DateLike, range_end: DateLike):
        _check_cadence(rule.cadence)
        self.rule = rule
        self.start = as_date(range_start)
        self.end = as_date(range_end)

    def __iter__(self) -> Iterator[date]:
        if self.start > self.end:
            return iter(())
        cadence = self.rule.cadence
        if cadence in _STEP_DAYS:
            return self._by_weekday(_STEP_DAYS[cadence])
        if cadence == "monthly":
            return self._by_month(self.start.month, step=1, day=self.rule.day_of_month)
        if cadence == "quarterly":
            first_month = _quarter_index(self.start) * 3 + 1 + (self.rule.month_of_quarter or 0)
            return self._by_month(first_month, step=3, day=self.rule.day_of_month)
        return self._by_month(self.rule.month_of_year or 1, step=12, day=self.rule.day_of_month)

    def __repr__(self) -> str:
        return f"OccurrenceDates(rule={self.rule.id!r}, {self.start}..{self.end})"

    def _by_weekday(self, step: int) -> Iterator[date]:
        target = _python_weekday(self.rule.day_of_week or 0)
        current = self.start + timedelta(days=(target - self.start.weekday()) % 7)
        while current <= self.end:
            yield current
            current += timedelta(days=step)

    def _by_month(self, first_month: int, *, step: int, day: Optional[int]) -> Iterator[date]:
        target_day = day or 1
        cursor = date(self.start.year, 1, 1)
        cursor = add_months(cursor, first_month - 1)
        k = 0
        while True:
            month_start = add_months(cursor, k * step)
            candidate = clamp_day(month_start.year, month_start.month, target_day)
            if candidate > self.end:
                return
            if candidate >= self.start:
                yield candidate
            k += 1


def generate_occurrence_dates(rule: Rule, range_start: DateLike, range_end: DateLike) -> OccurrenceDates:
    """
    Exact occurrence dates of ``rule`` within ``[range_start, range_end]``.

    Weekly/fortnightly advance to the first ``day_of_week`` (0 = Sunday, default)
    on or after the range start and then step 7/14 days. Monthly, quarterly and
    yearly emit ``min(day_of_month or 1, last day of month)``; quarterly starts
    at the quarter containing the range start (offset by ``month_of_quarter``)
    and yearly uses ``month_of_year`` (January when unset).
    """
    return OccurrenceDates(rule, range_start, range_end)
