"""
Rule expansion — turn a recurring rule plus a query range into amounts.

  expand_for_total:      rule -> total cents over a range (budget case)
  expand_to_forecasts:   rules -> dated Forecast records (calendar case)
  to_monthly_equivalent: cross-cadence normalization for dashboards

Every function respects the rule's own validity window (start_date/end_date)
by clamping it against the query range before doing any date math.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from core.schema import (
    MONTHLY_EQUIVALENT_FACTORS,
    RULE_KIND_TO_FORECAST_TYPE,
    Forecast,
    ForecastEvent,
    Rule,
)
from core.utils import DateLike, as_date, round_half_up

from .cadence import count_occurrences, generate_occurrence_dates

logger = logging.getLogger(__name__)

FORECAST_COLUMNS: Tuple[str, ...] = (
    "date",
    "amount_cents",
    "type",
    "source_id",
    "source_type",
    "category_id",
    "savings_goal_id",
    "description",
)


def effective_window(rule: Rule, query_start: DateLike, query_end: DateLike) -> Optional[Tuple[date, date]]:
    """
    Intersect the rule's validity window with ``[query_start, query_end]``.

    Returns ``None`` when the intersection is empty (including a rule whose own
    start date is after its end date).
    """
    start, end = as_date(query_start), as_date(query_end)
    if rule.start_date is not None and as_date(rule.start_date) > start:
        start = as_date(rule.start_date)
    if rule.end_date is not None and as_date(rule.end_date) < end:
        end = as_date(rule.end_date)
    if start > end:
        return None
    return start, end


def expand_for_total(rule: Rule, query_start: DateLike, query_end: DateLike) -> int:
    """``amount_cents * count_occurrences`` over the clamped window, or 0."""
    window = effective_window(rule, query_start, query_end)
    if window is None:
        return 0
    return rule.amount_cents * count_occurrences(rule.cadence, *window)


def expand_rule(rule: Rule, query_start: DateLike, query_end: DateLike) -> List[Forecast]:
    """Dated forecasts for a single non-budget rule, minus its excluded dates."""
    forecast_type = RULE_KIND_TO_FORECAST_TYPE.get(rule.kind)
    if forecast_type is None:
        return []
    window = effective_window(rule, query_start, query_end)
    if window is None:
        return []
    skipped = {as_date(d) for d in rule.excluded_dates}
    return [
        Forecast(
            date=d,
            amount_cents=rule.amount_cents,
            type=forecast_type,
            source_id=rule.id,
            source_type="rule",
            category_id=rule.category_id,
            savings_goal_id=rule.savings_goal_id,
            description=rule.description,
        )
        for d in generate_occurrence_dates(rule, *window)
        if d not in skipped
    ]


def event_to_forecast(event: ForecastEvent) -> Forecast:
    return Forecast(
        date=as_date(event.date),
        amount_cents=event.amount_cents,
        type=event.type,
        source_id=event.id,
        source_type="event",
        category_id=event.category_id,
        savings_goal_id=event.savings_goal_id,
        description=event.description,
    )


def expand_to_forecasts(
    rules: Iterable[Rule],
    query_start: DateLike,
    query_end: DateLike,
    *,
    events: Iterable[ForecastEvent] = (),
) -> List[Forecast]:
    """
    Materialize dated forecasts for ``rules`` (and one-off ``events``) in range.

    Output is sorted by date ascending. The sort is stable, so same-day items
    keep the input order of rules, with events after all rules.
    Budget rules have no dated occurrences and are skipped.
    """
    start, end = as_date(query_start), as_date(query_end)
    expanded: List[Forecast] = []
    for rule in rules:
        expanded.extend(expand_rule(rule, start, end))
    for event in events:
        if start <= as_date(event.date) <= end:
            expanded.append(event_to_forecast(event))
    expanded.sort(key=lambda f: f.date)
    logger.debug("Expanded forecasts over %s..%s: %d occurrences", start, end, len(expanded))
    return expanded


def to_monthly_equivalent(amount_cents: int, cadence: str) -> int:
    """
    Approximate monthly amount of a recurring value.

    Weekly x4.33, fortnightly x2.17, monthly x1, quarterly /3, yearly /12. Not
    calendar-exact: use ``expand_for_total`` with explicit month bounds where an
    exact monthly figure is needed.
    """
    if cadence not in MONTHLY_EQUIVALENT_FACTORS:
        raise ValueError(f"Unknown cadence {cadence!r}")
    return round_half_up(amount_cents * MONTHLY_EQUIVALENT_FACTORS[cadence])


def from_monthly_equivalent(monthly_cents: int, cadence: str) -> int:
    """Inverse of :func:`to_monthly_equivalent` with the same factors."""
    if cadence not in MONTHLY_EQUIVALENT_FACTORS:
        raise ValueError(f"Unknown cadence {cadence!r}")
    return round_half_up(monthly_cents / MONTHLY_EQUIVALENT_FACTORS[cadence])


def expand_budgets(rules: Iterable[Rule], query_start: DateLike, query_end: DateLike) -> Dict[str, int]:
    """Expanded budget totals per category (budget rules only)."""
    totals: Dict[str, int] = {}
    for rule in rules:
        if not rule.is_budget or rule.category_id is None:
            continue
        totals[rule.category_id] = totals.get(rule.category_id, 0) + expand_for_total(
            rule, query_start, query_end
        )
    return totals


def total_by_kind(rules: Iterable[Rule], kind: str, query_start: DateLike, query_end: DateLike) -> int:
    return sum(expand_for_total(r, query_start, query_end) for r in rules if r.kind == kind)


def forecasts_to_frame(forecasts: Sequence[Forecast]) -> pd.DataFrame:
    """Tabular view of forecasts, one row per occurrence."""
    if not forecasts:
        return pd.DataFrame(columns=list(FORECAST_COLUMNS))
    df = pd.DataFrame([{c: getattr(f, c) for c in FORECAST_COLUMNS} for f in forecasts])
    df["date"] = pd.to_datetime(df["date"])
    return df
