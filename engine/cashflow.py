"""
Period cash-flow projection — plan vs pace vs actual.

For a period [start, end] and an as-of date:
  1. Status/effective date: current -> as-of, future -> start, past -> end
  2. Expected totals = expand_for_total over the whole period (+ one-off events)
  3. Actual totals   = ledger within [start, effective date]
  4. Remaining       = max(0, expected - actual), current period only
  5. Planned end     = starting balance + income - fixed - variable - savings
  6. Pace end        = same, with variable actual extrapolated to the full
                       period and savings floored at what is already banked

Balances come from the anchor resolver. Without a cash anchor every balance is
None ("set an anchor"), never zero.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence, Tuple

from core.config import ProjectionConfig
from core.schema import ForecastEvent, Rule, Transaction
from core.utils import DateLike, as_date, days_inclusive, month_bounds, round_half_up

from .anchors import balance_as_of, signed_amount
from .expansion import expand_to_forecasts, total_by_kind

logger = logging.getLogger(__name__)

PERIOD_PAST = "past"
PERIOD_CURRENT = "current"
PERIOD_FUTURE = "future"


def month_period(year: int, month: int) -> Tuple[date, date]:
    return month_bounds(year, month)


def year_period(year: int) -> Tuple[date, date]:
    return date(year, 1, 1), date(year, 12, 31)


def classify_period(period_start: DateLike, period_end: DateLike, as_of: DateLike) -> Tuple[str, date]:
    """``(status, effective date)`` of a period relative to ``as_of``."""
    start, end, as_of = as_date(period_start), as_date(period_end), as_date(as_of)
    if start > end:
        raise ValueError(f"Period start {start} is after period end {end}")
    if as_of < start:
        return PERIOD_FUTURE, start
    if as_of > end:
        return PERIOD_PAST, end
    return PERIOD_CURRENT, as_of


@dataclass(frozen=True)
class FlowLine:
    expected: int
    actual: int
    remaining: int


@dataclass(frozen=True)
class PeriodProjection:
    """Plan/pace/actual figures for one period. Balances are None without an anchor."""
    period_start: date
    period_end: date
    effective_date: date
    status: str
    day_of_period: int
    days_in_period: int

    income: FlowLine
    fixed_expenses: FlowLine
    variable_expenses: FlowLine
    savings: FlowLine
    projected_variable: int

    starting_balance: Optional[int]
    current_balance: Optional[int]
    actual_end_balance: Optional[int]
    planned_end_balance: Optional[int]
    pace_end_balance: Optional[int]
    cash_surplus: Optional[int]
    pace_differs: bool

    @property
    def has_anchor(self) -> bool:
        return self.current_balance is not None

    @property
    def net_change(self) -> int:
        """Planned net movement over the period."""
        return (
            self.income.expected
            - self.fixed_expenses.expected
            - self.variable_expenses.expected
            - self.savings.expected
        )

    @property
    def elapsed_fraction(self) -> float:
        return self.day_of_period / self.days_in_period

    def to_dict(self) -> dict:
        out = asdict(self)
        out["net_change"] = self.net_change
        out["has_anchor"] = self.has_anchor
        return out


def _in_window(txn: Transaction, start: date, end: date) -> bool:
    return start <= as_date(txn.date) <= end


def pace_tolerance(expected_variable: int, config: ProjectionConfig) -> int:
    return max(
        config.pace_tolerance_floor_cents,
        round_half_up(expected_variable * config.pace_tolerance_ratio),
    )


def project_period(
    rules: Iterable[Rule],
    transactions: Sequence[Transaction],
    anchors,
    period_start: DateLike,
    period_end: DateLike,
    config: ProjectionConfig,
    *,
    events: Iterable[ForecastEvent] = (),
) -> PeriodProjection:
    """
    Project cash flow for one period.

    Parameters
    ----------
    rules : iterable of Rule
        Rules of the scenario being viewed, with any what-if overrides already
        substituted (see scenarios.overlay.apply_to_rules).
    transactions : sequence of Transaction
        The ledger.
    anchors : AnchorSet or iterable of BalanceAnchor
    period_start, period_end : date-like
    config : ProjectionConfig
        Supplies the as-of date and the pace tolerance.
    events : iterable of ForecastEvent
        One-off planned items of the same scenario.

    Returns
    -------
    PeriodProjection
    """
    start, end = as_date(period_start), as_date(period_end)
    as_of = config.as_of_date
    status, effective = classify_period(start, end, as_of)
    rules = list(rules)
    all_events = list(events)
    events = [e for e in all_events if start <= as_date(e.date) <= end]

    # --- Expected (whole period) ---
    def _events_total(kind: str) -> int:
        return sum(e.amount_cents for e in events if e.type == kind)

    exp_income = total_by_kind(rules, "income", start, end) + _events_total("income")
    exp_fixed = total_by_kind(rules, "expense", start, end) + _events_total("expense")
    exp_variable = total_by_kind(rules, "budget", start, end)
    exp_savings = total_by_kind(rules, "savings", start, end) + _events_total("savings")

    # --- Actual (start .. effective) ---
    fixed_categories = {r.category_id for r in rules if r.kind == "expense" and r.category_id}
    if status == PERIOD_FUTURE:
        period_txns = []
    else:
        period_txns = [t for t in transactions if _in_window(t, start, effective)]

    act_income = sum(t.amount_cents for t in period_txns if t.type == "income")
    act_savings = sum(t.amount_cents for t in period_txns if t.type == "savings")
    act_fixed = sum(
        t.amount_cents for t in period_txns
        if t.type == "expense" and t.category_id in fixed_categories
    )
    act_variable = sum(
        t.amount_cents for t in period_txns
        if t.type == "expense" and t.category_id not in fixed_categories
    )

    # --- Remaining ---
    def _remaining(expected: int, actual: int) -> int:
        if status == PERIOD_CURRENT:
            return max(0, expected - actual)
        if status == PERIOD_FUTURE:
            return expected
        return 0

    income = FlowLine(exp_income, act_income, _remaining(exp_income, act_income))
    fixed = FlowLine(exp_fixed, act_fixed, _remaining(exp_fixed, act_fixed))
    variable = FlowLine(exp_variable, act_variable, _remaining(exp_variable, act_variable))
    savings = FlowLine(exp_savings, act_savings, _remaining(exp_savings, act_savings))

    # --- Pace ---
    days_in_period = days_inclusive(start, end)
    day_of_period = days_inclusive(start, effective) if status == PERIOD_CURRENT else days_in_period
    if status == PERIOD_CURRENT:
        projected_variable = round_half_up(act_variable * days_in_period / day_of_period)
    elif status == PERIOD_PAST:
        projected_variable = act_variable
    else:
        projected_variable = exp_variable

    # --- Balances ---
    starting_balance: Optional[int] = None
    current_balance: Optional[int] = None
    actual_end_balance: Optional[int] = None
    if status == PERIOD_FUTURE:
        current_balance = balance_as_of(anchors, transactions, None, as_of, require_anchor=True)
        if current_balance is not None:
            gap_end = start - timedelta(days=1)
            gap = []
            if as_of < gap_end:
                gap = expand_to_forecasts(rules, as_of + timedelta(days=1), gap_end, events=all_events)
            gap_net = sum(f.amount_cents if f.type == "income" else -f.amount_cents for f in gap)
            starting_balance = current_balance + gap_net
    else:
        current_balance = balance_as_of(anchors, transactions, None, effective, require_anchor=True)
        if current_balance is not None:
            net_actual = sum(signed_amount(t, None) for t in period_txns)
            starting_balance = current_balance - net_actual
            if status == PERIOD_PAST:
                actual_end_balance = current_balance

    planned_end = pace_end = cash_surplus = None
    if starting_balance is not None:
        planned_end = starting_balance + exp_income - exp_fixed - exp_variable - exp_savings
        if status == PERIOD_CURRENT:
            pace_end = (
                starting_balance + exp_income - exp_fixed - projected_variable
                - max(exp_savings, act_savings)
            )
            remaining_outflows = (
                fixed.remaining + max(0, projected_variable - act_variable) + savings.remaining
            )
            cash_surplus = current_balance + income.remaining - remaining_outflows
        elif status == PERIOD_PAST:
            cash_surplus = actual_end_balance
        else:
            cash_surplus = planned_end
    else:
        logger.warning("No cash anchor on or before %s; balances unavailable", effective)

    pace_differs = (
        pace_end is not None
        and abs(pace_end - planned_end) > pace_tolerance(exp_variable, config)
    )

    logger.debug(
        "Projected %s period %s..%s (effective %s): planned=%s pace=%s",
        status, start, end, effective, planned_end, pace_end,
    )
    return PeriodProjection(
        period_start=start,
        period_end=end,
        effective_date=effective,
        status=status,
        day_of_period=day_of_period,
        days_in_period=days_in_period,
        income=income,
        fixed_expenses=fixed,
        variable_expenses=variable,
        savings=savings,
        projected_variable=projected_variable,
        starting_balance=starting_balance,
        current_balance=current_balance,
        actual_end_balance=actual_end_balance,
        planned_end_balance=planned_end,
        pace_end_balance=pace_end,
        cash_surplus=cash_surplus,
        pace_differs=pace_differs,
    )
