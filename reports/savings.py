"""
Savings goal projection — when will a goal be reached?

Simulates monthly compounding on top of the empirical average contribution:
    balance += avg_contribution
    balance += balance * annual_rate / 12 / 100
until the target is met or the horizon (600 months by default) runs out.

Unreachable goals and goals beyond the horizon return None; they are business
outcomes, not errors.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional, Sequence

import pandas as pd

from core.config import ProjectionConfig
from core.schema import Forecast, SavingsGoal, Transaction
from core.utils import DateLike, add_months, as_date, month_bounds, month_key, months_between, round_half_up

from engine.anchors import balance_as_of

logger = logging.getLogger(__name__)

REACHED = "reached"


@dataclass(frozen=True)
class GoalProjection:
    month: str  # "YYYY-MM", or "reached"
    months_away: int

    @property
    def is_reached(self) -> bool:
        return self.month == REACHED


@dataclass(frozen=True)
class DeadlineStatus:
    status: str  # early | on-time | slightly-late | late
    diff_days: int
    label: str


def average_monthly_contribution(monthly_savings) -> float:
    """
    Empirical average of ``actual + forecast`` per month.

    Accepts a DataFrame with ``actual`` and ``forecast`` columns (see
    reports.aggregator.monthly_savings) or an iterable of mappings.
    """
    if isinstance(monthly_savings, pd.DataFrame):
        if monthly_savings.empty:
            return 0.0
        total = float(monthly_savings["actual"].sum() + monthly_savings["forecast"].sum())
        return total / len(monthly_savings)
    rows = list(monthly_savings)
    total = sum(r["actual"] + r["forecast"] for r in rows)
    return total / max(len(rows), 1)


def project_completion(
    current_balance: int,
    target_amount: int,
    avg_monthly_contribution: float,
    annual_interest_rate: Optional[float],
    *,
    as_of: DateLike,
    max_months: int = 600,
) -> Optional[GoalProjection]:
    """
    Month in which ``current_balance`` first reaches ``target_amount``.

    Parameters
    ----------
    current_balance, target_amount : int
        Cents.
    avg_monthly_contribution : float
        Cents per month; may be fractional.
    annual_interest_rate : float or None
        Percent per year.
    as_of : date-like
        Month zero of the simulation.
    max_months : int
        Simulation horizon.

    Returns
    -------
    GoalProjection or None
        None when the target is not positive, the goal cannot grow, or the
        horizon is exceeded.
    """
    if target_amount <= 0:
        return None
    if current_balance >= target_amount:
        return GoalProjection(month=REACHED, months_away=0)

    rate = annual_interest_rate or 0.0
    if avg_monthly_contribution <= 0 and rate <= 0:
        return None

    monthly_rate = rate / 100 / 12
    balance = float(current_balance)
    months = 0
    while balance < target_amount and months < max_months:
        balance += avg_monthly_contribution
        balance += balance * monthly_rate
        months += 1

    if balance < target_amount:
        logger.debug("Goal target %s not reached within %s months", target_amount, max_months)
        return None

    target_month = add_months(as_date(as_of).replace(day=1), months)
    return GoalProjection(month=month_key(target_month), months_away=months)


def _format_difference(days: int) -> str:
    def plural(n: int, unit: str) -> str:
        return f"{n} {unit}{'' if n == 1 else 's'}"

    if days < 7:
        return plural(days, "day")
    if days < 28:
        return plural(round(days / 7), "week")
    months = round(days / 30)
    if months > 12:
        years, rest = divmod(months, 12)
        return plural(years, "year") if rest == 0 else f"{plural(years, 'year')} {plural(rest, 'month')}"
    return plural(months, "month")


def deadline_status(
    projection: Optional[GoalProjection],
    deadline: Optional[DateLike],
    *,
    slightly_late_months: int = 2,
) -> Optional[DeadlineStatus]:
    """Compare the projected month with the deadline month; None if either is missing."""
    if projection is None or projection.is_reached or deadline is None:
        return None
    year, month = (int(p) for p in projection.month.split("-"))
    expected = date(year, month, 1)
    deadline = as_date(deadline).replace(day=1)
    diff_days = (expected - deadline).days
    abs_days = abs(diff_days)

    if diff_days < 0:
        return DeadlineStatus("early", diff_days, f"{_format_difference(abs_days)} early")
    if diff_days == 0:
        return DeadlineStatus("on-time", 0, "On time")
    status = "slightly-late" if round(abs_days / 30) <= slightly_late_months else "late"
    return DeadlineStatus(status, diff_days, f"{_format_difference(abs_days)} late")


def interest_forecasts(
    goal: SavingsGoal,
    opening_balance: int,
    contributions: Iterable[Forecast],
    start: DateLike,
    end: DateLike,
) -> List[Forecast]:
    """
    Month-end interest credits for ``goal`` over ``[start, end]``.

    Each month adds that month's contributions to the running balance, then
    credits ``balance * rate / 12 / 100`` at the month end using the rate in
    force on that day. Credits compound into the following months.
    """
    start, end = as_date(start), as_date(end)
    by_month = {}
    for c in contributions:
        if c.savings_goal_id == goal.id and c.type == "savings":
            key = month_key(as_date(c.date))
            by_month[key] = by_month.get(key, 0) + c.amount_cents

    balance = opening_balance
    out: List[Forecast] = []
    cursor = start.replace(day=1)
    for _ in range(months_between(cursor, end) + 1):
        _, month_end = month_bounds(cursor.year, cursor.month)
        balance += by_month.get(month_key(cursor), 0)
        credit = round_half_up(balance * goal.effective_rate(month_end) / 100 / 12)
        if credit > 0 and start <= month_end <= end:
            out.append(
                Forecast(
                    date=month_end,
                    amount_cents=credit,
                    type="savings",
                    source_id=goal.id,
                    source_type="interest",
                    savings_goal_id=goal.id,
                    description=f"Interest: {goal.name}",
                )
            )
            balance += credit
        cursor = add_months(cursor, 1)
    return out


def project_goal(
    goal: SavingsGoal,
    anchors,
    transactions: Sequence[Transaction],
    monthly_savings,
    config: ProjectionConfig,
) -> Optional[GoalProjection]:
    """Wire the goal's own balance (anchor optional) into :func:`project_completion`."""
    balance = balance_as_of(anchors, transactions, goal.id, config.as_of_date, require_anchor=False)
    return project_completion(
        balance,
        goal.target_amount_cents,
        average_monthly_contribution(monthly_savings),
        goal.effective_rate(config.as_of_date),
        as_of=config.as_of_date,
        max_months=config.max_projection_months,
    )
