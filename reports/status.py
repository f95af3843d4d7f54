"""
Budget health — how each variable budget is tracking inside a period.

For every budget rule:
  spent_pct = spent / period budget
  burn_rate = spent / (period budget * elapsed fraction)

Status, first match wins:
  over          spent_pct >= 1
  overspending  burn_rate > overspending threshold (1.2 by default)
  good          otherwise

Zero denominators yield 0 rather than NaN/inf.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional

import pandas as pd

from core.config import ProjectionConfig
from core.schema import Forecast, Rule, Transaction
from core.utils import DateLike, as_date, days_inclusive

from engine.cashflow import PERIOD_CURRENT, PERIOD_FUTURE, PERIOD_PAST, classify_period
from engine.expansion import expand_for_total


@dataclass(frozen=True)
class BudgetHealth:
    category_id: str
    budget: int
    spent: int
    spent_pct: float
    burn_rate: float
    status: str


@dataclass
class BudgetSummary:
    """Budget health for one period."""
    period_start: date
    period_end: date
    effective_date: date
    elapsed_fraction: float
    items: List[BudgetHealth] = field(default_factory=list)
    total_savings_forecasted: int = 0
    uncategorized_spent: int = 0
    flags: List[str] = field(default_factory=list)

    def _count(self, status: str) -> int:
        return sum(1 for i in self.items if i.status == status)

    @property
    def over_count(self) -> int:
        return self._count("over")

    @property
    def overspending_count(self) -> int:
        return self._count("overspending")

    @property
    def good_count(self) -> int:
        return self._count("good")

    @property
    def tracked_count(self) -> int:
        return len(self.items)

    def to_dataframe(self) -> pd.DataFrame:
        """One row per tracked category, worst first."""
        rows = [
            {
                "category_id": i.category_id,
                "budget": i.budget,
                "spent": i.spent,
                "spent_pct": i.spent_pct,
                "burn_rate": i.burn_rate,
                "status": i.status,
            }
            for i in self.items
        ]
        df = pd.DataFrame(
            rows, columns=["category_id", "budget", "spent", "spent_pct", "burn_rate", "status"]
        )
        order = {"over": 0, "overspending": 1, "good": 2}
        return (
            df.assign(_rank=df["status"].map(order))
            .sort_values(["_rank", "burn_rate"], ascending=[True, False])
            .drop(columns="_rank")
            .reset_index(drop=True)
        )


def classify_budget(
    category_id: str,
    spent: int,
    budget: int,
    elapsed_fraction: float,
    *,
    threshold: float = 1.2,
) -> BudgetHealth:
    spent_pct = spent / budget if budget > 0 else 0.0
    expected_spend = budget * elapsed_fraction
    burn_rate = spent / expected_spend if expected_spend > 0 else 0.0
    if spent_pct >= 1:
        status = "over"
    elif burn_rate > threshold:
        status = "overspending"
    else:
        status = "good"
    return BudgetHealth(category_id, budget, spent, spent_pct, burn_rate, status)


def budget_health(
    rules: Iterable[Rule],
    transactions: Iterable[Transaction],
    period_start: DateLike,
    period_end: DateLike,
    config: ProjectionConfig,
    *,
    forecasts: Optional[Iterable[Forecast]] = None,
) -> BudgetSummary:
    """
    Score every budget rule of a scenario against spending in the period.

    Parameters
    ----------
    rules : iterable of Rule
        Scenario rules; only ``kind == "budget"`` rules are scored.
    transactions : iterable of Transaction
    period_start, period_end : date-like
    config : ProjectionConfig
    forecasts : iterable of Forecast, optional
        Dated forecasts for the period, used for the savings total.

    Returns
    -------
    BudgetSummary
    """
    start, end = as_date(period_start), as_date(period_end)
    status, effective = classify_period(start, end, config.as_of_date)
    days = days_inclusive(start, end)
    if status == PERIOD_CURRENT:
        elapsed = days_inclusive(start, effective) / days
    elif status == PERIOD_PAST:
        elapsed = 1.0
    else:
        elapsed = 0.0

    expenses = []
    if status != PERIOD_FUTURE:
        expenses = [
            t for t in transactions
            if t.type == "expense" and start <= as_date(t.date) <= effective
        ]

    summary = BudgetSummary(
        period_start=start,
        period_end=end,
        effective_date=effective,
        elapsed_fraction=elapsed,
    )
    for rule in rules:
        if not rule.is_budget:
            continue
        budget = expand_for_total(rule, start, end)
        spent = sum(t.amount_cents for t in expenses if t.category_id == rule.category_id)
        health = classify_budget(
            rule.category_id, spent, budget, elapsed, threshold=config.overspending_burn_rate
        )
        summary.items.append(health)
        if health.status == "over":
            summary.flags.append(f"{rule.category_id} is over budget ({health.spent_pct:.0%})")
        elif health.status == "overspending":
            summary.flags.append(f"{rule.category_id} is burning {health.burn_rate:.2f}x its budget pace")

    summary.uncategorized_spent = sum(t.amount_cents for t in expenses if t.category_id is None)
    if forecasts is not None:
        summary.total_savings_forecasted = sum(
            f.amount_cents for f in forecasts
            if f.type == "savings" and f.source_type != "interest"
            and start <= as_date(f.date) <= end
        )
    return summary
