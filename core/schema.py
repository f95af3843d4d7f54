"""
Value records consumed and produced by the projection engine.

All records are frozen dataclasses. Money is always integer cents and the sign of a
transaction is implied by its type. The one exception is a savings transaction
with a negative amount, which records a withdrawal from the goal.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, Literal, Optional, Tuple

Cadence = Literal["weekly", "fortnightly", "monthly", "quarterly", "yearly"]
RuleKind = Literal["income", "expense", "savings", "budget"]
TransactionType = Literal["income", "expense", "savings", "adjustment"]
ForecastType = Literal["income", "expense", "savings"]
SourceType = Literal["rule", "event", "interest"]

CADENCES: Tuple[str, ...] = ("weekly", "fortnightly", "monthly", "quarterly", "yearly")
RULE_KINDS: Tuple[str, ...] = ("income", "expense", "savings", "budget")
TRANSACTION_TYPES: Tuple[str, ...] = ("income", "expense", "savings", "adjustment")

# Cross-cadence normalization factors. Approximate: 52/12 is rounded to 4.33.
MONTHLY_EQUIVALENT_FACTORS: Dict[str, float] = {
    "weekly": 4.33,
    "fortnightly": 2.17,
    "monthly": 1.0,
    "quarterly": 1.0 / 3.0,
    "yearly": 1.0 / 12.0,
}

# Forecast-rule kind -> transaction type it materializes as.
# Budget rules have no dated occurrences.
RULE_KIND_TO_FORECAST_TYPE: Dict[str, str] = {
    "income": "income",
    "expense": "expense",
    "savings": "savings",
}


@dataclass(frozen=True)
class Scenario:
    id: str
    name: str = ""
    is_default: bool = False


@dataclass(frozen=True)
class Rule:
    """
    A recurring plan rule.

    ``kind == "budget"`` rules are variable-spend envelopes keyed by
    ``category_id``; every other kind is a forecast rule that lands on concrete
    dates. ``day_of_week`` uses 0 = Sunday, ``month_of_year`` uses 1 = January and
    ``month_of_quarter`` is an offset 0..2 inside the quarter.
    """
    id: str
    scenario_id: str
    kind: RuleKind
    amount_cents: int
    cadence: Cadence
    category_id: Optional[str] = None
    savings_goal_id: Optional[str] = None
    description: str = ""
    day_of_week: Optional[int] = None
    day_of_month: Optional[int] = None
    month_of_quarter: Optional[int] = None
    month_of_year: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    lineage_id: Optional[str] = None
    excluded_dates: Tuple[date, ...] = ()

    @property
    def is_budget(self) -> bool:
        return self.kind == "budget"


@dataclass(frozen=True)
class ForecastEvent:
    """A one-off planned item on a specific date."""
    id: str
    scenario_id: str
    type: ForecastType
    date: date
    amount_cents: int
    description: str = ""
    category_id: Optional[str] = None
    savings_goal_id: Optional[str] = None


@dataclass(frozen=True)
class Transaction:
    id: str
    date: date
    type: TransactionType
    amount_cents: int
    category_id: Optional[str] = None
    savings_goal_id: Optional[str] = None
    description: str = ""


@dataclass(frozen=True)
class BalanceAnchor:
    date: date
    balance_cents: int
    savings_goal_id: Optional[str] = None  # None = global cash anchor
    id: Optional[str] = None


@dataclass(frozen=True)
class InterestRateChange:
    effective_date: date
    annual_rate: float  # percent, e.g. 4.5


@dataclass(frozen=True)
class SavingsGoal:
    id: str
    name: str
    target_amount_cents: int
    deadline: Optional[date] = None
    annual_interest_rate: Optional[float] = None
    interest_rate_schedule: Tuple[InterestRateChange, ...] = ()

    def effective_rate(self, on: date) -> float:
        """Annual rate (percent) in force on ``on``."""
        rate = self.annual_interest_rate or 0.0
        for change in sorted(self.interest_rate_schedule, key=lambda c: c.effective_date):
            if change.effective_date > on:
                break
            rate = change.annual_rate
        return float(rate)


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    is_archived: bool = False


@dataclass(frozen=True)
class Forecast:
    date: date
    amount_cents: int
    type: ForecastType
    source_id: str
    source_type: SourceType = "rule"
    category_id: Optional[str] = None
    savings_goal_id: Optional[str] = None
    description: str = ""


@dataclass(frozen=True)
class PlanSnapshot:
    """Read-only bundle of everything the engine consumes."""
    scenarios: Tuple[Scenario, ...] = ()
    rules: Tuple[Rule, ...] = ()
    events: Tuple[ForecastEvent, ...] = ()
    transactions: Tuple[Transaction, ...] = ()
    anchors: Tuple[BalanceAnchor, ...] = ()
    savings_goals: Tuple[SavingsGoal, ...] = ()
    categories: Tuple[Category, ...] = ()

    def default_scenario(self) -> Optional[Scenario]:
        defaults = [s for s in self.scenarios if s.is_default]
        if len(defaults) > 1:
            raise ValueError(
                f"Expected at most one default scenario, found {len(defaults)}: "
                f"{[s.id for s in defaults]}"
            )
        return defaults[0] if defaults else None

    def rules_for(self, scenario_id: Optional[str]) -> Tuple[Rule, ...]:
        return tuple(r for r in self.rules if r.scenario_id == scenario_id)

    def events_for(self, scenario_id: Optional[str]) -> Tuple[ForecastEvent, ...]:
        return tuple(e for e in self.events if e.scenario_id == scenario_id)

    def goal(self, goal_id: str) -> Optional[SavingsGoal]:
        for g in self.savings_goals:
            if g.id == goal_id:
                return g
        return None
