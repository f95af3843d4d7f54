"""
Core package — value records, configuration, and shared date/money utilities.
No business logic lives here.
"""

from .schema import (
    CADENCES,
    MONTHLY_EQUIVALENT_FACTORS,
    BalanceAnchor,
    Category,
    Forecast,
    ForecastEvent,
    InterestRateChange,
    PlanSnapshot,
    Rule,
    SavingsGoal,
    Scenario,
    Transaction,
)
from .config import ProjectionConfig
from .utils import as_date, round_half_up, month_bounds

__all__ = [
    "CADENCES",
    "MONTHLY_EQUIVALENT_FACTORS",
    "BalanceAnchor",
    "Category",
    "Forecast",
    "ForecastEvent",
    "InterestRateChange",
    "PlanSnapshot",
    "Rule",
    "SavingsGoal",
    "Scenario",
    "Transaction",
    "ProjectionConfig",
    "as_date",
    "round_half_up",
    "month_bounds",
]
