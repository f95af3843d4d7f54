"""
Reports — per-month aggregates, savings goal projection and budget health.
"""

from .aggregator import (
    budget_comparison,
    monthly_budget_comparison,
    monthly_net_flow,
    monthly_savings,
    monthly_spending_by_category,
    multi_period_summary,
    savings_by_goal,
)
from .savings import GoalProjection, average_monthly_contribution, deadline_status, project_completion
from .status import BudgetSummary, budget_health

__all__ = [
    "budget_comparison",
    "monthly_budget_comparison",
    "monthly_net_flow",
    "monthly_savings",
    "monthly_spending_by_category",
    "multi_period_summary",
    "savings_by_goal",
    "GoalProjection",
    "average_monthly_contribution",
    "deadline_status",
    "project_completion",
    "BudgetSummary",
    "budget_health",
]
