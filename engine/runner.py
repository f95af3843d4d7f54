"""
Projection runner — orchestrates one scenario over one period.

Pipeline (pure; repeated calls with the same inputs give the same outputs):
  1. Validate anchors (AnchorSet rejects duplicates)
  2. Apply the what-if overlay to the scenario's rules (direct substitution)
  3. Expand rules + one-off events to dated forecasts, add goal interest
  4. Period projection (plan vs pace vs actual)
  5. Budget health, scenario deltas, monthly net flow, savings goals
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Dict, Optional, Tuple

import pandas as pd

from core.config import ProjectionConfig
from core.schema import PlanSnapshot
from core.utils import DateLike, as_date
from reports.aggregator import monthly_net_flow, monthly_savings
from reports.savings import deadline_status, interest_forecasts, project_goal
from reports.status import budget_health
from scenarios.diff import TOTAL_KINDS, PlanTotals, ScenarioDiff
from scenarios.overlay import WhatIfAdjustments, apply_to_rules

from .anchors import AnchorSet, balance_as_of
from .cashflow import project_period
from .expansion import expand_to_forecasts, forecasts_to_frame

logger = logging.getLogger(__name__)


def run_projection(
    snapshot: PlanSnapshot,
    config: ProjectionConfig,
    *,
    period_start: DateLike,
    period_end: DateLike,
    scenario_id: Optional[str] = None,
    adjustments: Optional[WhatIfAdjustments] = None,
) -> Tuple[pd.DataFrame, Dict]:
    """
    Run the full projection for one scenario.

    Parameters
    ----------
    snapshot : PlanSnapshot
        Read-only rules, events, ledger, anchors and goals.
    config : ProjectionConfig
        As-of date and tunables.
    period_start, period_end : date-like
        The period being viewed.
    scenario_id : str, optional
        Scenario to project; defaults to the default scenario.
    adjustments : WhatIfAdjustments, optional
        Non-persisted overrides applied on top of the scenario's rules.

    Returns
    -------
    (forecasts_df, results)
    forecasts_df: one row per dated forecast in the period (rules, events, interest)
    results: dict with "projection", "budget_health", "plan_totals",
        "default_totals", "deltas", "monthly_net_flow", "goals"
    """
    start, end = as_date(period_start), as_date(period_end)
    if start > end:
        raise ValueError(f"period_start {start} is after period_end {end}")

    if scenario_id is None:
        default = snapshot.default_scenario()
        if default is None:
            raise ValueError("No scenario_id given and the snapshot has no default scenario.")
        scenario_id = default.id

    anchors = AnchorSet(snapshot.anchors)
    transactions = list(snapshot.transactions)
    rules = apply_to_rules(snapshot.rules_for(scenario_id), adjustments)
    events = snapshot.events_for(scenario_id)

    # --- Dated forecasts, then interest on top of contributions ---
    forecasts = expand_to_forecasts(rules, start, end, events=events)
    day_before = start - timedelta(days=1)
    for goal in snapshot.savings_goals:
        opening = balance_as_of(anchors, transactions, goal.id, day_before, require_anchor=False)
        forecasts.extend(interest_forecasts(goal, opening, forecasts, start, end))
    forecasts.sort(key=lambda f: f.date)

    projection = project_period(
        rules, transactions, anchors, start, end, config, events=events
    )
    health = budget_health(rules, transactions, start, end, config, forecasts=forecasts)

    diff = ScenarioDiff.from_snapshot(snapshot, scenario_id)
    plan_totals = PlanTotals.from_rules(rules)
    deltas = {kind: diff.delta(kind, plan_totals.get(kind)) for kind in TOTAL_KINDS}

    net_flow = monthly_net_flow(transactions, forecasts, start, end, as_of=config.as_of_date)

    goals = {}
    for goal in snapshot.savings_goals:
        goal_monthly = monthly_savings(
            transactions, forecasts, start, end, as_of=config.as_of_date, goal_id=goal.id
        )
        completion = project_goal(goal, anchors, transactions, goal_monthly, config)
        goals[goal.id] = {
            "balance": balance_as_of(
                anchors, transactions, goal.id, config.as_of_date, require_anchor=False
            ),
            "completion": completion,
            "deadline": deadline_status(
                completion, goal.deadline, slightly_late_months=config.slightly_late_months
            ),
            "monthly": goal_monthly,
        }

    logger.info(
        "Projection for scenario %s over %s..%s: %d forecasts, status=%s",
        scenario_id, start, end, len(forecasts), projection.status,
    )

    results = {
        "scenario_id": scenario_id,
        "is_viewing_default": diff.is_viewing_default,
        "projection": projection,
        "budget_health": health,
        "plan_totals": plan_totals,
        "default_totals": diff.default_totals,
        "deltas": deltas,
        "monthly_net_flow": net_flow,
        "goals": goals,
    }
    return forecasts_to_frame(forecasts), results
