"""
Scenario tooling — what-if overlays and comparison against the default plan.
"""

from .overlay import WhatIfAdjustments, apply_to_rules, materialize_scenario, rescale_amount
from .diff import PlanTotals, ScenarioDiff

__all__ = [
    "WhatIfAdjustments",
    "apply_to_rules",
    "materialize_scenario",
    "rescale_amount",
    "PlanTotals",
    "ScenarioDiff",
]
