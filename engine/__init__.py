"""
Projection engine — cadence math, rule expansion, balance anchors and
period cash-flow projection.

The end-to-end runner lives in engine.runner (it pulls in scenarios and
reports, which themselves build on this package).
"""

from .cadence import count_occurrences, generate_occurrence_dates
from .expansion import expand_for_total, expand_to_forecasts, to_monthly_equivalent
from .anchors import AnchorSet, DuplicateAnchorError, active_anchor, balance_as_of
from .cashflow import PeriodProjection, project_period

__all__ = [
    "count_occurrences",
    "generate_occurrence_dates",
    "expand_for_total",
    "expand_to_forecasts",
    "to_monthly_equivalent",
    "AnchorSet",
    "DuplicateAnchorError",
    "active_anchor",
    "balance_as_of",
    "PeriodProjection",
    "project_period",
]
