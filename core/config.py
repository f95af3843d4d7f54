"""
Projection configuration.
The as-of date is always explicit; the engine never reads the wall clock itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from .utils import as_date


@dataclass(frozen=True)
class ProjectionConfig:
    as_of_date: date

    # plan vs pace divergence tolerance: max(floor, ratio * expected variable)
    pace_tolerance_floor_cents: int = 100
    pace_tolerance_ratio: float = 0.10

    # savings goal simulation horizon (50 years)
    max_projection_months: int = 600

    # budget health
    overspending_burn_rate: float = 1.2
    slightly_late_months: int = 2

    uncategorized_key: str = "uncategorized"

    def __post_init__(self) -> None:
        object.__setattr__(self, "as_of_date", as_date(self.as_of_date))
        if self.max_projection_months <= 0:
            raise ValueError("max_projection_months must be positive")
        if self.pace_tolerance_ratio < 0 or self.pace_tolerance_floor_cents < 0:
            raise ValueError("pace tolerance must be non-negative")

    @classmethod
    def for_today(cls, **overrides) -> "ProjectionConfig":
        return cls(as_of_date=date.today(), **overrides)
