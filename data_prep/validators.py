"""
Data quality validation for a plan snapshot before it enters the engine.

Catches problems early:
- Duplicate balance anchors for one scope and date
- More than one default scenario
- Rules with an unknown cadence or a start date after their end date
- References to categories or savings goals that don't exist
- Ledger entries older than the earliest cash anchor
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import List

from core.schema import CADENCES, RULE_KINDS, TRANSACTION_TYPES, PlanSnapshot


@dataclass
class ValidationResult:
    """Collects all validation warnings/errors for a snapshot."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def summary(self) -> str:
        lines = []
        if self.errors:
            lines.append(f"ERRORS ({len(self.errors)}):")
            for e in self.errors:
                lines.append(f"  ✗ {e}")
        if self.warnings:
            lines.append(f"WARNINGS ({len(self.warnings)}):")
            for w in self.warnings:
                lines.append(f"  ⚠ {w}")
        if not lines:
            lines.append("✓ All checks passed.")
        return "\n".join(lines)


def validate_snapshot(snapshot: PlanSnapshot) -> ValidationResult:
    """
    Run all validation checks on a plan snapshot.
    Returns a ValidationResult with errors (blocking) and warnings (informational).
    """
    result = ValidationResult()

    # --- Scenarios ---
    defaults = [s.id for s in snapshot.scenarios if s.is_default]
    if len(defaults) > 1:
        result.errors.append(f"{len(defaults)} default scenarios found: {defaults}.")
    elif not defaults and snapshot.scenarios:
        result.warnings.append("No default scenario; scenario deltas will be zero.")

    scenario_ids = {s.id for s in snapshot.scenarios}
    category_ids = {c.id for c in snapshot.categories}
    goal_ids = {g.id for g in snapshot.savings_goals}

    # --- Anchors ---
    counts = Counter((a.savings_goal_id, a.date) for a in snapshot.anchors)
    for (scope, d), n in sorted(counts.items(), key=lambda kv: (str(kv[0][0]), kv[0][1])):
        if n > 1:
            label = "cash" if scope is None else f"goal {scope}"
            result.errors.append(f"{n} balance anchors for {label} on {d}.")
    for a in snapshot.anchors:
        if a.savings_goal_id is not None and a.savings_goal_id not in goal_ids:
            result.warnings.append(f"Anchor on {a.date} references unknown goal {a.savings_goal_id}.")

    # --- Rules ---
    for r in snapshot.rules:
        if r.cadence not in CADENCES:
            result.errors.append(f"Rule {r.id} has unknown cadence {r.cadence!r}.")
        if r.kind not in RULE_KINDS:
            result.errors.append(f"Rule {r.id} has unknown kind {r.kind!r}.")
        if r.start_date and r.end_date and r.start_date > r.end_date:
            result.errors.append(
                f"Rule {r.id} starts {r.start_date} after it ends {r.end_date}; it will never occur."
            )
        if r.amount_cents < 0:
            result.warnings.append(f"Rule {r.id} has negative amount {r.amount_cents}.")
        if scenario_ids and r.scenario_id not in scenario_ids:
            result.warnings.append(f"Rule {r.id} references unknown scenario {r.scenario_id}.")
        if category_ids and r.category_id is not None and r.category_id not in category_ids:
            result.warnings.append(f"Rule {r.id} references unknown category {r.category_id}.")
        if r.savings_goal_id is not None and r.savings_goal_id not in goal_ids:
            result.warnings.append(f"Rule {r.id} references unknown goal {r.savings_goal_id}.")

    budget_counts = Counter((r.scenario_id, r.category_id) for r in snapshot.rules if r.is_budget)
    for (scenario_id, category_id), n in sorted(budget_counts.items(), key=str):
        if n > 1:
            result.warnings.append(
                f"Scenario {scenario_id} has {n} budget rules for category {category_id}; "
                f"the last one wins in scenario comparisons."
            )

    # --- Ledger ---
    n_bad_type = sum(1 for t in snapshot.transactions if t.type not in TRANSACTION_TYPES)
    if n_bad_type:
        result.errors.append(f"{n_bad_type} transactions have an unknown type.")
    n_neg = sum(1 for t in snapshot.transactions if t.amount_cents < 0 and t.type != "savings")
    if n_neg:
        result.warnings.append(
            f"{n_neg} non-savings transactions have a negative amount; only savings "
            f"withdrawals are expected to be negative."
        )
    n_orphan = sum(
        1 for t in snapshot.transactions
        if t.savings_goal_id is not None and t.savings_goal_id not in goal_ids
    )
    if n_orphan:
        result.warnings.append(f"{n_orphan} transactions reference an unknown savings goal.")

    earliest = min((a.date for a in snapshot.anchors if a.savings_goal_id is None), default=None)
    if earliest is None:
        if snapshot.transactions:
            result.warnings.append("No cash balance anchor; balances cannot be computed.")
    else:
        n_before = sum(1 for t in snapshot.transactions if t.date < earliest)
        if n_before:
            result.warnings.append(
                f"{n_before} transactions are dated before the earliest anchor ({earliest}) "
                f"and are ignored by balance calculations."
            )

    return result
