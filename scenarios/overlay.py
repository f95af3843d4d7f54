"""
What-if overlay — non-persisted amount overrides on top of a scenario.

Four override maps, keyed the way the plan identifies each amount:
  income         rule id
  budget         category id
  fixed_expense  rule id
  savings        rule id

Two ways to apply an override:
  1. Direct substitution on the rule before expansion (apply_to_rules)
  2. Ratio rescaling of an already-expanded amount (rescale_amount):
         new = round(old * override / original), original > 0
         new = override,                         original == 0

Nothing here mutates a rule, a forecast or a totals dict; every function
returns new values.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from core.schema import Forecast, Rule, Scenario
from core.utils import round_half_up

ADJUSTMENT_KINDS: Tuple[str, ...] = ("income", "budget", "fixed_expense", "savings")

# rule kind -> override map it is looked up in
_RULE_KIND_TO_ADJUSTMENT = {
    "income": "income",
    "expense": "fixed_expense",
    "savings": "savings",
    "budget": "budget",
}

# forecast type -> override map (forecasts are keyed by their source rule id)
_FORECAST_TYPE_TO_ADJUSTMENT = {
    "income": "income",
    "expense": "fixed_expense",
    "savings": "savings",
}


def _frozen(mapping: Optional[Mapping[str, int]]) -> Mapping[str, int]:
    return MappingProxyType(dict(mapping or {}))


def _check_kind(kind: str) -> None:
    if kind not in ADJUSTMENT_KINDS:
        raise ValueError(f"Unknown adjustment kind {kind!r}; expected one of {ADJUSTMENT_KINDS}")


def adjustment_key(rule: Rule) -> Tuple[str, Optional[str]]:
    """``(adjustment kind, key)`` under which an override for ``rule`` is stored."""
    kind = _RULE_KIND_TO_ADJUSTMENT[rule.kind]
    return kind, (rule.category_id if kind == "budget" else rule.id)


@dataclass(frozen=True)
class WhatIfAdjustments:
    """Immutable override maps. Build new values with :meth:`with_adjustment`."""
    income: Mapping[str, int] = field(default_factory=dict)
    budget: Mapping[str, int] = field(default_factory=dict)
    fixed_expense: Mapping[str, int] = field(default_factory=dict)
    savings: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for kind in ADJUSTMENT_KINDS:
            values = getattr(self, kind)
            for key, cents in (values or {}).items():
                if cents < 0:
                    raise ValueError(f"Override for {kind}[{key!r}] must be >= 0, got {cents}")
            object.__setattr__(self, kind, _frozen(values))

    @classmethod
    def empty(cls) -> "WhatIfAdjustments":
        return cls()

    @property
    def is_active(self) -> bool:
        return any(len(getattr(self, kind)) for kind in ADJUSTMENT_KINDS)

    def _maps(self) -> Dict[str, Dict[str, int]]:
        return {kind: dict(getattr(self, kind)) for kind in ADJUSTMENT_KINDS}

    def get(self, kind: str, key: Optional[str]) -> Optional[int]:
        _check_kind(kind)
        return getattr(self, kind).get(key)

    def has_adjustment(self, kind: str, key: Optional[str]) -> bool:
        return self.get(kind, key) is not None

    def with_adjustment(
        self,
        kind: str,
        key: str,
        amount_cents: int,
        *,
        baseline: Optional[int] = None,
    ) -> "WhatIfAdjustments":
        """
        New overlay with ``kind[key] = amount_cents`` (last write wins).

        Setting a value equal to ``baseline`` removes the override, so the
        overlay only ever holds real differences.
        """
        _check_kind(kind)
        maps = self._maps()
        if baseline is not None and amount_cents == baseline:
            maps[kind].pop(key, None)
        else:
            maps[kind][key] = amount_cents
        return WhatIfAdjustments(**maps)

    def without(self, kind: str, key: str) -> "WhatIfAdjustments":
        _check_kind(kind)
        maps = self._maps()
        maps[kind].pop(key, None)
        return WhatIfAdjustments(**maps)

    def merged(self, other: "WhatIfAdjustments") -> "WhatIfAdjustments":
        """Compose two overlays; ``other`` wins on conflicting keys."""
        maps = self._maps()
        for kind in ADJUSTMENT_KINDS:
            maps[kind].update(getattr(other, kind))
        return WhatIfAdjustments(**maps)

    def delta(self, kind: str, key: str, baseline: int) -> int:
        """Adjusted minus baseline; 0 when there is no override."""
        adjusted = self.get(kind, key)
        return 0 if adjusted is None else adjusted - baseline

    def for_rule(self, rule: Rule) -> Optional[int]:
        kind, key = adjustment_key(rule)
        return self.get(kind, key)


def baseline_values(rules: Iterable[Rule]) -> WhatIfAdjustments:
    """Current rule amounts laid out in the same maps an overlay uses."""
    maps: Dict[str, Dict[str, int]] = {kind: {} for kind in ADJUSTMENT_KINDS}
    for rule in rules:
        kind, key = adjustment_key(rule)
        if key is not None:
            maps[kind][key] = rule.amount_cents
    return WhatIfAdjustments(**maps)


def rescale_amount(expanded_cents: int, original_amount_cents: int, override_cents: int) -> int:
    """Ratio-preserving rescale of an already-expanded amount."""
    if original_amount_cents > 0:
        return round_half_up(expanded_cents * override_cents / original_amount_cents)
    return override_cents


def apply_to_rules(rules: Iterable[Rule], adjustments: Optional[WhatIfAdjustments]) -> List[Rule]:
    """Direct substitution: copies of ``rules`` with overridden ``amount_cents``."""
    rules = list(rules)
    if adjustments is None or not adjustments.is_active:
        return rules
    out = []
    for rule in rules:
        override = adjustments.for_rule(rule)
        out.append(rule if override is None else replace(rule, amount_cents=override))
    return out


def apply_to_expanded_total(rule: Rule, expanded_cents: int, adjustments: Optional[WhatIfAdjustments]) -> int:
    if adjustments is None:
        return expanded_cents
    override = adjustments.for_rule(rule)
    if override is None:
        return expanded_cents
    return rescale_amount(expanded_cents, rule.amount_cents, override)


def apply_to_expanded_budgets(
    expanded: Mapping[str, int],
    budget_rules: Iterable[Rule],
    adjustments: Optional[WhatIfAdjustments],
) -> Dict[str, int]:
    """Rescale per-category expanded budget totals by their category override."""
    result = dict(expanded)
    if adjustments is None or not adjustments.budget:
        return result
    rule_by_category = {}
    for rule in budget_rules:
        if rule.is_budget:
            rule_by_category.setdefault(rule.category_id, rule)
    for category_id, amount in expanded.items():
        override = adjustments.budget.get(category_id)
        if override is None:
            continue
        rule = rule_by_category.get(category_id)
        original = rule.amount_cents if rule is not None else 0
        result[category_id] = rescale_amount(amount, original, override)
    return result


def apply_to_forecasts(
    forecasts: Iterable[Forecast],
    rules: Iterable[Rule],
    adjustments: Optional[WhatIfAdjustments],
) -> List[Forecast]:
    """
    Rescale rule-sourced forecasts by their rule's override.
    One-off events and interest credits pass through untouched.
    """
    forecasts = list(forecasts)
    if adjustments is None or not adjustments.is_active:
        return forecasts
    rules_by_id = {r.id: r for r in rules}
    out = []
    for f in forecasts:
        kind = _FORECAST_TYPE_TO_ADJUSTMENT.get(f.type)
        override = adjustments.get(kind, f.source_id) if f.source_type == "rule" and kind else None
        if override is None:
            out.append(f)
            continue
        rule = rules_by_id.get(f.source_id)
        original = rule.amount_cents if rule is not None else 0
        out.append(replace(f, amount_cents=rescale_amount(f.amount_cents, original, override)))
    return out


def materialize_scenario(
    name: str,
    rules: Iterable[Rule],
    adjustments: Optional[WhatIfAdjustments],
    *,
    id_factory: Optional[Callable[[], str]] = None,
) -> Tuple[Scenario, Tuple[Rule, ...]]:
    """
    "Save as preset": a new non-default scenario holding copies of ``rules``
    with the overlay baked into their amounts.

    Copies keep a ``lineage_id`` pointing at the rule they were cloned from, so
    they can be matched back to their origin independently of description.
    The caller persists the returned records.
    """
    new_id = id_factory or (lambda: uuid.uuid4().hex)
    scenario = Scenario(id=new_id(), name=name, is_default=False)
    copies = []
    for rule in apply_to_rules(rules, adjustments):
        copies.append(
            replace(
                rule,
                id=new_id(),
                scenario_id=scenario.id,
                lineage_id=rule.lineage_id or rule.id,
            )
        )
    return scenario, tuple(copies)
