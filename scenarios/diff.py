"""
Scenario diff — compare any scenario against the default ("current plan").

Default totals are monthly equivalents of the default scenario's rules.
Budget rules are matched across scenarios by category id. Forecast rules are
matched by description, or by lineage when the rule being compared carries a
lineage id that the default scenario knows about.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Union

from core.schema import Rule, Scenario

from engine.expansion import to_monthly_equivalent

logger = logging.getLogger(__name__)

TOTAL_KINDS = ("income", "fixed", "budget", "savings", "surplus")


@dataclass(frozen=True)
class PlanTotals:
    """Monthly-equivalent plan totals, in cents."""
    income: int = 0
    fixed_expenses: int = 0
    budgeted_expenses: int = 0
    savings: int = 0

    @property
    def surplus(self) -> int:
        return self.income - self.fixed_expenses - self.budgeted_expenses - self.savings

    @classmethod
    def from_rules(cls, rules: Iterable[Rule]) -> "PlanTotals":
        sums = {"income": 0, "expense": 0, "budget": 0, "savings": 0}
        for rule in rules:
            sums[rule.kind] += to_monthly_equivalent(rule.amount_cents, rule.cadence)
        return cls(
            income=sums["income"],
            fixed_expenses=sums["expense"],
            budgeted_expenses=sums["budget"],
            savings=sums["savings"],
        )

    def get(self, kind: str) -> int:
        if kind == "income":
            return self.income
        if kind == "fixed":
            return self.fixed_expenses
        if kind == "budget":
            return self.budgeted_expenses
        if kind == "savings":
            return self.savings
        if kind == "surplus":
            return self.surplus
        raise ValueError(f"Unknown total kind {kind!r}; expected one of {TOTAL_KINDS}")

    def to_dict(self) -> Dict[str, int]:
        return {
            "income": self.income,
            "fixed_expenses": self.fixed_expenses,
            "budgeted_expenses": self.budgeted_expenses,
            "savings": self.savings,
            "surplus": self.surplus,
        }


class ScenarioDiff:
    """
    Delta / "is different" queries of one scenario against the default.

    Parameters
    ----------
    default_scenario : Scenario or None
        When None, nothing is treated as the default: totals are zero and
        ``is_viewing_default`` is False.
    default_rules : iterable of Rule
        Rules of the default scenario.
    active_scenario_id : str or None
        The scenario being viewed.
    """

    def __init__(
        self,
        default_scenario: Optional[Scenario],
        default_rules: Iterable[Rule],
        active_scenario_id: Optional[str],
    ):
        self.default_scenario = default_scenario
        self.active_scenario_id = active_scenario_id
        self.is_viewing_default = (
            default_scenario is not None and default_scenario.id == active_scenario_id
        )

        rules = list(default_rules) if default_scenario is not None else []
        self.default_totals = PlanTotals.from_rules(rules)

        self.budget_by_category: Dict[str, int] = {}
        self.budget_by_category_monthly: Dict[str, int] = {}
        self._by_description: Dict[str, Dict[str, int]] = {"income": {}, "expense": {}, "savings": {}}
        self._by_lineage: Dict[str, Dict[str, int]] = {"income": {}, "expense": {}, "savings": {}}
        for rule in rules:
            if rule.is_budget:
                self.budget_by_category[rule.category_id] = rule.amount_cents
                self.budget_by_category_monthly[rule.category_id] = to_monthly_equivalent(
                    rule.amount_cents, rule.cadence
                )
                continue
            self._by_description[rule.kind][rule.description] = rule.amount_cents
            self._by_lineage[rule.kind][rule.lineage_id or rule.id] = rule.amount_cents

    @classmethod
    def from_snapshot(cls, snapshot, active_scenario_id: Optional[str]) -> "ScenarioDiff":
        default = snapshot.default_scenario()
        if default is None:
            logger.warning("No default scenario; scenario diff degrades to zero totals")
            return cls(None, (), active_scenario_id)
        return cls(default, snapshot.rules_for(default.id), active_scenario_id)

    @property
    def default_scenario_name(self) -> str:
        return self.default_scenario.name if self.default_scenario else "Default"

    @property
    def income_by_key(self) -> Dict[str, int]:
        return dict(self._by_description["income"])

    @property
    def expense_by_key(self) -> Dict[str, int]:
        return dict(self._by_description["expense"])

    @property
    def savings_by_key(self) -> Dict[str, int]:
        return dict(self._by_description["savings"])

    def delta(self, kind: str, current_value: int) -> int:
        """``current_value - default total`` for ``kind``; 0 when viewing the default."""
        default_value = self.default_totals.get(kind)
        if self.is_viewing_default:
            return 0
        return current_value - default_value

    def default_amount(self, kind: str, identity: Union[Rule, str]) -> Optional[int]:
        """
        The default scenario's amount for ``identity``.

        ``identity`` is a Rule, or the raw match key: a category id for
        ``kind == "budget"``, a description otherwise.
        """
        if kind == "budget":
            key = identity.category_id if isinstance(identity, Rule) else identity
            return self.budget_by_category.get(key)
        if kind not in self._by_description:
            raise ValueError(f"Unknown rule kind {kind!r}")
        if isinstance(identity, Rule):
            if identity.lineage_id is not None and identity.lineage_id in self._by_lineage[kind]:
                return self._by_lineage[kind][identity.lineage_id]
            identity = identity.description
        return self._by_description[kind].get(identity)

    def is_different(self, kind: str, identity: Union[Rule, str], current_amount: int) -> bool:
        """
        True when the value differs from the default's, or the default has no
        such entry at all. Always False while viewing the default itself.
        """
        if self.is_viewing_default:
            return False
        default_amount = self.default_amount(kind, identity)
        if default_amount is None:
            return True
        return current_amount != default_amount

    def is_rule_different(self, rule: Rule) -> bool:
        return self.is_different(rule.kind, rule, rule.amount_cents)

    def is_budget_different(self, category_id: str, current_amount: int) -> bool:
        return self.is_different("budget", category_id, current_amount)

    def is_income_different(self, identity: Union[Rule, str], current_amount: int) -> bool:
        return self.is_different("income", identity, current_amount)

    def is_expense_different(self, identity: Union[Rule, str], current_amount: int) -> bool:
        return self.is_different("expense", identity, current_amount)

    def is_savings_different(self, identity: Union[Rule, str], current_amount: int) -> bool:
        return self.is_different("savings", identity, current_amount)
