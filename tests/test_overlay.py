"""
Tests for the what-if overlay: immutable override maps and the two ways of
applying them (direct substitution and ratio rescaling).
"""

import itertools
from datetime import date

import pytest

from core.schema import Forecast
from engine.expansion import expand_for_total, expand_to_forecasts
from scenarios.overlay import (
    WhatIfAdjustments,
    adjustment_key,
    apply_to_expanded_budgets,
    apply_to_expanded_total,
    apply_to_forecasts,
    apply_to_rules,
    baseline_values,
    materialize_scenario,
    rescale_amount,
)


# =============================================================================
# WhatIfAdjustments
# =============================================================================

class TestWhatIfAdjustments:
    """Tests for the immutable override container."""

    def test_empty_is_inactive(self):
        assert not WhatIfAdjustments.empty().is_active

    def test_with_adjustment_returns_new_value(self):
        base = WhatIfAdjustments()
        adjusted = base.with_adjustment("income", "salary", 350000)
        assert adjusted.get("income", "salary") == 350000
        assert base.get("income", "salary") is None
        assert adjusted.is_active

    def test_last_write_wins(self):
        adj = (
            WhatIfAdjustments()
            .with_adjustment("budget", "groceries", 50000)
            .with_adjustment("budget", "groceries", 45000)
        )
        assert adj.budget == {"groceries": 45000}

    def test_setting_baseline_removes_override(self):
        adj = WhatIfAdjustments().with_adjustment("savings", "ef", 30000)
        adj = adj.with_adjustment("savings", "ef", 20000, baseline=20000)
        assert not adj.has_adjustment("savings", "ef")
        assert not adj.is_active

    def test_maps_are_read_only(self):
        adj = WhatIfAdjustments(income={"salary": 1})
        with pytest.raises(TypeError):
            adj.income["salary"] = 2

    def test_negative_override_rejected(self):
        with pytest.raises(ValueError):
            WhatIfAdjustments(fixed_expense={"rent": -1})

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            WhatIfAdjustments().with_adjustment("bonus", "x", 1)

    def test_without_and_merged(self):
        a = WhatIfAdjustments(income={"salary": 1}, budget={"fun": 2})
        b = WhatIfAdjustments(income={"salary": 3})
        assert a.merged(b).income == {"salary": 3}
        assert a.merged(b).budget == {"fun": 2}
        assert a.without("budget", "fun").budget == {}

    def test_delta(self):
        adj = WhatIfAdjustments(income={"salary": 350000})
        assert adj.delta("income", "salary", 300000) == 50000
        assert adj.delta("income", "bonus", 1000) == 0

    def test_keys_by_rule_kind(self, base_rules):
        keys = [adjustment_key(r) for r in base_rules]
        assert keys == [
            ("income", "salary"),
            ("fixed_expense", "rent"),
            ("budget", "groceries"),
            ("savings", "ef"),
        ]

    def test_baseline_values(self, base_rules):
        baseline = baseline_values(base_rules)
        assert baseline.income == {"salary": 300000}
        assert baseline.budget == {"groceries": 40000}


# =============================================================================
# Applying overrides
# =============================================================================

class TestApplyOverrides:
    """Tests for substitution and ratio rescaling."""

    def test_rescale_half_year(self, make_rule):
        rule = make_rule(amount_cents=10000)
        expanded = expand_for_total(rule, date(2024, 1, 1), date(2024, 6, 30))
        assert expanded == 60000
        assert rescale_amount(expanded, 10000, 15000) == 90000

    def test_rescale_from_zero_original_uses_override(self):
        assert rescale_amount(0, 0, 7500) == 7500

    def test_apply_to_expanded_total(self, make_rule):
        rule = make_rule(id="rent", amount_cents=10000)
        adj = WhatIfAdjustments(fixed_expense={"rent": 15000})
        assert apply_to_expanded_total(rule, 60000, adj) == 90000
        assert apply_to_expanded_total(rule, 60000, None) == 60000

    @pytest.mark.parametrize("cadence", ["weekly", "fortnightly", "monthly", "quarterly", "yearly"])
    def test_override_to_own_amount_keeps_total(self, make_rule, cadence):
        rule = make_rule(id="rent", cadence=cadence, amount_cents=12345)
        expanded = expand_for_total(rule, date(2024, 2, 10), date(2024, 11, 3))
        adj = WhatIfAdjustments(fixed_expense={"rent": 12345})
        assert abs(apply_to_expanded_total(rule, expanded, adj) - expanded) <= 1
        assert abs(rescale_amount(expanded, 12345, 12345) - expanded) <= 1

    def test_apply_to_rules_does_not_mutate(self, base_rules):
        adj = WhatIfAdjustments(income={"salary": 350000}, budget={"groceries": 60000})
        adjusted = apply_to_rules(base_rules, adj)
        assert [r.amount_cents for r in adjusted] == [350000, 120000, 60000, 20000]
        assert [r.amount_cents for r in base_rules] == [300000, 120000, 40000, 20000]
        assert adjusted[1] is base_rules[1]

    def test_substitution_and_rescale_agree(self, make_rule):
        rule = make_rule(id="rent", amount_cents=10000)
        adj = WhatIfAdjustments(fixed_expense={"rent": 15000})
        start, end = date(2024, 1, 1), date(2024, 6, 30)
        substituted = expand_for_total(apply_to_rules([rule], adj)[0], start, end)
        rescaled = apply_to_expanded_total(rule, expand_for_total(rule, start, end), adj)
        assert substituted == rescaled == 90000

    def test_apply_to_expanded_budgets(self, base_rules):
        adj = WhatIfAdjustments(budget={"groceries": 60000})
        result = apply_to_expanded_budgets({"groceries": 120000, "fun": 5000}, base_rules, adj)
        assert result == {"groceries": 180000, "fun": 5000}

    def test_apply_to_forecasts_leaves_events_alone(self, base_rules):
        forecasts = expand_to_forecasts(base_rules, date(2024, 1, 1), date(2024, 1, 31))
        forecasts.append(Forecast(date(2024, 1, 9), 300000, "income", "salary", source_type="event"))
        adj = WhatIfAdjustments(income={"salary": 330000})
        out = apply_to_forecasts(forecasts, base_rules, adj)
        income = [(f.source_type, f.amount_cents) for f in out if f.type == "income"]
        assert income == [("rule", 330000), ("event", 300000)]


# =============================================================================
# Save as preset
# =============================================================================

class TestMaterializeScenario:
    """Tests for baking an overlay into a new scenario."""

    def test_copies_rules_with_new_ids_and_lineage(self, base_rules):
        counter = itertools.count(1)
        adj = WhatIfAdjustments(income={"salary": 350000})
        scenario, rules = materialize_scenario(
            "Raise", base_rules, adj, id_factory=lambda: f"id-{next(counter)}"
        )
        assert scenario.id == "id-1"
        assert scenario.name == "Raise"
        assert not scenario.is_default
        assert [r.id for r in rules] == ["id-2", "id-3", "id-4", "id-5"]
        assert all(r.scenario_id == "id-1" for r in rules)
        assert [r.lineage_id for r in rules] == ["salary", "rent", "groceries", "ef"]
        assert rules[0].amount_cents == 350000

    def test_default_ids_are_unique(self, base_rules):
        scenario, rules = materialize_scenario("Copy", base_rules, None)
        ids = {scenario.id} | {r.id for r in rules}
        assert len(ids) == 1 + len(base_rules)
