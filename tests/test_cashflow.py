"""
Tests for the period cash-flow projector.

The shared March 2024 fixture: salary 3,000 on the 1st, rent 1,200 on the 3rd,
a 400 groceries budget and a 200 emergency fund contribution on the 5th, with
cash anchored at 5,000 on 29 Feb.
"""

import logging
from datetime import date

import pytest

from core.config import ProjectionConfig
from core.schema import ForecastEvent
from engine.cashflow import (
    PERIOD_CURRENT,
    PERIOD_FUTURE,
    PERIOD_PAST,
    classify_period,
    month_period,
    pace_tolerance,
    project_period,
    year_period,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def project(base_rules, march_transactions, base_anchors, march_config):
    """Project a calendar month with the shared fixtures."""
    def _project(year, month, **kwargs):
        start, end = month_period(year, month)
        return project_period(
            kwargs.pop("rules", base_rules),
            march_transactions,
            kwargs.pop("anchors", base_anchors),
            start,
            end,
            kwargs.pop("config", march_config),
            **kwargs,
        )
    return _project


# =============================================================================
# Period helpers
# =============================================================================

class TestPeriodHelpers:
    """Tests for period bounds and classification."""

    def test_month_and_year_period(self):
        assert month_period(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
        assert year_period(2024) == (date(2024, 1, 1), date(2024, 12, 31))

    def test_classify(self):
        start, end = date(2024, 3, 1), date(2024, 3, 31)
        assert classify_period(start, end, date(2024, 3, 15)) == (PERIOD_CURRENT, date(2024, 3, 15))
        assert classify_period(start, end, date(2024, 2, 10)) == (PERIOD_FUTURE, start)
        assert classify_period(start, end, date(2024, 4, 2)) == (PERIOD_PAST, end)

    def test_period_boundaries_are_current(self):
        start, end = date(2024, 3, 1), date(2024, 3, 31)
        assert classify_period(start, end, start)[0] == PERIOD_CURRENT
        assert classify_period(start, end, end)[0] == PERIOD_CURRENT

    def test_inverted_period_raises(self):
        with pytest.raises(ValueError):
            classify_period(date(2024, 3, 31), date(2024, 3, 1), date(2024, 3, 15))

    def test_pace_tolerance(self, march_config):
        assert pace_tolerance(40000, march_config) == 4000
        assert pace_tolerance(500, march_config) == 100


# =============================================================================
# Current period
# =============================================================================

class TestCurrentPeriod:
    """Tests for the period containing the as-of date."""

    def test_expected_and_actual(self, project):
        p = project(2024, 3)
        assert p.status == PERIOD_CURRENT
        assert (p.income.expected, p.income.actual, p.income.remaining) == (300000, 300000, 0)
        assert (p.fixed_expenses.expected, p.fixed_expenses.actual) == (120000, 120000)
        assert (p.variable_expenses.expected, p.variable_expenses.actual) == (40000, 27000)
        assert p.variable_expenses.remaining == 13000
        assert (p.savings.expected, p.savings.actual, p.savings.remaining) == (20000, 20000, 0)

    def test_day_counts(self, project):
        p = project(2024, 3)
        assert (p.day_of_period, p.days_in_period) == (15, 31)
        assert p.elapsed_fraction == pytest.approx(15 / 31)

    def test_balances(self, project):
        p = project(2024, 3)
        assert p.current_balance == 633000
        assert p.starting_balance == 500000
        assert p.planned_end_balance == 620000
        assert p.actual_end_balance is None

    def test_pace_extrapolates_variable_spend(self, project):
        p = project(2024, 3)
        assert p.projected_variable == 55800
        assert p.pace_end_balance == 604200
        assert p.pace_differs

    def test_cash_surplus_uses_remaining_flows(self, project):
        p = project(2024, 3)
        assert p.cash_surplus == 633000 + 0 - (0 + 28800 + 0)

    def test_pace_within_tolerance_matches_plan(self, project, make_rule, base_rules):
        # budget sized to actual spend pace: no divergence flagged
        rules = base_rules[:2] + [make_rule(id="g", kind="budget", category_id="groceries",
                                            amount_cents=55000)] + base_rules[3:]
        p = project(2024, 3, rules=rules)
        assert abs(p.pace_end_balance - p.planned_end_balance) == 800
        assert not p.pace_differs

    def test_planned_end_identity(self, project):
        p = project(2024, 3)
        assert p.planned_end_balance == p.starting_balance + p.net_change

    def test_event_adds_to_expected(self, project):
        event = ForecastEvent("ev", "base", "expense", date(2024, 3, 20), 50000, description="Car repair")
        p = project(2024, 3, events=[event])
        assert p.fixed_expenses.expected == 170000
        assert p.planned_end_balance == 570000

    def test_to_dict(self, project):
        d = project(2024, 3).to_dict()
        assert d["status"] == "current"
        assert d["net_change"] == 120000
        assert d["income"]["expected"] == 300000


# =============================================================================
# Past and future periods
# =============================================================================

class TestPastAndFuturePeriods:
    """Tests for periods entirely before or after the as-of date."""

    def test_past_period(self, project):
        p = project(2024, 2)
        assert p.status == PERIOD_PAST
        assert p.effective_date == date(2024, 2, 29)
        assert p.actual_end_balance == 500000
        assert p.cash_surplus == 500000
        assert p.pace_end_balance is None
        assert p.variable_expenses.remaining == 0

    def test_next_month(self, project):
        p = project(2024, 4)
        assert p.status == PERIOD_FUTURE
        assert p.current_balance == 633000
        assert p.starting_balance == 633000
        assert p.planned_end_balance == 753000
        assert p.cash_surplus == p.planned_end_balance
        assert p.income.actual == 0
        assert p.income.remaining == 300000
        assert p.pace_end_balance is None
        assert not p.pace_differs

    def test_gap_forecasts_roll_into_starting_balance(self, project):
        # April's salary, rent and savings sit between the as-of date and May
        p = project(2024, 5)
        assert p.starting_balance == 633000 + 300000 - 120000 - 20000

    def test_gap_excludes_budgets(self, project):
        may = project(2024, 5)
        april = project(2024, 4)
        assert may.starting_balance - april.starting_balance == 160000


# =============================================================================
# Missing anchor
# =============================================================================

class TestNoAnchor:
    """Without a cash anchor balances are unavailable, never zero."""

    def test_balances_are_none(self, project):
        p = project(2024, 3, anchors=[])
        assert not p.has_anchor
        assert p.starting_balance is None
        assert p.planned_end_balance is None
        assert p.pace_end_balance is None
        assert p.cash_surplus is None
        assert not p.pace_differs
        # flows are still computed
        assert p.income.actual == 300000

    def test_warning_logged(self, project, caplog):
        with caplog.at_level(logging.WARNING, logger="engine.cashflow"):
            project(2024, 3, anchors=[])
        assert "No cash anchor" in caplog.text

    def test_as_of_before_anchor(self, project):
        p = project(2024, 2, config=ProjectionConfig(as_of_date=date(2024, 2, 10)))
        assert p.current_balance is None
