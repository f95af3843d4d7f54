"""Shared test fixtures for the projection engine tests."""
from datetime import date

import pytest

from core.config import ProjectionConfig
from core.schema import (
    BalanceAnchor,
    Category,
    PlanSnapshot,
    Rule,
    SavingsGoal,
    Scenario,
    Transaction,
)


@pytest.fixture
def make_rule():
    """Factory for rules with sensible defaults (monthly expense of 100.00)."""
    def _make(**overrides) -> Rule:
        fields = {
            "id": "rule-1",
            "scenario_id": "base",
            "kind": "expense",
            "amount_cents": 10000,
            "cadence": "monthly",
        }
        fields.update(overrides)
        return Rule(**fields)
    return _make


@pytest.fixture
def march_config():
    """Mid-March 2024 as the as-of date."""
    return ProjectionConfig(as_of_date=date(2024, 3, 15))


@pytest.fixture
def base_rules():
    """Default scenario: salary, rent, groceries budget and an emergency fund contribution."""
    return [
        Rule("salary", "base", "income", 300000, "monthly", description="Salary", day_of_month=1),
        Rule("rent", "base", "expense", 120000, "monthly", category_id="rent",
             description="Rent", day_of_month=3),
        Rule("groceries", "base", "budget", 40000, "monthly", category_id="groceries"),
        Rule("ef", "base", "savings", 20000, "monthly", savings_goal_id="g1",
             description="Emergency fund", day_of_month=5),
    ]


@pytest.fixture
def alt_rules():
    """A raise scenario: same plan with a higher salary."""
    return [
        Rule("alt-salary", "alt", "income", 350000, "monthly", description="Salary", day_of_month=1),
        Rule("alt-rent", "alt", "expense", 120000, "monthly", category_id="rent",
             description="Rent", day_of_month=3),
        Rule("alt-groceries", "alt", "budget", 40000, "monthly", category_id="groceries"),
        Rule("alt-ef", "alt", "savings", 20000, "monthly", savings_goal_id="g1",
             description="Emergency fund", day_of_month=5),
    ]


@pytest.fixture
def march_transactions():
    """First half of March 2024."""
    return [
        Transaction("t1", date(2024, 3, 1), "income", 300000, description="Salary"),
        Transaction("t2", date(2024, 3, 3), "expense", 120000, category_id="rent"),
        Transaction("t3", date(2024, 3, 5), "savings", 20000, savings_goal_id="g1"),
        Transaction("t4", date(2024, 3, 5), "expense", 15000, category_id="groceries"),
        Transaction("t5", date(2024, 3, 10), "expense", 12000, category_id="groceries"),
    ]


@pytest.fixture
def base_anchors():
    """Cash and emergency fund balances at the end of February 2024."""
    return [
        BalanceAnchor(date(2024, 2, 29), 500000, id="a-cash"),
        BalanceAnchor(date(2024, 2, 29), 100000, savings_goal_id="g1", id="a-g1"),
    ]


@pytest.fixture
def emergency_fund():
    return SavingsGoal("g1", "Emergency fund", 500000, deadline=date(2025, 12, 31))


@pytest.fixture
def snapshot(base_rules, alt_rules, march_transactions, base_anchors, emergency_fund):
    return PlanSnapshot(
        scenarios=(
            Scenario("base", "Current plan", is_default=True),
            Scenario("alt", "Pay raise"),
        ),
        rules=tuple(base_rules + alt_rules),
        transactions=tuple(march_transactions),
        anchors=tuple(base_anchors),
        savings_goals=(emergency_fund,),
        categories=(
            Category("rent", "Rent"),
            Category("groceries", "Groceries"),
            Category("old", "Old stuff", is_archived=True),
        ),
    )
