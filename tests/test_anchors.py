"""
Tests for the anchor resolver.

Balances are reconstructed from the latest anchor on or before the query date
plus the signed ledger entries after it.
"""

from datetime import date

import pytest

from core.schema import BalanceAnchor, Transaction
from engine.anchors import (
    AnchorSet,
    DuplicateAnchorError,
    active_anchor,
    balance_as_of,
    earliest_anchor_date,
    signed_amount,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def two_anchors():
    return [
        BalanceAnchor(date(2024, 1, 1), 100000),
        BalanceAnchor(date(2024, 2, 1), 90000),
    ]


@pytest.fixture
def january_ledger():
    return [
        Transaction("t0", date(2024, 1, 1), "expense", 7000),
        Transaction("t1", date(2024, 1, 15), "expense", 2000),
        Transaction("t2", date(2024, 1, 20), "income", 5000),
        Transaction("t3", date(2024, 2, 10), "expense", 1000),
    ]


# =============================================================================
# Sign convention
# =============================================================================

class TestSignedAmount:
    """Tests for how each transaction type moves a balance."""

    def test_cash_signs(self):
        assert signed_amount(Transaction("i", date(2024, 1, 1), "income", 100)) == 100
        assert signed_amount(Transaction("e", date(2024, 1, 1), "expense", 100)) == -100
        assert signed_amount(Transaction("s", date(2024, 1, 1), "savings", 100)) == -100
        assert signed_amount(Transaction("a", date(2024, 1, 1), "adjustment", -250)) == -250

    def test_goal_adjustment_does_not_touch_cash(self):
        txn = Transaction("a", date(2024, 1, 1), "adjustment", 500, savings_goal_id="g1")
        assert signed_amount(txn, None) == 0
        assert signed_amount(txn, "g1") == 500

    def test_goal_scope(self):
        deposit = Transaction("s", date(2024, 1, 1), "savings", 300, savings_goal_id="g1")
        spend = Transaction("e", date(2024, 1, 1), "expense", 100, savings_goal_id="g1")
        other = Transaction("o", date(2024, 1, 1), "savings", 300, savings_goal_id="g2")
        assert signed_amount(deposit, "g1") == 300
        assert signed_amount(spend, "g1") == -100
        assert signed_amount(other, "g1") == 0

    def test_withdrawal_moves_money_back_to_cash(self):
        withdrawal = Transaction("w", date(2024, 1, 1), "savings", -400, savings_goal_id="g1")
        assert signed_amount(withdrawal, None) == 400
        assert signed_amount(withdrawal, "g1") == -400


# =============================================================================
# AnchorSet
# =============================================================================

class TestAnchorSet:
    """Tests for anchor validation and lookup."""

    def test_duplicate_anchor_rejected(self):
        anchors = [
            BalanceAnchor(date(2024, 1, 1), 100),
            BalanceAnchor(date(2024, 1, 1), 200),
        ]
        with pytest.raises(DuplicateAnchorError) as exc:
            AnchorSet(anchors)
        assert exc.value.duplicates == [(None, date(2024, 1, 1))]
        assert isinstance(exc.value, ValueError)

    def test_same_date_in_different_scopes_is_allowed(self):
        anchors = AnchorSet([
            BalanceAnchor(date(2024, 1, 1), 100),
            BalanceAnchor(date(2024, 1, 1), 200, savings_goal_id="g1"),
        ])
        assert len(anchors) == 2

    def test_active_ignores_future_anchors(self, two_anchors):
        assert active_anchor(two_anchors, None, date(2024, 1, 20)).balance_cents == 100000
        assert active_anchor(two_anchors, None, date(2024, 2, 1)).balance_cents == 90000
        assert active_anchor(two_anchors, None, date(2023, 12, 31)) is None

    def test_earliest_date(self, two_anchors):
        assert earliest_anchor_date(two_anchors, None) == date(2024, 1, 1)
        assert earliest_anchor_date(two_anchors, "g1") is None

    def test_string_dates_are_normalized(self):
        anchors = AnchorSet([BalanceAnchor("2024-01-01", 100)])
        assert anchors.active(None, "2024-01-05").date == date(2024, 1, 1)


# =============================================================================
# balance_as_of
# =============================================================================

class TestBalanceAsOf:
    """Tests for balance reconstruction."""

    def test_anchor_plus_later_expense(self):
        anchors = [BalanceAnchor(date(2024, 1, 1), 100000)]
        ledger = [Transaction("t1", date(2024, 1, 15), "expense", 2000)]
        assert balance_as_of(anchors, ledger, None, date(2024, 1, 31)) == 98000

    def test_transaction_on_anchor_date_is_already_included(self, january_ledger):
        anchors = [BalanceAnchor(date(2024, 1, 1), 100000)]
        assert balance_as_of(anchors, january_ledger, None, date(2024, 1, 1)) == 100000

    def test_replays_up_to_and_including_query_date(self, january_ledger):
        anchors = [BalanceAnchor(date(2024, 1, 1), 100000)]
        assert balance_as_of(anchors, january_ledger, None, date(2024, 1, 15)) == 98000
        assert balance_as_of(anchors, january_ledger, None, date(2024, 1, 20)) == 103000

    def test_latest_anchor_wins(self, two_anchors, january_ledger):
        assert balance_as_of(two_anchors, january_ledger, None, date(2024, 2, 15)) == 89000

    def test_repeated_calls_agree(self, two_anchors, january_ledger):
        first = balance_as_of(two_anchors, january_ledger, None, date(2024, 2, 15))
        second = balance_as_of(two_anchors, january_ledger, None, date(2024, 2, 15))
        assert first == second == 89000
        assert len(january_ledger) == 4

    def test_no_anchor_is_none_for_cash(self, january_ledger):
        assert balance_as_of([], january_ledger, None, date(2024, 1, 31)) is None

    def test_goal_without_anchor_sums_ledger(self):
        ledger = [
            Transaction("s1", date(2024, 1, 5), "savings", 20000, savings_goal_id="g1"),
            Transaction("s2", date(2024, 2, 5), "savings", 20000, savings_goal_id="g1"),
            Transaction("w1", date(2024, 2, 20), "savings", -5000, savings_goal_id="g1"),
        ]
        assert balance_as_of([], ledger, "g1", date(2024, 2, 29)) == 35000
        assert balance_as_of([], ledger, "g1", date(2024, 2, 29), require_anchor=True) is None

    def test_goal_anchor_scoped_to_goal(self):
        anchors = [
            BalanceAnchor(date(2024, 1, 1), 100000),
            BalanceAnchor(date(2024, 1, 1), 50000, savings_goal_id="g1"),
        ]
        ledger = [Transaction("s1", date(2024, 1, 5), "savings", 20000, savings_goal_id="g1")]
        assert balance_as_of(anchors, ledger, "g1", date(2024, 1, 31)) == 70000
        assert balance_as_of(anchors, ledger, None, date(2024, 1, 31)) == 80000

    def test_duplicate_anchors_raise_through_balance(self):
        anchors = [BalanceAnchor(date(2024, 1, 1), 1), BalanceAnchor(date(2024, 1, 1), 2)]
        with pytest.raises(DuplicateAnchorError):
            balance_as_of(anchors, [], None, date(2024, 1, 31))
