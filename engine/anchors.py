"""
Anchor resolver — reconstruct a balance as of any date.

An anchor is a dated, known-correct balance. The balance on a later date is the
active anchor (latest anchor on or before the date) plus the signed ledger
transactions strictly after the anchor date and up to the query date.

Scopes:
  None        global cash
  "<goal id>" the balance held in one savings goal
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from core.schema import BalanceAnchor, Transaction
from core.utils import DateLike, as_date

logger = logging.getLogger(__name__)

Scope = Optional[str]


class DuplicateAnchorError(ValueError):
    """Two anchors share a date within the same scope."""

    def __init__(self, duplicates: List[Tuple[Scope, date]]):
        self.duplicates = duplicates
        pretty = ", ".join(f"{scope or 'cash'}@{d.isoformat()}" for scope, d in duplicates)
        super().__init__(f"Duplicate balance anchors for the same date and scope: {pretty}")


def signed_amount(txn: Transaction, scope: Scope = None) -> int:
    """
    Signed effect of ``txn`` on the balance of ``scope`` (0 if out of scope).

    Cash: income and adjustment add, expense and savings subtract. Adjustments
    tagged with a savings goal correct that goal only, never cash.
    Savings goal: savings, income and adjustment tagged with the goal add, an
    expense (withdrawal) tagged with the goal subtracts.
    """
    if scope is None:
        if txn.type == "adjustment" and txn.savings_goal_id is not None:
            return 0
        if txn.type in ("income", "adjustment"):
            return txn.amount_cents
        return -txn.amount_cents

    if txn.savings_goal_id != scope:
        return 0
    if txn.type == "expense":
        return -txn.amount_cents
    return txn.amount_cents


class AnchorSet:
    """
    Validated, immutable collection of balance anchors.

    Raises
    ------
    DuplicateAnchorError
        If two anchors have the same ``(savings_goal_id, date)``.
    """

    def __init__(self, anchors: Iterable[BalanceAnchor] = ()):
        normalized = [
            BalanceAnchor(
                date=as_date(a.date),
                balance_cents=a.balance_cents,
                savings_goal_id=a.savings_goal_id,
                id=a.id,
            )
            for a in anchors
        ]
        counts = Counter((a.savings_goal_id, a.date) for a in normalized)
        duplicates = sorted(
            (key for key, n in counts.items() if n > 1),
            key=lambda k: (k[0] or "", k[1]),
        )
        if duplicates:
            raise DuplicateAnchorError(duplicates)

        by_scope: Dict[Scope, List[BalanceAnchor]] = {}
        for a in normalized:
            by_scope.setdefault(a.savings_goal_id, []).append(a)
        # newest first within each scope
        self._by_scope = {
            scope: tuple(sorted(items, key=lambda a: a.date, reverse=True))
            for scope, items in by_scope.items()
        }

    def __len__(self) -> int:
        return sum(len(v) for v in self._by_scope.values())

    def __iter__(self):
        for items in self._by_scope.values():
            yield from items

    def for_scope(self, scope: Scope) -> Tuple[BalanceAnchor, ...]:
        return self._by_scope.get(scope, ())

    def active(self, scope: Scope, as_of: DateLike) -> Optional[BalanceAnchor]:
        as_of = as_date(as_of)
        for anchor in self.for_scope(scope):
            if anchor.date <= as_of:
                return anchor
        return None

    def earliest_date(self, scope: Scope) -> Optional[date]:
        items = self.for_scope(scope)
        return items[-1].date if items else None


def _as_anchor_set(anchors) -> AnchorSet:
    return anchors if isinstance(anchors, AnchorSet) else AnchorSet(anchors)


def active_anchor(anchors, scope: Scope, as_of: DateLike) -> Optional[BalanceAnchor]:
    """Latest anchor in ``scope`` dated on or before ``as_of``; future anchors are ignored."""
    return _as_anchor_set(anchors).active(scope, as_of)


def earliest_anchor_date(anchors, scope: Scope) -> Optional[date]:
    return _as_anchor_set(anchors).earliest_date(scope)


def balance_as_of(
    anchors,
    transactions: Iterable[Transaction],
    scope: Scope,
    as_of: DateLike,
    *,
    require_anchor: Optional[bool] = None,
) -> Optional[int]:
    """
    Balance of ``scope`` at the end of ``as_of``.

    Parameters
    ----------
    anchors : AnchorSet or iterable of BalanceAnchor
    transactions : iterable of Transaction
        The ledger; treated as a set (no de-duplication is attempted).
    scope : None for global cash, else a savings goal id
    as_of : date-like
    require_anchor : bool, optional
        When True and no anchor is active, returns None. When False, falls back
        to summing every in-scope transaction up to ``as_of``. Defaults to True
        for cash and False for savings goals.

    Returns
    -------
    int or None
    """
    as_of = as_date(as_of)
    if require_anchor is None:
        require_anchor = scope is None

    anchor = active_anchor(anchors, scope, as_of)
    if anchor is None:
        if require_anchor:
            logger.debug("No active anchor for scope %r as of %s", scope, as_of)
            return None
        return sum(
            signed_amount(t, scope) for t in transactions if as_date(t.date) <= as_of
        )

    replay = sum(
        signed_amount(t, scope)
        for t in transactions
        if anchor.date < as_date(t.date) <= as_of
    )
    return anchor.balance_cents + replay
