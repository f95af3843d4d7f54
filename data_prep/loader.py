"""
Loading plan data into a PlanSnapshot.

The JSON export uses camelCase keys and splits rules into ``budgetRules`` and
``forecastRules``. Each record is parsed by a pydantic model (bounds are checked
there) and then converted to the frozen records in core.schema.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Annotated, Any, List, Mapping, Optional, Union

import pandas as pd
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.schema import (
    BalanceAnchor,
    Category,
    ForecastEvent,
    InterestRateChange,
    PlanSnapshot,
    Rule,
    SavingsGoal,
    Scenario,
    Transaction,
)
from core.utils import as_date, require_columns

from .validators import validate_snapshot

logger = logging.getLogger(__name__)

TRANSACTION_CSV_COLUMNS = ("id", "date", "type", "amount_cents")


def _optional_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    return as_date(value)


IsoDate = Annotated[date, BeforeValidator(as_date)]
OptionalIsoDate = Annotated[Optional[date], BeforeValidator(_optional_date)]

_CADENCE_PATTERN = r"^(weekly|fortnightly|monthly|quarterly|yearly)$"


class _ExportModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScenarioIn(_ExportModel):
    id: str = Field(min_length=1)
    name: str = Field(default="", max_length=100)
    is_default: bool = False


class CategoryIn(_ExportModel):
    id: str = Field(min_length=1)
    name: str = Field(default="", max_length=100)
    is_archived: bool = False


class BudgetRuleIn(_ExportModel):
    id: str = Field(min_length=1)
    scenario_id: str = Field(min_length=1)
    category_id: str = Field(min_length=1)
    amount_cents: int = Field(ge=0)
    cadence: str = Field(pattern=_CADENCE_PATTERN)
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    month_of_quarter: Optional[int] = Field(default=None, ge=0, le=2)
    start_date: OptionalIsoDate = None
    end_date: OptionalIsoDate = None
    lineage_id: Optional[str] = None

    def to_rule(self) -> Rule:
        return Rule(
            id=self.id,
            scenario_id=self.scenario_id,
            kind="budget",
            amount_cents=self.amount_cents,
            cadence=self.cadence,
            category_id=self.category_id,
            day_of_week=self.day_of_week,
            day_of_month=self.day_of_month,
            month_of_quarter=self.month_of_quarter,
            start_date=self.start_date,
            end_date=self.end_date,
            lineage_id=self.lineage_id,
        )


class ForecastRuleIn(_ExportModel):
    id: str = Field(min_length=1)
    scenario_id: str = Field(min_length=1)
    type: str = Field(pattern=r"^(income|expense|savings)$")
    amount_cents: int = Field(ge=0)
    cadence: str = Field(pattern=_CADENCE_PATTERN)
    description: str = Field(default="", max_length=500)
    category_id: Optional[str] = None
    savings_goal_id: Optional[str] = None
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    # zero-based in the export (0 = January)
    month_of_year: Optional[int] = Field(default=None, ge=0, le=11)
    month_of_quarter: Optional[int] = Field(default=None, ge=0, le=2)
    start_date: OptionalIsoDate = None
    end_date: OptionalIsoDate = None
    excluded_dates: List[IsoDate] = Field(default_factory=list)
    lineage_id: Optional[str] = None

    def to_rule(self) -> Rule:
        return Rule(
            id=self.id,
            scenario_id=self.scenario_id,
            kind=self.type,
            amount_cents=self.amount_cents,
            cadence=self.cadence,
            category_id=self.category_id,
            savings_goal_id=self.savings_goal_id,
            description=self.description,
            day_of_week=self.day_of_week,
            day_of_month=self.day_of_month,
            month_of_quarter=self.month_of_quarter,
            month_of_year=None if self.month_of_year is None else self.month_of_year + 1,
            start_date=self.start_date,
            end_date=self.end_date,
            lineage_id=self.lineage_id,
            excluded_dates=tuple(sorted(set(self.excluded_dates))),
        )


class ForecastEventIn(_ExportModel):
    id: str = Field(min_length=1)
    scenario_id: str = Field(min_length=1)
    type: str = Field(pattern=r"^(income|expense|savings)$")
    date: IsoDate
    amount_cents: int = Field(ge=0)
    description: str = ""
    category_id: Optional[str] = None
    savings_goal_id: Optional[str] = None

    def to_event(self) -> ForecastEvent:
        return ForecastEvent(
            id=self.id,
            scenario_id=self.scenario_id,
            type=self.type,
            date=self.date,
            amount_cents=self.amount_cents,
            description=self.description,
            category_id=self.category_id,
            savings_goal_id=self.savings_goal_id,
        )


class TransactionIn(_ExportModel):
    id: str = Field(min_length=1)
    type: str = Field(pattern=r"^(income|expense|savings|adjustment)$")
    date: IsoDate
    # negative only for savings withdrawals
    amount_cents: int
    description: str = Field(default="", max_length=500)
    category_id: Optional[str] = None
    savings_goal_id: Optional[str] = None

    def to_transaction(self) -> Transaction:
        return Transaction(
            id=self.id,
            date=self.date,
            type=self.type,
            amount_cents=self.amount_cents,
            category_id=self.category_id,
            savings_goal_id=self.savings_goal_id,
            description=self.description,
        )


class InterestRateChangeIn(_ExportModel):
    effective_date: IsoDate
    annual_rate: float = Field(ge=0, le=100)


class SavingsGoalIn(_ExportModel):
    id: str = Field(min_length=1)
    name: str = Field(default="", max_length=100)
    target_amount_cents: int = Field(ge=0)
    deadline: OptionalIsoDate = None
    annual_interest_rate: Optional[float] = Field(default=None, ge=0, le=100)
    interest_rate_schedule: List[InterestRateChangeIn] = Field(default_factory=list)

    def to_goal(self) -> SavingsGoal:
        schedule = tuple(
            sorted(
                (InterestRateChange(c.effective_date, c.annual_rate) for c in self.interest_rate_schedule),
                key=lambda c: c.effective_date,
            )
        )
        return SavingsGoal(
            id=self.id,
            name=self.name,
            target_amount_cents=self.target_amount_cents,
            deadline=self.deadline,
            annual_interest_rate=self.annual_interest_rate,
            interest_rate_schedule=schedule,
        )


class BalanceAnchorIn(_ExportModel):
    id: Optional[str] = None
    date: IsoDate
    balance_cents: int

    def to_anchor(self) -> BalanceAnchor:
        return BalanceAnchor(date=self.date, balance_cents=self.balance_cents, id=self.id)


class SavingsAnchorIn(_ExportModel):
    id: Optional[str] = None
    savings_goal_id: str = Field(min_length=1)
    date: IsoDate
    balance_cents: int = Field(ge=0)

    def to_anchor(self) -> BalanceAnchor:
        return BalanceAnchor(
            date=self.date,
            balance_cents=self.balance_cents,
            savings_goal_id=self.savings_goal_id,
            id=self.id,
        )


class BudgetDataIn(_ExportModel):
    """Top level of a JSON export."""
    version: Optional[int] = Field(default=None, ge=1)
    scenarios: List[ScenarioIn] = Field(default_factory=list)
    categories: List[CategoryIn] = Field(default_factory=list)
    transactions: List[TransactionIn] = Field(default_factory=list)
    budget_rules: List[BudgetRuleIn] = Field(default_factory=list)
    forecast_rules: List[ForecastRuleIn] = Field(default_factory=list)
    forecast_events: List[ForecastEventIn] = Field(default_factory=list)
    savings_goals: List[SavingsGoalIn] = Field(default_factory=list)
    balance_anchors: List[BalanceAnchorIn] = Field(default_factory=list)
    savings_anchors: List[SavingsAnchorIn] = Field(default_factory=list)
    active_scenario_id: Optional[str] = None

    def to_snapshot(self) -> PlanSnapshot:
        rules = [r.to_rule() for r in self.budget_rules] + [r.to_rule() for r in self.forecast_rules]
        anchors = [a.to_anchor() for a in self.balance_anchors] + [
            a.to_anchor() for a in self.savings_anchors
        ]
        return PlanSnapshot(
            scenarios=tuple(Scenario(s.id, s.name, s.is_default) for s in self.scenarios),
            rules=tuple(rules),
            events=tuple(e.to_event() for e in self.forecast_events),
            transactions=tuple(t.to_transaction() for t in self.transactions),
            anchors=tuple(anchors),
            savings_goals=tuple(g.to_goal() for g in self.savings_goals),
            categories=tuple(Category(c.id, c.name, c.is_archived) for c in self.categories),
        )


def snapshot_from_dict(data: Mapping[str, Any]) -> PlanSnapshot:
    """
    Parse an export mapping into a PlanSnapshot.

    Raises
    ------
    pydantic.ValidationError
        (a ValueError subclass) when a record is malformed or out of bounds.
    """
    parsed = BudgetDataIn.model_validate(data)
    withdrawals = sum(1 for t in parsed.transactions if t.amount_cents < 0)
    if withdrawals:
        logger.info("Loaded %d negative-amount transactions (savings withdrawals)", withdrawals)
    snapshot = parsed.to_snapshot()
    check = validate_snapshot(snapshot)
    for message in check.errors + check.warnings:
        logger.warning(message)
    logger.info(
        "Loaded snapshot: %d scenarios, %d rules, %d transactions, %d anchors, %d goals",
        len(snapshot.scenarios), len(snapshot.rules), len(snapshot.transactions),
        len(snapshot.anchors), len(snapshot.savings_goals),
    )
    return snapshot


def load_snapshot(path: Union[str, Path]) -> PlanSnapshot:
    """Read a JSON export from disk."""
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    return snapshot_from_dict(data)


def load_transactions_csv(path: Union[str, Path], *, low_memory: bool = False) -> List[Transaction]:
    """
    Load a ledger CSV with at least id, date, type and amount_cents columns.

    Optional columns: category_id, savings_goal_id, description. Blank cells become None.
    """
    df = pd.read_csv(path, low_memory=low_memory, dtype={"id": str})
    require_columns(df, TRANSACTION_CSV_COLUMNS)
    df = df.astype(object).where(df.notna(), None)

    out = []
    for row in df.to_dict(orient="records"):
        txn = TransactionIn(
            id=str(row["id"]),
            type=row["type"],
            date=row["date"],
            amount_cents=int(row["amount_cents"]),
            description=row.get("description") or "",
            category_id=row.get("category_id"),
            savings_goal_id=row.get("savings_goal_id"),
        )
        out.append(txn.to_transaction())
    logger.debug("Loaded %d transactions from %s", len(out), path)
    return out
