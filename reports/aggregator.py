"""
Roll ledger transactions and dated forecasts into per-month report tables.

One rule governs every table here: forecasts are only counted when dated
strictly after the as-of date, so a month never double counts money that has
already landed as an actual. Interest credits are the exception; they are
earned money and are reported as actuals.

All tables are pandas DataFrames keyed by a "YYYY-MM" month column.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from core.schema import Category, Forecast, Rule, SavingsGoal, Transaction
from core.utils import DateLike, as_date, month_bounds, month_key, months_in_range

from engine.anchors import balance_as_of
from engine.cadence import count_occurrences
from engine.expansion import effective_window, expand_budgets, to_monthly_equivalent

MONTH_LABELS: Tuple[str, ...] = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

TRANSACTION_COLUMNS: Tuple[str, ...] = (
    "id", "date", "type", "amount_cents", "category_id", "savings_goal_id",
)
FORECAST_COLUMNS: Tuple[str, ...] = (
    "date", "type", "amount_cents", "source_id", "source_type", "category_id", "savings_goal_id",
)


def _records_frame(records: Iterable, columns: Sequence[str]) -> pd.DataFrame:
    rows = [{c: getattr(r, c) for c in columns} for r in records]
    df = pd.DataFrame(rows, columns=list(columns))
    df["date"] = pd.to_datetime(df["date"])
    df["amount_cents"] = df["amount_cents"].astype("int64")
    df["month"] = df["date"].dt.strftime("%Y-%m")
    return df


def transactions_frame(transactions: Iterable[Transaction], start: DateLike, end: DateLike) -> pd.DataFrame:
    """Transactions dated within ``[start, end]`` as a frame with a ``month`` column."""
    df = _records_frame(transactions, TRANSACTION_COLUMNS)
    mask = (df["date"] >= pd.Timestamp(as_date(start))) & (df["date"] <= pd.Timestamp(as_date(end)))
    return df.loc[mask].reset_index(drop=True)


def forecasts_frame(forecasts: Iterable[Forecast], start: DateLike, end: DateLike) -> pd.DataFrame:
    df = _records_frame(forecasts, FORECAST_COLUMNS)
    mask = (df["date"] >= pd.Timestamp(as_date(start))) & (df["date"] <= pd.Timestamp(as_date(end)))
    return df.loc[mask].reset_index(drop=True)


def _future(df: pd.DataFrame, as_of: date) -> pd.DataFrame:
    return df.loc[df["date"] > pd.Timestamp(as_of)]


def _month_keys(start: DateLike, end: DateLike) -> List[str]:
    return [month_key(m) for m in months_in_range(as_date(start), as_date(end))]


def _group_sum(df: pd.DataFrame, keys: List[str], name: str) -> pd.Series:
    if df.empty:
        index = pd.MultiIndex.from_arrays([[] for _ in keys], names=keys)
        return pd.Series([], index=index, dtype="int64", name=name)
    return df.groupby(keys)["amount_cents"].sum().rename(name)


def _sum_by_month(df: pd.DataFrame, months: List[str]) -> pd.Series:
    if df.empty:
        return pd.Series(0, index=months, dtype="int64")
    return df.groupby("month")["amount_cents"].sum().reindex(months, fill_value=0).astype("int64")


def monthly_net_flow(
    transactions: Iterable[Transaction],
    forecasts: Iterable[Forecast],
    start: DateLike,
    end: DateLike,
    *,
    as_of: DateLike,
) -> pd.DataFrame:
    """
    Per-month income / expenses / savings, actual vs forecast.

    Returns
    -------
    pd.DataFrame
        month, income_actual, income_forecast, expenses_actual,
        expenses_forecast, savings_actual, savings_forecast, interest,
        net_actual, net_forecast, surplus, cumulative_surplus
    """
    as_of = as_date(as_of)
    months = _month_keys(start, end)
    txns = transactions_frame(transactions, start, end)
    fcst = forecasts_frame(forecasts, start, end)
    contributions = _future(fcst.loc[fcst["source_type"] != "interest"], as_of)

    out = pd.DataFrame({"month": months})
    for label, kind in (("income", "income"), ("expenses", "expense"), ("savings", "savings")):
        out[f"{label}_actual"] = _sum_by_month(txns.loc[txns["type"] == kind], months).values
        out[f"{label}_forecast"] = _sum_by_month(contributions.loc[contributions["type"] == kind], months).values
    out["interest"] = _sum_by_month(fcst.loc[fcst["source_type"] == "interest"], months).values

    out["net_actual"] = out["income_actual"] - out["expenses_actual"] - out["savings_actual"]
    out["net_forecast"] = out["income_forecast"] - out["expenses_forecast"] - out["savings_forecast"]
    out["surplus"] = out["net_actual"] + out["net_forecast"]
    out["cumulative_surplus"] = out["surplus"].cumsum()
    return out


def monthly_spending_by_category(
    transactions: Iterable[Transaction],
    forecasts: Iterable[Forecast],
    start: DateLike,
    end: DateLike,
    *,
    as_of: DateLike,
    uncategorized_key: str = "uncategorized",
) -> pd.DataFrame:
    """
    Expense actuals and future expense forecasts per month and category.

    Returns a long table: month, category_id, actual, forecast. Items without a
    category land in ``uncategorized_key``.
    """
    as_of = as_date(as_of)
    txns = transactions_frame(transactions, start, end)
    fcst = _future(forecasts_frame(forecasts, start, end), as_of)

    def _grouped(df: pd.DataFrame, name: str) -> pd.Series:
        df = df.loc[df["type"] == "expense"].copy()
        df["category_id"] = df["category_id"].fillna(uncategorized_key)
        return _group_sum(df, ["month", "category_id"], name)

    actual = _grouped(txns, "actual")
    forecast = _grouped(fcst.loc[fcst["source_type"] != "interest"], "forecast")
    out = pd.concat([actual, forecast], axis=1).fillna(0).astype("int64").reset_index()
    if out.empty:
        return pd.DataFrame(columns=["month", "category_id", "actual", "forecast"])
    out.columns = ["month", "category_id", "actual", "forecast"]
    return out.sort_values(["month", "category_id"]).reset_index(drop=True)


def budget_for_month(amount_cents: int, cadence: str, year: int, month: int) -> int:
    """
    Budget falling in one calendar month.

    Weekly/fortnightly count ``ceil(days / 7|14)`` occurrences; quarterly only
    lands in quarter-start months (Jan, Apr, Jul, Oct) and yearly only in
    January.
    """
    if cadence in ("weekly", "fortnightly", "monthly"):
        return amount_cents * count_occurrences(cadence, *month_bounds(year, month))
    if cadence == "quarterly":
        return amount_cents if (month - 1) % 3 == 0 else 0
    if cadence == "yearly":
        return amount_cents if month == 1 else 0
    raise ValueError(f"Unknown cadence {cadence!r}")


def monthly_budget_comparison(
    transactions: Iterable[Transaction],
    forecasts: Iterable[Forecast],
    budget_rules: Iterable[Rule],
    start: DateLike,
    end: DateLike,
    *,
    as_of: DateLike,
) -> pd.DataFrame:
    """
    Budgeted vs spent per month and category.

    ``actual`` is categorized expense transactions plus categorized expense
    forecasts dated after ``as_of``. Rows with neither budget nor spend are
    dropped.
    """
    as_of = as_date(as_of)
    months = months_in_range(as_date(start), as_date(end))
    txns = transactions_frame(transactions, start, end)
    fcst = _future(forecasts_frame(forecasts, start, end), as_of)

    spent = pd.concat([
        txns.loc[(txns["type"] == "expense") & txns["category_id"].notna(), ["month", "category_id", "amount_cents"]],
        fcst.loc[(fcst["type"] == "expense") & fcst["category_id"].notna(), ["month", "category_id", "amount_cents"]],
    ])
    actual = _group_sum(spent, ["month", "category_id"], "actual")

    budget_rows = []
    for rule in budget_rules:
        if not rule.is_budget:
            continue
        for m in months:
            first, last = month_bounds(m.year, m.month)
            if effective_window(rule, first, last) is None:
                continue
            budget_rows.append({
                "month": month_key(m),
                "category_id": rule.category_id,
                "amount_cents": budget_for_month(rule.amount_cents, rule.cadence, m.year, m.month),
            })
    budgeted = _group_sum(
        pd.DataFrame(budget_rows, columns=["month", "category_id", "amount_cents"]),
        ["month", "category_id"],
        "budgeted",
    )

    out = pd.concat([budgeted, actual], axis=1).fillna(0).astype("int64").reset_index()
    if out.empty:
        return pd.DataFrame(columns=["month", "category_id", "budgeted", "actual"])
    out.columns = ["month", "category_id", "budgeted", "actual"]
    out = out.loc[(out["budgeted"] > 0) | (out["actual"] > 0)]
    return out.sort_values(["month", "category_id"]).reset_index(drop=True)


def budget_comparison(
    transactions: Iterable[Transaction],
    budget_rules: Iterable[Rule],
    start: DateLike,
    end: DateLike,
    *,
    categories: Optional[Iterable[Category]] = None,
) -> pd.DataFrame:
    """
    Whole-range budgeted vs actual per category, most over budget first.

    ``variance = budgeted - actual`` (positive = under budget). When
    ``categories`` is given, archived categories are left out and names are
    filled in.
    """
    budgeted = expand_budgets(budget_rules, start, end)
    txns = transactions_frame(transactions, start, end)
    spent = (
        txns.loc[(txns["type"] == "expense") & txns["category_id"].notna()]
        .groupby("category_id")["amount_cents"].sum()
        .to_dict()
    )

    if categories is not None:
        names = {c.id: c.name for c in categories if not c.is_archived}
    else:
        names = {cid: cid for cid in set(budgeted) | set(spent)}

    rows = []
    for category_id, name in names.items():
        b = int(budgeted.get(category_id, 0))
        a = int(spent.get(category_id, 0))
        if b > 0 or a > 0:
            rows.append({
                "category_id": category_id,
                "category_name": name,
                "budgeted": b,
                "actual": a,
                "variance": b - a,
            })
    out = pd.DataFrame(rows, columns=["category_id", "category_name", "budgeted", "actual", "variance"])
    return out.sort_values(["variance", "category_id"]).reset_index(drop=True)


def multi_period_summary(
    transactions: Iterable[Transaction],
    forecasts: Iterable[Forecast],
    budget_rules: Iterable[Rule],
    start: DateLike,
    end: DateLike,
    *,
    as_of: DateLike,
) -> Tuple[pd.DataFrame, Dict[str, int]]:
    """
    Month-by-month surplus grid for dashboards spanning many months.

    Returns
    -------
    (months, summary)
        months: one row per month with income, expenses, savings (actual plus
        future forecast), surplus, is_current_month / is_future / is_past,
        total_budget (fixed forecasts + monthly-equivalent variable budgets)
        and budget_diff (total_budget - actual expenses).
        summary: total_surplus, months_with_surplus, months_with_shortfall.
    """
    as_of = as_date(as_of)
    budget_rules = [r for r in budget_rules if r.is_budget]
    month_starts = months_in_range(as_date(start), as_date(end))
    months = [month_key(m) for m in month_starts]

    txns = transactions_frame(transactions, start, end)
    fcst = forecasts_frame(forecasts, start, end)
    fcst = fcst.loc[fcst["source_type"] != "interest"]
    future = _future(fcst, as_of)

    out = pd.DataFrame({"month": months})
    out["year"] = [m.year for m in month_starts]
    out["month_index"] = [m.month for m in month_starts]
    out["label"] = [MONTH_LABELS[m.month - 1] for m in month_starts]
    out["short_label"] = out["label"].str[:3]

    expenses_actual = _sum_by_month(txns.loc[txns["type"] == "expense"], months).values
    for label, kind in (("income", "income"), ("expenses", "expense"), ("savings", "savings")):
        out[label] = (
            _sum_by_month(txns.loc[txns["type"] == kind], months).values
            + _sum_by_month(future.loc[future["type"] == kind], months).values
        )
    out["surplus"] = out["income"] - out["expenses"] - out["savings"]

    today_key = month_key(as_of)
    out["is_current_month"] = out["month"] == today_key
    out["is_future"] = [m > as_of for m in month_starts]
    out["is_past"] = [month_bounds(m.year, m.month)[1] < as_of for m in month_starts]

    fixed = _sum_by_month(fcst.loc[fcst["type"] == "expense"], months).values
    variable = []
    for m in month_starts:
        first, last = month_bounds(m.year, m.month)
        variable.append(sum(
            to_monthly_equivalent(r.amount_cents, r.cadence)
            for r in budget_rules
            if effective_window(r, first, last) is not None
        ))
    out["total_budget"] = fixed + pd.Series(variable, dtype="int64").values
    out["budget_diff"] = out["total_budget"] - expenses_actual

    summary = {
        "total_surplus": int(out["surplus"].sum()),
        "months_with_surplus": int((out["surplus"] > 0).sum()),
        "months_with_shortfall": int((out["surplus"] < 0).sum()),
    }
    return out, summary


def monthly_savings(
    transactions: Iterable[Transaction],
    forecasts: Iterable[Forecast],
    start: DateLike,
    end: DateLike,
    *,
    as_of: DateLike,
    goal_id: Optional[str] = None,
) -> pd.DataFrame:
    """
    Savings actual (transactions + interest) vs future contributions per month,
    optionally for a single goal, with running cumulative totals.
    """
    as_of = as_date(as_of)
    months = _month_keys(start, end)
    txns = transactions_frame(transactions, start, end)
    fcst = forecasts_frame(forecasts, start, end)
    txns = txns.loc[txns["type"] == "savings"]
    fcst = fcst.loc[fcst["type"] == "savings"]
    if goal_id is not None:
        txns = txns.loc[txns["savings_goal_id"] == goal_id]
        fcst = fcst.loc[fcst["savings_goal_id"] == goal_id]

    interest = fcst.loc[fcst["source_type"] == "interest"]
    contributions = _future(fcst.loc[fcst["source_type"] != "interest"], as_of)

    out = pd.DataFrame({"month": months})
    out["actual"] = _sum_by_month(txns, months).values + _sum_by_month(interest, months).values
    out["forecast"] = _sum_by_month(contributions, months).values
    out["cumulative_actual"] = out["actual"].cumsum()
    out["cumulative_forecast"] = out["forecast"].cumsum()
    return out


@dataclass(frozen=True)
class GoalSavings:
    goal_id: str
    goal_name: str
    target_amount_cents: int
    current_balance: int
    starting_balance: int
    deadline: Optional[date]
    annual_interest_rate: Optional[float]
    monthly: pd.DataFrame


def savings_by_goal(
    goals: Iterable[SavingsGoal],
    transactions: Sequence[Transaction],
    forecasts: Sequence[Forecast],
    start: DateLike,
    end: DateLike,
    *,
    as_of: DateLike,
    anchors=(),
) -> List[GoalSavings]:
    """
    Per-goal monthly savings plus the goal balance now and at the range start.

    Balances come from the anchor resolver with the anchor optional, so a goal
    with no anchor is the sum of its ledger.
    """
    as_of, start = as_date(as_of), as_date(start)
    out = []
    for goal in goals:
        current = balance_as_of(anchors, transactions, goal.id, as_of, require_anchor=False)
        starting = balance_as_of(
            anchors, transactions, goal.id, start - timedelta(days=1), require_anchor=False
        )
        out.append(GoalSavings(
            goal_id=goal.id,
            goal_name=goal.name,
            target_amount_cents=goal.target_amount_cents,
            current_balance=current,
            starting_balance=starting,
            deadline=goal.deadline,
            annual_interest_rate=goal.annual_interest_rate,
            monthly=monthly_savings(transactions, forecasts, start, end, as_of=as_of, goal_id=goal.id),
        ))
    return out
