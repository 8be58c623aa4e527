"""Dashboard figures derived from plain transaction and account lists.

Every function here is pure and synchronous: inputs are never mutated or
assumed sorted, malformed entries are skipped, and empty input produces zeros
or empty lists rather than errors.
"""
from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Literal, Sequence

from finance_flow.core.models import Account, Transaction, TransactionType
from finance_flow.utils import first_of_month, parse_timestamp, shift_months

Window = Literal["month", "year", "all"]

DEFAULT_SUBCATEGORY = "General"


def _is_valid(tx: Transaction) -> bool:
    return (
        isinstance(tx.date, datetime)
        and isinstance(tx.amount, (int, float))
        and math.isfinite(tx.amount)
        and tx.amount >= 0
        and tx.type in (TransactionType.INCOME, TransactionType.EXPENSE)
    )


def _valid(transactions: Iterable[Transaction]) -> List[Transaction]:
    """Usable transactions, with aware dates converted to naive UTC."""
    return [
        tx if tx.date.tzinfo is None else replace(tx, date=parse_timestamp(tx.date))
        for tx in transactions if _is_valid(tx)
    ]


def _now(now: datetime | None) -> datetime:
    return parse_timestamp(now) if now is not None else datetime.now()


def signed_amount(tx: Transaction) -> float:
    return tx.amount if tx.is_income else -tx.amount


def signed_total(transactions: Iterable[Transaction]) -> float:
    return sum((signed_amount(tx) for tx in _valid(transactions)), 0.0)


def totals(transactions: Iterable[Transaction]) -> Dict[str, float]:
    income = expenses = 0.0
    for tx in _valid(transactions):
        if tx.type == TransactionType.INCOME:
            income += tx.amount
        else:
            expenses += tx.amount
    return {"income": income, "expenses": expenses, "balance": income - expenses}


def account_balance(transactions: Iterable[Transaction], account_id: str) -> float:
    return signed_total(tx for tx in transactions if tx.account_id == account_id)


def account_balances(transactions: Iterable[Transaction], accounts: Iterable[Account]) -> Dict[str, float]:
    """Balance per account id; accounts without transactions report 0.0."""
    valid = _valid(transactions)
    return {acc.id: account_balance(valid, acc.id) for acc in accounts}


def period_start(now: datetime, window: Window) -> datetime | None:
    """
    Lower bound of a calendar-relative window ending at ``now``.

    ``month`` and ``year`` subtract one calendar month/year (day clamped to the
    target month's length); ``all`` has no bound.
    """
    if window == "all":
        return None
    if window == "month":
        return shift_months(now, -1)
    if window == "year":
        return shift_months(now, -12)
    raise ValueError(f"Unknown window '{window}'; expected month, year or all")


def filter_by_period(
    transactions: Iterable[Transaction],
    window: Window = "all",
    now: datetime | None = None,
) -> List[Transaction]:
    start = period_start(_now(now), window)
    valid = _valid(transactions)
    if start is None:
        return valid
    return [tx for tx in valid if tx.date >= start]


def filter_by_month(transactions: Iterable[Transaction], year: int, month: int | None = None) -> List[Transaction]:
    """
    Return only those transactions in the given calendar year, or in one
    month of it when ``month`` (1-12) is given.
    """
    return [
        tx for tx in _valid(transactions)
        if tx.date.year == year and (month is None or tx.date.month == month)
    ]


def month_over_month(transactions: Iterable[Transaction], now: datetime | None = None) -> Dict[str, float]:
    """Signed totals of the current and previous calendar month and the change in percent."""
    now = _now(now)
    current_start = first_of_month(now)
    previous_start = shift_months(current_start, -1)

    current = previous = 0.0
    for tx in _valid(transactions):
        if tx.date >= current_start:
            current += signed_amount(tx)
        elif tx.date >= previous_start:
            previous += signed_amount(tx)

    if previous == 0:
        change = 100.0 if current > 0 else 0.0
    else:
        change = (current - previous) / abs(previous) * 100
    return {"current": current, "previous": previous, "percent_change": change}


def category_breakdown(
    transactions: Iterable[Transaction],
    window: Window = "all",
    now: datetime | None = None,
    tx_type: TransactionType | None = None,
) -> List[Dict[str, object]]:
    """
    Totals per (type, category) with a nested sub-category split.

    ``percentage`` is relative to the total of the category's own type in the
    period, so the percentages of one type add up to 100.
    """
    selected = filter_by_period(transactions, window, now)
    if tx_type is not None:
        selected = [tx for tx in selected if tx.type == tx_type]

    type_totals: Dict[TransactionType, float] = defaultdict(float)
    category_totals: Dict[tuple, float] = defaultdict(float)
    sub_totals: Dict[tuple, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for tx in selected:
        kind = TransactionType(tx.type)
        key = (kind, tx.category)
        type_totals[kind] += tx.amount
        category_totals[key] += tx.amount
        sub_totals[key][tx.sub_category or DEFAULT_SUBCATEGORY] += tx.amount

    rows = []
    for (kind, category), total in category_totals.items():
        denominator = type_totals[kind] or 1
        subs = sorted(sub_totals[(kind, category)].items(), key=lambda item: item[1], reverse=True)
        rows.append({
            "category": category,
            "type": kind.value,
            "total": total,
            "percentage": total / denominator * 100,
            "subcategories": [{"name": name, "total": value} for name, value in subs],
        })
    rows.sort(key=lambda row: row["total"], reverse=True)
    return rows


def running_balance_series(
    transactions: Iterable[Transaction],
    window: Window = "all",
    now: datetime | None = None,
) -> List[Dict[str, object]]:
    """
    One point per in-window transaction, oldest first, carrying the cumulative
    signed balance. Transactions before the window seed the starting balance.
    """
    ordered = sorted(_valid(transactions), key=lambda tx: tx.date)
    start = period_start(_now(now), window)

    balance = 0.0
    series = []
    for tx in ordered:
        balance += signed_amount(tx)
        if start is not None and tx.date < start:
            continue
        series.append({"date": tx.date, "balance": balance, "transaction_id": tx.id})
    return series


def dashboard_summary(
    transactions: Sequence[Transaction],
    accounts: Sequence[Account],
    window: Window = "month",
    now: datetime | None = None,
    account_id: str | None = None,
) -> Dict[str, object]:
    """Every dashboard figure in one dictionary."""
    now = _now(now)
    scoped = [tx for tx in transactions if account_id is None or tx.account_id == account_id]
    in_window = filter_by_period(scoped, window, now)
    return {
        "window": window,
        "account_id": account_id,
        "totals": totals(scoped),
        "balances": account_balances(transactions, accounts),
        "period_totals": totals(in_window),
        "comparison": month_over_month(scoped, now),
        "breakdown": category_breakdown(scoped, window, now),
        "series": running_balance_series(scoped, window, now),
    }
