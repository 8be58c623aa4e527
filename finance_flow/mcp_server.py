from __future__ import annotations

import anyio
from mcp.server.fastmcp import FastMCP

from datetime import date
from pathlib import Path

from finance_flow.ai.advice import summarize_advice
from finance_flow.categorization import build_categorizer
from finance_flow.config import load_config
from finance_flow.core.aggregation import (
    category_breakdown,
    dashboard_summary as build_dashboard,
    filter_by_period,
)
from finance_flow.core.models import TransactionType
from finance_flow.stores.json_store import JsonStore

server = FastMCP(name="FinanceFlow", instructions="Expose FinanceFlow budgets and categorization as MCP tools")


def _open_store(data_path: str) -> JsonStore:
    if not Path(data_path).exists():
        raise FileNotFoundError(f"Data file not found: {data_path}")
    return JsonStore(data_path)


def _parse_day(label: str, value: str | None) -> date | None:
    try:
        return date.fromisoformat(value) if value else None
    except ValueError as exc:
        raise ValueError(f"Invalid {label}: {value}") from exc


@server.tool(
    name="categorize_description",
    description="Suggest a category, icon and confidence for a transaction description",
)
async def categorize_description(
    description: str,
    tx_type: str = "EXPENSE",
    config_path: str | None = None,
) -> dict:
    categorizer = build_categorizer(load_config(config_path))
    result = await categorizer.categorize(description, tx_type)
    return {
        "category": result.category,
        "subCategory": result.sub_category,
        "icon": result.icon,
        "confidence": result.confidence,
    }


@server.tool(name="get_transactions", description="Fetch transactions from a FinanceFlow data file")
async def get_transactions(
    data_path: str,
    start_date: str | None = None,
    end_date: str | None = None,
    account_id: str | None = None,
) -> list[dict]:
    """Return transactions from ``data_path``, newest first.

    Parameters
    ----------
    data_path:
        Path to the JSON data file.
    start_date, end_date:
        Optional ISO formatted date strings bounding the query (inclusive).
    account_id:
        Restrict the result to one account.
    """

    start = _parse_day("start_date", start_date)
    end = _parse_day("end_date", end_date)
    if start and end and start > end:
        raise ValueError("start_date must be on or before end_date")
    store = _open_store(data_path)

    def _run() -> list[dict]:
        txs = store.load_transactions()
        if account_id:
            txs = [t for t in txs if t.account_id == account_id]
        if start:
            txs = [t for t in txs if t.date.date() >= start]
        if end:
            txs = [t for t in txs if t.date.date() <= end]
        txs.sort(key=lambda t: t.date, reverse=True)
        return [t.to_dict() for t in txs]

    return await anyio.to_thread.run_sync(_run)


@server.tool(name="dashboard_summary", description="Totals, balances, monthly comparison and balance series")
async def dashboard_summary(
    data_path: str,
    window: str = "month",
    account_id: str | None = None,
) -> dict:
    if window not in ("month", "year", "all"):
        raise ValueError("window must be one of: month, year, all")
    store = _open_store(data_path)

    def _run() -> dict:
        data = build_dashboard(store.load_transactions(), store.load_accounts(), window=window, account_id=account_id)
        data["series"] = [{**point, "date": point["date"].isoformat()} for point in data["series"]]
        return data

    return await anyio.to_thread.run_sync(_run)


@server.tool(name="category_breakdown", description="Spend or income per category with sub-category totals")
async def category_breakdown_tool(
    data_path: str,
    window: str = "all",
    tx_type: str | None = None,
) -> list[dict]:
    if window not in ("month", "year", "all"):
        raise ValueError("window must be one of: month, year, all")
    kind = TransactionType.parse(tx_type) if tx_type else None
    store = _open_store(data_path)

    def _run() -> list[dict]:
        return category_breakdown(filter_by_period(store.load_transactions(), window), tx_type=kind)

    return await anyio.to_thread.run_sync(_run)


@server.tool(name="financial_advice", description="Short AI-written savings tips based on recent transactions")
async def financial_advice(data_path: str, config_path: str | None = None) -> str:
    store = _open_store(data_path)
    transactions = await anyio.to_thread.run_sync(store.load_transactions)
    cfg = load_config(config_path)
    settings = cfg.get("advice") or {}
    return await summarize_advice(
        transactions,
        config=cfg,
        min_transactions=int(settings.get("min_transactions", 5)),
        sample_size=int(settings.get("sample_size", 50)),
    )


def main() -> None:
    server.run()


if __name__ == "__main__":
    main()
