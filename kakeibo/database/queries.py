"""Aggregation queries over expenses and categories.

These back the calendar (daily totals), the category breakdown and the
monthly trend. month arguments use the 'YYYY-MM' format.
"""

from __future__ import annotations

import sqlite3
from datetime import date

from .models import TransactionType


def shift_month(month: str, offset: int) -> str:
    year, mon = (int(p) for p in month.split("-"))
    index = year * 12 + (mon - 1) + offset
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def get_daily_totals(
    conn: sqlite3.Connection,
    month: str,
    txn_type: TransactionType = TransactionType.EXPENSE,
) -> dict[str, float]:
    """Sum of amounts per day for one month: {'YYYY-MM-DD': total}."""
    rows = conn.execute(
        "SELECT date, SUM(amount) AS total FROM expenses"
        " WHERE date LIKE ? || '-%' AND txn_type = ?"
        " GROUP BY date ORDER BY date",
        (month, int(txn_type)),
    ).fetchall()
    return {r["date"]: r["total"] for r in rows}


def get_category_totals(
    conn: sqlite3.Connection,
    month: str,
    txn_type: TransactionType = TransactionType.EXPENSE,
) -> list[dict]:
    """Monthly totals for every active category, largest first.

    Categories with no spending are included with total 0. Each dict has
    keys: category_id, name, color, total, percentage. percentage is None
    for categories whose total is not positive.
    """
    rows = conn.execute(
        "SELECT c.id AS category_id, c.name, c.color,"
        "  COALESCE(SUM(e.amount), 0) AS total"
        " FROM categories c"
        " LEFT JOIN expenses e"
        "   ON e.category_id = c.id"
        "  AND e.date LIKE ? || '-%'"
        "  AND e.txn_type = ?"
        " WHERE c.is_active = 1"
        " GROUP BY c.id"
        " ORDER BY total DESC, c.sort_order, c.id",
        (month, int(txn_type)),
    ).fetchall()
    result = [dict(r) for r in rows]
    grand_total = sum(r["total"] for r in result if r["total"] > 0)
    for r in result:
        if r["total"] > 0 and grand_total > 0:
            r["percentage"] = r["total"] / grand_total * 100
        else:
            r["percentage"] = None
    return result


def get_month_total(
    conn: sqlite3.Connection,
    month: str,
    txn_type: TransactionType = TransactionType.EXPENSE,
) -> float:
    row = conn.execute(
        "SELECT COALESCE(SUM(amount), 0) FROM expenses"
        " WHERE date LIKE ? || '-%' AND txn_type = ?",
        (month, int(txn_type)),
    ).fetchone()
    return row[0]


def get_monthly_series(
    conn: sqlite3.Connection,
    start_month: str,
    months: int = 12,
    today: date | None = None,
) -> list[dict]:
    """Expense, income and net (income - expense) per month.

    Returns one dict per month in the window starting at start_month, with
    keys: month, expense, income, net. Months after the current one are
    reported as zero.
    """
    today = today or date.today()
    current = today.strftime("%Y-%m")
    window = [shift_month(start_month, i) for i in range(months)]
    if not window:
        return []

    rows = conn.execute(
        "SELECT substr(date, 1, 7) AS month, txn_type, SUM(amount) AS total"
        " FROM expenses"
        " WHERE date >= ? AND date < ?"
        " GROUP BY month, txn_type",
        (f"{window[0]}-01", f"{shift_month(window[-1], 1)}-01"),
    ).fetchall()

    buckets: dict[str, dict[int, float]] = {}
    for r in rows:
        if r["month"] > current:
            continue
        buckets.setdefault(r["month"], {})[r["txn_type"]] = r["total"]

    series = []
    for month in window:
        totals = buckets.get(month, {})
        expense = totals.get(int(TransactionType.EXPENSE), 0.0)
        income = totals.get(int(TransactionType.INCOME), 0.0)
        series.append({
            "month": month,
            "expense": expense,
            "income": income,
            "net": income - expense,
        })
    return series
