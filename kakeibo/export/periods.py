"""Export period selection and export file output.

Periods: all, this month, last month, this year, and a custom inclusive
date range. Records always come out sorted by date, oldest first.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from enum import Enum
from pathlib import Path

from kakeibo.database.models import Expense
from kakeibo.parsers.base import format_csv_date

logger = logging.getLogger(__name__)

EXPORT_FILE_PREFIX = "expenses_"
EXPORT_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


class ExportPeriod(str, Enum):
    ALL = "all"
    THIS_MONTH = "this-month"
    LAST_MONTH = "last-month"
    THIS_YEAR = "this-year"
    CUSTOM = "custom"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    ExportPeriod.ALL: "全期間",
    ExportPeriod.THIS_MONTH: "今月",
    ExportPeriod.LAST_MONTH: "先月",
    ExportPeriod.THIS_YEAR: "今年",
    ExportPeriod.CUSTOM: "カスタム期間",
}


def _previous_month(today: date) -> date:
    if today.month == 1:
        return date(today.year - 1, 12, 1)
    return date(today.year, today.month - 1, 1)


def filter_expenses(
    expenses: list[Expense],
    period: ExportPeriod,
    today: date | None = None,
    start: date | None = None,
    end: date | None = None,
) -> list[Expense]:
    """Select the expenses in a period, sorted by date ascending.

    Raises:
        ValueError: For a custom period without both start and end.
    """
    today = today or date.today()
    ordered = sorted(expenses, key=lambda e: e.date)

    if period is ExportPeriod.ALL:
        return ordered
    if period is ExportPeriod.THIS_MONTH:
        prefix = today.strftime("%Y-%m-")
        return [e for e in ordered if e.date.startswith(prefix)]
    if period is ExportPeriod.LAST_MONTH:
        prefix = _previous_month(today).strftime("%Y-%m-")
        return [e for e in ordered if e.date.startswith(prefix)]
    if period is ExportPeriod.THIS_YEAR:
        prefix = f"{today.year:04d}-"
        return [e for e in ordered if e.date.startswith(prefix)]

    if start is None or end is None:
        raise ValueError("A custom export period needs both a start and an end date")
    lo, hi = start.isoformat(), end.isoformat()
    return [e for e in ordered if lo <= e.date <= hi]


def describe_period(
    period: ExportPeriod,
    expenses: list[Expense],
    today: date | None = None,
    start: date | None = None,
    end: date | None = None,
) -> str:
    """Human-readable span of an export, e.g. '2025年7月'.

    For ALL, the span of the (date-sorted) expenses is shown when there are any.
    """
    today = today or date.today()
    if period is ExportPeriod.ALL:
        if expenses:
            return f"{format_csv_date(expenses[0].date)} - {format_csv_date(expenses[-1].date)}"
        return period.label
    if period is ExportPeriod.THIS_MONTH:
        return f"{today.year}年{today.month}月"
    if period is ExportPeriod.LAST_MONTH:
        prev = _previous_month(today)
        return f"{prev.year}年{prev.month}月"
    if period is ExportPeriod.THIS_YEAR:
        return f"{today.year}年"
    if start is None or end is None:
        return period.label
    return f"{start.strftime('%Y/%m/%d')} - {end.strftime('%Y/%m/%d')}"


def export_file_name(now: datetime | None = None) -> str:
    now = now or datetime.now()
    return f"{EXPORT_FILE_PREFIX}{now.strftime(EXPORT_TIMESTAMP_FORMAT)}.csv"


def save_export(csv_text: str, out_dir: Path, now: datetime | None = None) -> Path:
    """Write CSV text as UTF-8 to out_dir/expenses_YYYYMMDD_HHMMSS.csv.

    Creates out_dir if needed. Returns the written path.
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / export_file_name(now)
    path.write_text(csv_text, encoding="utf-8", newline="")
    logger.info("Exported %d byte(s) to %s", len(csv_text.encode("utf-8")), path)
    return path
