"""CSV writer: expenses back to the 日付,金額,カテゴリ,メモ format."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from kakeibo.database.models import UNKNOWN_CATEGORY_NAME, Expense
from kakeibo.parsers.base import CSV_HEADER, format_amount, format_csv_date

_NEEDS_QUOTING = (",", "\n", "\r", '"')


def quote_field(value: str) -> str:
    """Wrap a field in double quotes when it holds a comma, line break or quote."""
    if any(ch in value for ch in _NEEDS_QUOTING):
        return '"' + value.replace('"', '""') + '"'
    return value


def write_csv(
    expenses: Iterable[Expense],
    category_names: Mapping[int, str],
) -> str:
    """Serialize expenses in the given order. Every line ends with a newline.

    Category ids missing from category_names are written as 不明.
    """
    lines = [",".join(CSV_HEADER)]
    for e in expenses:
        lines.append(",".join([
            format_csv_date(e.date),
            format_amount(e.amount),
            quote_field(category_names.get(e.category_id, UNKNOWN_CATEGORY_NAME)),
            quote_field(e.note),
        ]))
    return "".join(line + "\n" for line in lines)
