"""CSV import session: header check, category preparation, row resolution, commit.

One ImportSession covers one file, from reading to commit. Steps, in order:
  parse → check header → ensure "不明" → bulk-create unknown category names
  → re-fetch categories → resolve every data row → (user confirms) → commit

Category creation always finishes before any row is resolved, so a name that
was just created resolves to its own id instead of falling back to "不明".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from kakeibo.database.models import (
    DEFAULT_COLOR,
    DEFAULT_ICON,
    DEFAULT_USER_ID,
    UNKNOWN_CATEGORY_NAME,
    Category,
    Expense,
)
from kakeibo.parsers.base import (
    CSV_HEADER,
    parse_amount,
    parse_csv_date,
    read_csv_text,
)
from kakeibo.parsers.tokenizer import parse_csv

if TYPE_CHECKING:
    from kakeibo.database.store import ExpenseStore

logger = logging.getLogger(__name__)

PREVIEW_LIMIT = 20


class CsvSchemaError(Exception):
    """The file as a whole does not have the expected shape; nothing is imported."""


class EmptyCsvError(CsvSchemaError):
    def __init__(self):
        super().__init__("CSV is empty")


class HeaderMismatchError(CsvSchemaError):
    def __init__(self, actual: list[str]):
        self.expected = list(CSV_HEADER)
        self.actual = actual
        super().__init__(
            "Header does not match.\n"
            f"Expected: {','.join(self.expected)}\n"
            f"Actual: {','.join(actual)}"
        )


class NothingToImportError(Exception):
    """Raised when committing a session in which every row failed."""


class SessionAlreadyCommittedError(Exception):
    pass


@dataclass
class ImportRow:
    """Result of resolving one CSV data row.

    Exactly one of ``expense`` and ``error`` is set.
    """
    line: int
    date_text: str = ""
    amount_text: str = ""
    category_raw_name: str = ""
    category_resolved_name: str = ""
    note: str = ""
    expense: Expense | None = None
    error: str | None = None

    @classmethod
    def failed(cls, line: int, message: str) -> ImportRow:
        return cls(line=line, error=message)

    @property
    def is_valid(self) -> bool:
        return self.error is None


@dataclass
class ImportSummary:
    inserted: int
    skipped: int


def validate_header(table: list[list[str]]) -> None:
    """Check that the first row is exactly 日付,金額,カテゴリ,メモ.

    Raises:
        EmptyCsvError: If the table has no rows at all.
        HeaderMismatchError: If the header differs in any way.
    """
    if not table:
        raise EmptyCsvError()
    header = [cell.strip() for cell in table[0]]
    if header != CSV_HEADER:
        raise HeaderMismatchError(header)


def collect_category_names(table: list[list[str]]) -> list[str]:
    """Distinct non-empty category names used by the data rows, sorted."""
    names: set[str] = set()
    for row in table[1:]:
        if len(row) < 3:
            continue
        name = row[2].strip()
        if name:
            names.add(name)
    return sorted(names)


def resolve_rows(
    table: list[list[str]],
    categories: list[Category],
    user_id: int = DEFAULT_USER_ID,
) -> list[ImportRow]:
    """Turn every data row into an ImportRow against a category snapshot.

    ``table[0]`` is the header and is skipped. Line numbers count the header
    as line 1.
    """
    by_name = {c.name: c.id for c in categories}
    by_id = {c.id: c.name for c in categories}
    unknown_id = by_name.get(UNKNOWN_CATEGORY_NAME, 0)

    built: list[ImportRow] = []
    for line, row in enumerate(table[1:], start=2):
        if len(row) < 4:
            built.append(ImportRow.failed(line, "Insufficient columns (4 required)"))
            continue

        date_text = row[0].strip()
        amount_text = row[1].strip()
        category_text = row[2].strip()
        note = row[3]

        iso_date = parse_csv_date(date_text)
        if iso_date is None:
            built.append(ImportRow.failed(line, f"Invalid date: {date_text}"))
            continue

        amount = parse_amount(amount_text)
        if amount is None:
            built.append(ImportRow.failed(line, f"Invalid amount: {amount_text}"))
            continue

        if category_text:
            category_id = by_name.get(category_text, unknown_id)
        else:
            category_id = unknown_id

        built.append(ImportRow(
            line=line,
            date_text=date_text,
            amount_text=amount_text,
            category_raw_name=category_text,
            category_resolved_name=by_id.get(category_id, UNKNOWN_CATEGORY_NAME),
            note=note,
            expense=Expense(
                amount=amount,
                date=iso_date,
                note=note,
                category_id=category_id,
                user_id=user_id,
            ),
        ))
    return built


class ImportSession:
    """One file import, from load to commit.

    Args:
        store: Persistence for categories and expenses.
        default_icon: Icon given to categories created during import.
        default_color: Colour given to categories created during import.
        user_id: Owner recorded on imported expenses.
    """

    def __init__(
        self,
        store: ExpenseStore,
        default_icon: str = DEFAULT_ICON,
        default_color: str = DEFAULT_COLOR,
        user_id: int = DEFAULT_USER_ID,
    ):
        self.store = store
        self.default_icon = default_icon
        self.default_color = default_color
        self.user_id = user_id
        self.source_name: str | None = None
        self.rows: list[ImportRow] = []
        self.created_categories: list[str] = []
        self.committed = False

    def load_file(self, file_path: Path) -> list[ImportRow]:
        """Read, decode and resolve a CSV file.

        Raises:
            OSError: If the file cannot be read.
            CsvDecodeError: If the bytes are neither UTF-8 nor Shift-JIS.
            CsvSchemaError: If the file is empty or the header is wrong.
        """
        file_path = Path(file_path)
        self.rows = []
        text = read_csv_text(file_path)
        return self.load_text(text, source_name=file_path.name)

    def load_text(self, text: str, source_name: str = "<text>") -> list[ImportRow]:
        """Resolve already-decoded CSV text. See load_file for errors."""
        self.source_name = source_name
        self.rows = []
        self.created_categories = []

        table = parse_csv(text)
        validate_header(table)

        categories = self._prepare_categories(table)
        self.rows = resolve_rows(table, categories, user_id=self.user_id)

        logger.info(
            "Loaded %s: %d row(s), %d valid, %d with errors",
            source_name, len(self.rows),
            len(self.valid_rows), len(self.error_rows),
        )
        return self.rows

    def _prepare_categories(self, table: list[list[str]]) -> list[Category]:
        self.store.ensure_unknown_category()

        wanted = collect_category_names(table)
        existing = {c.name for c in self.store.fetch_categories()}
        missing = [name for name in wanted if name not in existing]
        if missing:
            logger.info("Creating %d new categor(ies): %s", len(missing), ", ".join(missing))
            self.store.create_categories_if_needed(
                missing, self.default_icon, self.default_color,
            )
            self.created_categories = missing

        return self.store.fetch_categories()

    @property
    def valid_rows(self) -> list[ImportRow]:
        return [r for r in self.rows if r.is_valid]

    @property
    def error_rows(self) -> list[ImportRow]:
        return [r for r in self.rows if not r.is_valid]

    @property
    def can_commit(self) -> bool:
        return not self.committed and bool(self.valid_rows)

    def preview(self, limit: int = PREVIEW_LIMIT) -> list[ImportRow]:
        return self.rows[:limit]

    def commit(self) -> ImportSummary:
        """Insert every valid row in one batch; errored rows are left out.

        Raises:
            SessionAlreadyCommittedError: If commit already ran.
            NothingToImportError: If no row is valid.
        """
        if self.committed:
            raise SessionAlreadyCommittedError(
                f"Import of {self.source_name} was already committed"
            )
        expenses = [r.expense for r in self.rows if r.expense is not None]
        if not expenses:
            raise NothingToImportError("No importable rows (every row has an error)")

        self.store.insert_expenses(expenses)
        self.committed = True

        summary = ImportSummary(
            inserted=len(expenses),
            skipped=len(self.rows) - len(expenses),
        )
        logger.info(
            "Committed %s: inserted=%d skipped=%d",
            self.source_name, summary.inserted, summary.skipped,
        )
        return summary
