"""Store interface consumed by the CSV import pipeline.

The importer only ever talks to persistence through these four calls, so
tests can hand it an in-memory implementation and the CLI hands it the
SQLite Repository.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import Category, Expense


class ExpenseStore(ABC):
    """Expense/category persistence needed by an import session."""

    @abstractmethod
    def ensure_unknown_category(self) -> int:
        """Create the sentinel "不明" category if missing and return its id."""

    @abstractmethod
    def fetch_categories(self) -> list[Category]:
        """Return all active categories ordered by sort_order, id."""

    @abstractmethod
    def create_categories_if_needed(
        self, names: list[str], default_icon: str, default_color: str
    ) -> None:
        """Create any of ``names`` not already present among active categories.

        New categories are appended after the current maximum sort order.
        Blank names are skipped.
        """

    @abstractmethod
    def insert_expenses(self, expenses: list[Expense]) -> None:
        """Insert all expenses atomically: either every row lands or none."""
