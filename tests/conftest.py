"""Shared test fixtures."""

from pathlib import Path

import pytest

from kakeibo.database.models import (
    UNKNOWN_CATEGORY_NAME,
    UNKNOWN_CATEGORY_SORT_ORDER,
    Category,
    Expense,
)
from kakeibo.database.repository import DEFAULT_MIGRATIONS_DIR, Repository
from kakeibo.database.store import ExpenseStore

# Test fixture config directory with synthetic data
FIXTURE_CONFIG_DIR = Path(__file__).parent / "fixtures" / "config"

MIGRATIONS_DIR = DEFAULT_MIGRATIONS_DIR


class FakeStore(ExpenseStore):
    """In-memory ExpenseStore that records the order of calls."""

    def __init__(self, names: list[str] | None = None):
        self.categories: list[Category] = []
        self.expenses: list[Expense] = []
        self.calls: list[str] = []
        self.insert_batches: list[list[Expense]] = []
        self._next_id = 1
        for name in names or []:
            self._add(name, "tag.fill", "gray", len(self.categories) + 1)

    def _add(self, name: str, icon: str, color: str, sort_order: int) -> Category:
        category = Category(
            name=name, icon=icon, color=color,
            id=self._next_id, sort_order=sort_order,
        )
        self._next_id += 1
        self.categories.append(category)
        return category

    def ensure_unknown_category(self) -> int:
        self.calls.append("ensure_unknown_category")
        for c in self.categories:
            if c.name == UNKNOWN_CATEGORY_NAME:
                return c.id
        return self._add(
            UNKNOWN_CATEGORY_NAME, "questionmark.circle", "gray",
            UNKNOWN_CATEGORY_SORT_ORDER,
        ).id

    def fetch_categories(self) -> list[Category]:
        self.calls.append("fetch_categories")
        return sorted(self.categories, key=lambda c: (c.sort_order, c.id))

    def create_categories_if_needed(self, names, default_icon, default_color) -> None:
        self.calls.append("create_categories_if_needed")
        existing = {c.name for c in self.categories}
        for name in names:
            if name and name not in existing:
                self._add(name, default_icon, default_color, len(self.categories) + 1)
                existing.add(name)

    def insert_expenses(self, expenses) -> None:
        self.calls.append("insert_expenses")
        self.insert_batches.append(list(expenses))
        self.expenses.extend(expenses)

    def category_named(self, name: str) -> Category:
        return next(c for c in self.categories if c.name == name)


@pytest.fixture
def repo():
    r = Repository(":memory:")
    r.apply_migrations(MIGRATIONS_DIR)
    yield r
    r.close()


@pytest.fixture
def seeded_repo(repo):
    repo.seed_default_categories()
    return repo


@pytest.fixture
def fake_store():
    return FakeStore(["食費", "交通費"])
