"""SQLite-backed ExpenseStore: expenses, categories, the import ledger and
key/value settings, all through raw SQL on one WAL-mode connection.

Categories are never physically removed once expenses use them; deletion
flips is_active, and name uniqueness only applies to active rows.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from .models import (
    DEFAULT_CATEGORIES,
    UNKNOWN_CATEGORY_COLOR,
    UNKNOWN_CATEGORY_ICON,
    UNKNOWN_CATEGORY_NAME,
    UNKNOWN_CATEGORY_SORT_ORDER,
    Category,
    Expense,
    Import,
    TransactionType,
    _now,
)
from .store import ExpenseStore

logger = logging.getLogger(__name__)

DEFAULT_MIGRATIONS_DIR = Path(__file__).parent / "migrations"

_SEEDED_KEY = "categories.seeded.v1"


class DuplicateImportError(Exception):
    """Raised when attempting to record a file with a hash that already exists."""

    def __init__(self, file_hash: str, existing_import_id: str | None = None):
        self.file_hash = file_hash
        self.existing_import_id = existing_import_id
        super().__init__(f"Import with file_hash '{file_hash}' already exists")


class DuplicateCategoryError(Exception):
    """Raised when an active category with the same name already exists."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Category '{name}' already exists")


class CategoryNotFoundError(Exception):
    def __init__(self, category_id: int):
        self.category_id = category_id
        super().__init__(f"Category {category_id} not found")


class DefaultCategoryError(Exception):
    """Raised when trying to delete one of the built-in default categories."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Default category '{name}' cannot be deleted")


class Repository(ExpenseStore):
    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.execute("PRAGMA journal_mode = WAL")
        return self._conn

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # ── Migrations ──────────────────────────────────────────

    def apply_migrations(self, migrations_dir: Path = DEFAULT_MIGRATIONS_DIR):
        """Apply all pending SQL migrations in order.

        Each migration runs in a transaction: if the SQL fails, the
        schema_version row is not inserted, allowing retry on next startup.
        """
        self.conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_version ("
            "  version INTEGER PRIMARY KEY,"
            "  description TEXT,"
            "  applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP"
            ")"
        )
        self.conn.commit()

        row = self.conn.execute(
            "SELECT MAX(version) FROM schema_version"
        ).fetchone()
        current = row[0] or 0

        for sql_file in sorted(Path(migrations_dir).glob("*.sql")):
            version = int(sql_file.name.split("_")[0])
            if version > current:
                try:
                    self.conn.execute("BEGIN")
                    # executescript auto-commits, so we split statements manually
                    sql_text = sql_file.read_text(encoding="utf-8")
                    for statement in sql_text.split(";"):
                        statement = statement.strip()
                        if statement:
                            self.conn.execute(statement)
                    self.conn.execute(
                        "INSERT INTO schema_version (version, description) VALUES (?, ?)",
                        (version, sql_file.stem),
                    )
                    self.conn.commit()
                except Exception:
                    self.conn.rollback()
                    raise

    def seed_default_categories(
        self, defaults: list[tuple[str, str, str, int]] | None = None
    ) -> None:
        """Insert the default categories the first time a database is opened.

        Later renames or hides by the user are never overwritten.
        """
        if self.get_setting(_SEEDED_KEY, False):
            return
        defaults = DEFAULT_CATEGORIES if defaults is None else defaults
        try:
            self.conn.execute("BEGIN")
            self._insert_defaults(defaults)
            self.conn.execute(
                "INSERT OR REPLACE INTO settings (key, value, updated_at)"
                " VALUES (?, ?, CURRENT_TIMESTAMP)",
                (_SEEDED_KEY, json.dumps(True)),
            )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    def _insert_defaults(self, defaults: list[tuple[str, str, str, int]]) -> None:
        created_at = _now()
        self.conn.executemany(
            "INSERT INTO categories"
            " (name, icon, color, is_default, is_visible, is_active,"
            "  sort_order, txn_type, created_at)"
            " SELECT ?, ?, ?, 1, 1, 1, ?, 0, ?"
            " WHERE NOT EXISTS ("
            "   SELECT 1 FROM categories WHERE name = ? AND is_active = 1"
            " )",
            [
                (name, icon, color, sort_order, created_at, name)
                for name, icon, color, sort_order in defaults
            ],
        )

    # ── Categories: import-facing store operations ─────────

    def ensure_unknown_category(self) -> int:
        return self.get_or_create_category_id(
            UNKNOWN_CATEGORY_NAME,
            icon=UNKNOWN_CATEGORY_ICON,
            color=UNKNOWN_CATEGORY_COLOR,
            sort_order=UNKNOWN_CATEGORY_SORT_ORDER,
        )

    def get_or_create_category_id(
        self, name: str, icon: str, color: str, sort_order: int
    ) -> int:
        existing = self.get_category_by_name(name)
        if existing is not None:
            return existing.id
        cur = self.conn.execute(
            "INSERT INTO categories"
            " (name, icon, color, is_default, is_visible, is_active,"
            "  sort_order, txn_type, created_at)"
            " VALUES (?, ?, ?, 0, 1, 1, ?, 0, ?)",
            (name, icon, color, sort_order, _now()),
        )
        self.conn.commit()
        logger.info("Created category '%s' (id=%d)", name, cur.lastrowid)
        return cur.lastrowid

    def fetch_categories(self) -> list[Category]:
        rows = self.conn.execute(
            "SELECT * FROM categories WHERE is_active = 1"
            " ORDER BY sort_order, id"
        ).fetchall()
        return [self._row_to_category(r) for r in rows]

    def create_categories_if_needed(
        self, names: list[str], default_icon: str, default_color: str
    ) -> None:
        if not names:
            return
        sort_order = self._max_sort_order() + 1
        created_at = _now()
        try:
            self.conn.execute("BEGIN")
            for name in names:
                name = name.strip()
                if not name:
                    continue
                cur = self.conn.execute(
                    "INSERT INTO categories"
                    " (name, icon, color, is_default, is_visible, is_active,"
                    "  sort_order, txn_type, created_at)"
                    " SELECT ?, ?, ?, 0, 1, 1, ?, 0, ?"
                    " WHERE NOT EXISTS ("
                    "   SELECT 1 FROM categories WHERE name = ? AND is_active = 1"
                    " )",
                    (name, default_icon, default_color, sort_order, created_at, name),
                )
                if cur.rowcount:
                    sort_order += 1
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    def insert_expenses(self, expenses: list[Expense]) -> None:
        """Insert multiple expenses atomically.

        Runs in one transaction; a failure rolls back the whole batch.
        """
        if not expenses:
            return
        try:
            self.conn.execute("BEGIN")
            self.conn.executemany(
                "INSERT INTO expenses"
                " (amount, txn_type, date, note, category_id, user_id)"
                " VALUES (?, ?, ?, ?, ?, ?)",
                [
                    (e.amount, int(e.txn_type), e.date, e.note,
                     e.category_id, e.user_id)
                    for e in expenses
                ],
            )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    # ── Categories: management ──────────────────────────────

    def get_category(self, category_id: int) -> Category | None:
        """Fetch a category by id, including logically deleted ones."""
        row = self.conn.execute(
            "SELECT * FROM categories WHERE id = ?", (category_id,)
        ).fetchone()
        return self._row_to_category(row) if row else None

    def get_category_by_name(self, name: str) -> Category | None:
        row = self.conn.execute(
            "SELECT * FROM categories WHERE name = ? AND is_active = 1 LIMIT 1",
            (name,),
        ).fetchone()
        return self._row_to_category(row) if row else None

    def fetch_visible_categories(self) -> list[Category]:
        return [c for c in self.fetch_categories() if c.is_visible]

    def insert_category(self, category: Category) -> Category:
        """Insert a user category.

        Raises:
            DuplicateCategoryError: If an active category has the same name.
        """
        try:
            self.conn.execute("BEGIN")
            if self._active_name_exists(category.name):
                raise DuplicateCategoryError(category.name)
            # Purge an unused, logically deleted row with the same name
            self.conn.execute(
                "DELETE FROM categories WHERE name = ? AND is_active = 0"
                " AND id NOT IN (SELECT category_id FROM expenses)",
                (category.name,),
            )
            cur = self.conn.execute(
                "INSERT INTO categories"
                " (name, icon, color, is_default, is_visible, is_active,"
                "  sort_order, txn_type, created_at)"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (category.name, category.icon, category.color,
                 int(category.is_default), int(category.is_visible),
                 int(category.is_active), category.sort_order,
                 int(category.txn_type), category.created_at),
            )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        category.id = cur.lastrowid
        return category

    def update_category(self, category: Category) -> None:
        """Update name, icon, color, visibility, sort order and type.

        Raises:
            CategoryNotFoundError: If no active category has this id.
            DuplicateCategoryError: If renaming onto another active name.
        """
        try:
            self.conn.execute("BEGIN")
            row = self.conn.execute(
                "SELECT name FROM categories WHERE id = ? AND is_active = 1",
                (category.id,),
            ).fetchone()
            if row is None:
                raise CategoryNotFoundError(category.id)
            if row["name"] != category.name:
                if self._active_name_exists(category.name):
                    raise DuplicateCategoryError(category.name)
                self.conn.execute(
                    "DELETE FROM categories"
                    " WHERE name = ? AND is_active = 0 AND id != ?"
                    " AND id NOT IN (SELECT category_id FROM expenses)",
                    (category.name, category.id),
                )
            self.conn.execute(
                "UPDATE categories"
                " SET name = ?, icon = ?, color = ?, is_visible = ?,"
                "     sort_order = ?, txn_type = ?"
                " WHERE id = ? AND is_active = 1",
                (category.name, category.icon, category.color,
                 int(category.is_visible), category.sort_order,
                 int(category.txn_type), category.id),
            )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    def update_categories_order(self, categories: list[Category]) -> None:
        try:
            self.conn.execute("BEGIN")
            self.conn.executemany(
                "UPDATE categories SET sort_order = ? WHERE id = ? AND is_active = 1",
                [(c.sort_order, c.id) for c in categories],
            )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    def delete_category_logically(self, category_id: int) -> None:
        """Mark a category inactive. Expenses keep pointing at it.

        Raises:
            CategoryNotFoundError: If no active category has this id.
            DefaultCategoryError: If the category is a built-in default.
        """
        category = self.get_category(category_id)
        if category is None or not category.is_active:
            raise CategoryNotFoundError(category_id)
        if category.is_default:
            raise DefaultCategoryError(category.name)

        usage = self.count_category_usage(category_id)
        if usage > 0:
            logger.warning(
                "Category '%s' (id=%d) is used by %d expense(s); deleting logically",
                category.name, category_id, usage,
            )
        self.conn.execute(
            "UPDATE categories SET is_active = 0 WHERE id = ? AND is_default = 0",
            (category_id,),
        )
        self.conn.commit()

    def reset_default_categories(
        self, defaults: list[tuple[str, str, str, int]] | None = None
    ) -> None:
        """Retire current default categories and recreate them from the defaults."""
        defaults = DEFAULT_CATEGORIES if defaults is None else defaults
        try:
            self.conn.execute("BEGIN")
            self.conn.execute(
                "UPDATE categories SET is_active = 0 WHERE is_default = 1"
            )
            self._insert_defaults(defaults)
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    def count_category_usage(self, category_id: int) -> int:
        row = self.conn.execute(
            "SELECT COUNT(*) FROM expenses WHERE category_id = ?",
            (category_id,),
        ).fetchone()
        return row[0]

    def _active_name_exists(self, name: str) -> bool:
        row = self.conn.execute(
            "SELECT COUNT(*) FROM categories WHERE name = ? AND is_active = 1",
            (name,),
        ).fetchone()
        return row[0] > 0

    def _max_sort_order(self) -> int:
        row = self.conn.execute(
            "SELECT COALESCE(MAX(sort_order), 0) FROM categories"
        ).fetchone()
        return row[0]

    # ── Expenses ────────────────────────────────────────────

    def insert_expense(self, expense: Expense) -> Expense:
        cur = self.conn.execute(
            "INSERT INTO expenses"
            " (amount, txn_type, date, note, category_id, user_id)"
            " VALUES (?, ?, ?, ?, ?, ?)",
            (expense.amount, int(expense.txn_type), expense.date,
             expense.note, expense.category_id, expense.user_id),
        )
        self.conn.commit()
        expense.id = cur.lastrowid
        return expense

    def update_expense(self, expense: Expense) -> None:
        self.conn.execute(
            "UPDATE expenses"
            " SET amount = ?, txn_type = ?, date = ?, note = ?,"
            "     category_id = ?, user_id = ?"
            " WHERE id = ?",
            (expense.amount, int(expense.txn_type), expense.date,
             expense.note, expense.category_id, expense.user_id, expense.id),
        )
        self.conn.commit()

    def delete_expense(self, expense_id: int) -> bool:
        cur = self.conn.execute(
            "DELETE FROM expenses WHERE id = ?", (expense_id,)
        )
        self.conn.commit()
        return cur.rowcount > 0

    def delete_expenses(self, expense_ids: list[int]) -> int:
        """Delete several expenses in one transaction. Returns rows removed."""
        if not expense_ids:
            return 0
        try:
            self.conn.execute("BEGIN")
            removed = 0
            for expense_id in expense_ids:
                cur = self.conn.execute(
                    "DELETE FROM expenses WHERE id = ?", (expense_id,)
                )
                removed += cur.rowcount
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        return removed

    def get_expense(self, expense_id: int) -> Expense | None:
        row = self.conn.execute(
            "SELECT * FROM expenses WHERE id = ?", (expense_id,)
        ).fetchone()
        return self._row_to_expense(row) if row else None

    def fetch_expenses(self) -> list[Expense]:
        """All expenses, newest first."""
        rows = self.conn.execute(
            "SELECT * FROM expenses ORDER BY date DESC, id DESC"
        ).fetchall()
        return [self._row_to_expense(r) for r in rows]

    def get_expenses_between(
        self, date_from: str | None = None, date_to: str | None = None,
    ) -> list[Expense]:
        """Expenses in an inclusive ISO date range, oldest first."""
        sql = "SELECT * FROM expenses WHERE 1 = 1"
        params: list = []
        if date_from:
            sql += " AND date >= ?"
            params.append(date_from)
        if date_to:
            sql += " AND date <= ?"
            params.append(date_to)
        sql += " ORDER BY date, id"
        rows = self.conn.execute(sql, params).fetchall()
        return [self._row_to_expense(r) for r in rows]

    # ── Imports ─────────────────────────────────────────────

    def insert_import(self, imp: Import) -> Import:
        """Record a committed file import.

        Raises:
            DuplicateImportError: If a file with the same hash was already imported.
        """
        try:
            self.conn.execute(
                "INSERT INTO imports (id, file_name, file_hash, inserted_count,"
                " skipped_count, created_at)"
                " VALUES (?, ?, ?, ?, ?, ?)",
                (imp.id, imp.file_name, imp.file_hash, imp.inserted_count,
                 imp.skipped_count, imp.created_at),
            )
            self.conn.commit()
            return imp
        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            if "file_hash" in str(e) or "UNIQUE constraint failed" in str(e):
                existing = self.get_import_by_hash(imp.file_hash)
                raise DuplicateImportError(
                    imp.file_hash,
                    existing.id if existing else None,
                ) from e
            raise

    def get_import_by_hash(self, file_hash: str) -> Import | None:
        row = self.conn.execute(
            "SELECT * FROM imports WHERE file_hash = ?", (file_hash,)
        ).fetchone()
        return self._row_to_import(row) if row else None

    # ── Settings (JSON key-value) ───────────────────────────

    def get_setting(self, key: str, default: Any = None) -> Any:
        row = self.conn.execute(
            "SELECT value FROM settings WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except ValueError:
            logger.warning("Ignoring unreadable setting '%s'", key)
            return default

    def set_setting(self, key: str, value: Any) -> None:
        self.conn.execute(
            "INSERT INTO settings (key, value, updated_at)"
            " VALUES (?, ?, CURRENT_TIMESTAMP)"
            " ON CONFLICT(key) DO UPDATE SET"
            "  value = excluded.value,"
            "  updated_at = CURRENT_TIMESTAMP",
            (key, json.dumps(value, ensure_ascii=False)),
        )
        self.conn.commit()

    # ── Row Converters ──────────────────────────────────────

    @staticmethod
    def _row_to_category(row: sqlite3.Row) -> Category:
        return Category(
            id=row["id"], name=row["name"],
            icon=row["icon"], color=row["color"],
            is_default=bool(row["is_default"]),
            is_visible=bool(row["is_visible"]),
            is_active=bool(row["is_active"]),
            sort_order=row["sort_order"],
            txn_type=TransactionType(row["txn_type"]),
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_expense(row: sqlite3.Row) -> Expense:
        return Expense(
            id=row["id"], amount=row["amount"],
            txn_type=TransactionType(row["txn_type"]),
            date=row["date"], note=row["note"],
            category_id=row["category_id"],
            user_id=row["user_id"],
        )

    @staticmethod
    def _row_to_import(row: sqlite3.Row) -> Import:
        return Import(
            id=row["id"], file_name=row["file_name"],
            file_hash=row["file_hash"],
            inserted_count=row["inserted_count"],
            skipped_count=row["skipped_count"],
            created_at=row["created_at"],
        )
