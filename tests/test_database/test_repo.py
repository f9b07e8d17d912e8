"""Tests for Repository CRUD operations."""

import sqlite3

import pytest

from kakeibo.database.models import (
    DEFAULT_CATEGORIES,
    UNKNOWN_CATEGORY_NAME,
    Category,
    Expense,
    Import,
    TransactionType,
)
from kakeibo.database.repository import (
    CategoryNotFoundError,
    DefaultCategoryError,
    DuplicateCategoryError,
    DuplicateImportError,
    Repository,
)
from tests.conftest import MIGRATIONS_DIR


def _expense(category_id: int, **overrides) -> Expense:
    defaults = dict(amount=1200.0, date="2025-07-29", note="ランチ", category_id=category_id)
    defaults.update(overrides)
    return Expense(**defaults)


class TestMigrations:
    def test_tables_created(self, repo):
        tables = {
            r[0] for r in repo.conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table'"
            ).fetchall()
        }
        assert {"categories", "expenses", "imports", "settings", "schema_version"} <= tables

    def test_idempotent(self, repo):
        repo.apply_migrations(MIGRATIONS_DIR)
        versions = repo.conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
        assert versions == 1

    def test_failed_migration_rolls_back(self, tmp_path):
        (tmp_path / "001_broken.sql").write_text(
            "CREATE TABLE ok_table (id INTEGER);\nNOT VALID SQL;"
        )
        r = Repository(":memory:")
        with pytest.raises(sqlite3.OperationalError):
            r.apply_migrations(tmp_path)
        count = r.conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
        assert count == 0
        r.close()


class TestSeedDefaults:
    def test_seeds_defaults(self, repo):
        repo.seed_default_categories()
        names = [c.name for c in repo.fetch_categories()]
        assert names == [name for name, _, _, _ in DEFAULT_CATEGORIES]
        assert all(c.is_default for c in repo.fetch_categories())

    def test_seeds_only_once(self, repo):
        repo.seed_default_categories()
        food = repo.get_category_by_name("食費")
        food.name = "食料品"
        repo.update_category(food)
        repo.seed_default_categories()
        names = [c.name for c in repo.fetch_categories()]
        assert "食費" not in names
        assert "食料品" in names

    def test_custom_defaults(self, repo):
        repo.seed_default_categories([("日用品", "cart.fill", "teal", 1)])
        assert [c.name for c in repo.fetch_categories()] == ["日用品"]


class TestUnknownCategory:
    def test_created_once(self, repo):
        first = repo.ensure_unknown_category()
        second = repo.ensure_unknown_category()
        assert first == second
        unknown = repo.get_category(first)
        assert unknown.name == UNKNOWN_CATEGORY_NAME
        assert unknown.icon == "questionmark.circle"
        assert unknown.sort_order == 999

    def test_recreated_after_logical_delete(self, repo):
        first = repo.ensure_unknown_category()
        repo.delete_category_logically(first)
        second = repo.ensure_unknown_category()
        assert second != first
        assert repo.get_category(second).is_active


class TestCreateCategoriesIfNeeded:
    def test_creates_missing_in_order(self, seeded_repo):
        seeded_repo.create_categories_if_needed(["日用品", "医療"], "tag.fill", "gray")
        created = [c for c in seeded_repo.fetch_categories() if not c.is_default]
        assert [c.name for c in created] == ["日用品", "医療"]
        assert created[0].sort_order + 1 == created[1].sort_order
        assert all(c.icon == "tag.fill" and c.color == "gray" for c in created)

    def test_skips_existing_and_blank(self, seeded_repo):
        before = len(seeded_repo.fetch_categories())
        seeded_repo.create_categories_if_needed(["食費", "  ", ""], "tag.fill", "gray")
        assert len(seeded_repo.fetch_categories()) == before

    def test_sort_order_after_max(self, seeded_repo):
        seeded_repo.ensure_unknown_category()
        seeded_repo.create_categories_if_needed(["新規"], "tag.fill", "gray")
        assert seeded_repo.get_category_by_name("新規").sort_order == 1000


class TestCategoryManagement:
    def test_insert_sets_id(self, repo):
        category = repo.insert_category(Category(name="日用品"))
        assert category.id > 0
        assert repo.get_category(category.id).name == "日用品"

    def test_insert_duplicate_raises(self, seeded_repo):
        with pytest.raises(DuplicateCategoryError):
            seeded_repo.insert_category(Category(name="食費"))

    def test_insert_purges_deleted_same_name(self, repo):
        old = repo.insert_category(Category(name="趣味"))
        repo.delete_category_logically(old.id)
        new = repo.insert_category(Category(name="趣味"))
        assert repo.get_category(old.id) is None
        assert repo.get_category(new.id).is_active

    def test_insert_keeps_deleted_same_name_in_use(self, repo):
        old = repo.insert_category(Category(name="趣味"))
        repo.insert_expense(Expense(amount=1, date="2025-07-01", category_id=old.id))
        repo.delete_category_logically(old.id)
        new = repo.insert_category(Category(name="趣味"))
        assert repo.get_category(old.id).is_active is False
        assert new.id != old.id

    def test_rename_keeps_deleted_same_name_in_use(self, repo):
        old = repo.insert_category(Category(name="外食"))
        repo.insert_expense(Expense(amount=1, date="2025-07-01", category_id=old.id))
        repo.delete_category_logically(old.id)
        hobby = repo.insert_category(Category(name="趣味"))
        hobby.name = "外食"
        repo.update_category(hobby)
        assert repo.get_category(old.id).is_active is False
        assert repo.get_category_by_name("外食").id == hobby.id

    def test_rename_purges_unused_deleted_same_name(self, repo):
        old = repo.insert_category(Category(name="外食"))
        repo.delete_category_logically(old.id)
        hobby = repo.insert_category(Category(name="趣味"))
        hobby.name = "外食"
        repo.update_category(hobby)
        assert repo.get_category(old.id) is None

    def test_update_rename(self, repo):
        c = repo.insert_category(Category(name="趣味"))
        c.name = "ホビー"
        c.color = "red"
        repo.update_category(c)
        stored = repo.get_category(c.id)
        assert stored.name == "ホビー"
        assert stored.color == "red"

    def test_update_rename_onto_existing_raises(self, seeded_repo):
        c = seeded_repo.get_category_by_name("娯楽")
        c.name = "食費"
        with pytest.raises(DuplicateCategoryError):
            seeded_repo.update_category(c)

    def test_update_missing_raises(self, repo):
        with pytest.raises(CategoryNotFoundError):
            repo.update_category(Category(name="x", id=42))

    def test_update_order(self, seeded_repo):
        categories = list(reversed(seeded_repo.fetch_categories()))
        for i, c in enumerate(categories):
            c.sort_order = i
        seeded_repo.update_categories_order(categories)
        assert [c.name for c in seeded_repo.fetch_categories()] == ["家賃", "娯楽", "交通費", "食費"]

    def test_delete_default_raises(self, seeded_repo):
        food = seeded_repo.get_category_by_name("食費")
        with pytest.raises(DefaultCategoryError):
            seeded_repo.delete_category_logically(food.id)

    def test_delete_missing_raises(self, repo):
        with pytest.raises(CategoryNotFoundError):
            repo.delete_category_logically(99)

    def test_delete_is_logical(self, repo):
        c = repo.insert_category(Category(name="趣味"))
        repo.insert_expense(_expense(c.id))
        repo.delete_category_logically(c.id)
        assert repo.get_category_by_name("趣味") is None
        assert repo.get_category(c.id).is_active is False
        assert repo.fetch_expenses()[0].category_id == c.id

    def test_delete_logs_usage(self, repo, caplog):
        c = repo.insert_category(Category(name="趣味"))
        repo.insert_expense(_expense(c.id))
        repo.delete_category_logically(c.id)
        assert "used by 1 expense" in caplog.text

    def test_reset_defaults(self, seeded_repo):
        food = seeded_repo.get_category_by_name("食費")
        food.name = "食料品"
        seeded_repo.update_category(food)
        seeded_repo.insert_category(Category(name="趣味"))
        seeded_repo.reset_default_categories()
        names = {c.name for c in seeded_repo.fetch_categories()}
        assert {"食費", "交通費", "娯楽", "家賃", "趣味"} == names

    def test_fetch_visible(self, seeded_repo):
        food = seeded_repo.get_category_by_name("食費")
        food.is_visible = False
        seeded_repo.update_category(food)
        assert "食費" not in [c.name for c in seeded_repo.fetch_visible_categories()]


class TestExpenses:
    def test_insert_and_get(self, seeded_repo):
        food = seeded_repo.get_category_by_name("食費")
        e = seeded_repo.insert_expense(_expense(food.id, txn_type=TransactionType.INCOME))
        stored = seeded_repo.get_expense(e.id)
        assert stored.amount == 1200.0
        assert stored.note == "ランチ"
        assert stored.txn_type is TransactionType.INCOME

    def test_batch_insert(self, seeded_repo):
        food = seeded_repo.get_category_by_name("食費")
        seeded_repo.insert_expenses([_expense(food.id), _expense(food.id, amount=5.0)])
        assert len(seeded_repo.fetch_expenses()) == 2

    def test_batch_insert_is_atomic(self, seeded_repo):
        food = seeded_repo.get_category_by_name("食費")
        bad = _expense(food.id, amount=None)
        with pytest.raises(sqlite3.IntegrityError):
            seeded_repo.insert_expenses([_expense(food.id), bad])
        assert seeded_repo.fetch_expenses() == []

    def test_update(self, seeded_repo):
        food = seeded_repo.get_category_by_name("食費")
        e = seeded_repo.insert_expense(_expense(food.id))
        e.amount = 999.0
        e.note = "夕食"
        seeded_repo.update_expense(e)
        assert seeded_repo.get_expense(e.id).note == "夕食"

    def test_delete_one_and_many(self, seeded_repo):
        food = seeded_repo.get_category_by_name("食費")
        ids = [seeded_repo.insert_expense(_expense(food.id)).id for _ in range(3)]
        assert seeded_repo.delete_expense(ids[0]) is True
        assert seeded_repo.delete_expense(ids[0]) is False
        assert seeded_repo.delete_expenses(ids[1:] + [12345]) == 2
        assert seeded_repo.fetch_expenses() == []

    def test_fetch_newest_first(self, seeded_repo):
        food = seeded_repo.get_category_by_name("食費")
        seeded_repo.insert_expense(_expense(food.id, date="2025-01-01"))
        seeded_repo.insert_expense(_expense(food.id, date="2025-03-01"))
        seeded_repo.insert_expense(_expense(food.id, date="2025-02-01"))
        assert [e.date for e in seeded_repo.fetch_expenses()] == [
            "2025-03-01", "2025-02-01", "2025-01-01",
        ]

    def test_between_inclusive_oldest_first(self, seeded_repo):
        food = seeded_repo.get_category_by_name("食費")
        for d in ("2025-01-31", "2025-02-01", "2025-02-28", "2025-03-01"):
            seeded_repo.insert_expense(_expense(food.id, date=d))
        got = seeded_repo.get_expenses_between("2025-02-01", "2025-02-28")
        assert [e.date for e in got] == ["2025-02-01", "2025-02-28"]


class TestImports:
    def test_insert_and_lookup(self, repo):
        imp = repo.insert_import(Import(file_name="a.csv", file_hash="h1", inserted_count=3))
        found = repo.get_import_by_hash("h1")
        assert found.id == imp.id
        assert found.inserted_count == 3

    def test_duplicate_hash_raises(self, repo):
        first = repo.insert_import(Import(file_name="a.csv", file_hash="h1"))
        with pytest.raises(DuplicateImportError) as exc_info:
            repo.insert_import(Import(file_name="b.csv", file_hash="h1"))
        assert exc_info.value.existing_import_id == first.id


class TestSettings:
    def test_default_when_missing(self, repo):
        assert repo.get_setting("nope", 5) == 5

    def test_round_trip_json(self, repo):
        repo.set_setting("k", {"メモ": [1, 2]})
        assert repo.get_setting("k") == {"メモ": [1, 2]}

    def test_overwrite(self, repo):
        repo.set_setting("k", 1)
        repo.set_setting("k", 2)
        assert repo.get_setting("k") == 2

    def test_unreadable_value_returns_default(self, repo):
        repo.conn.execute("INSERT INTO settings (key, value) VALUES ('bad', 'not json')")
        assert repo.get_setting("bad", "fallback") == "fallback"
