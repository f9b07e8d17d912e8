"""Tests for memo.store — memo, todos and savings rollover."""

from datetime import date

from kakeibo.memo.store import (
    SAVINGS_CHECKED_MONTH_KEY,
    TODOS_KEY,
    MemoStore,
    TodoKind,
)


class TestFreeMemo:
    def test_empty_by_default(self, repo):
        assert MemoStore(repo).free_memo == ""

    def test_persists(self, repo):
        MemoStore(repo).set_free_memo("今月は節約")
        assert MemoStore(repo).free_memo == "今月は節約"


class TestTodos:
    def test_add_trims_and_inserts_first(self, repo):
        store = MemoStore(repo)
        store.add_todo("牛乳", TodoKind.SHOPPING)
        second = store.add_todo("  卵  ", TodoKind.SHOPPING)
        assert second.title == "卵"
        assert [t.title for t in store.todos] == ["卵", "牛乳"]

    def test_blank_title_ignored(self, repo):
        store = MemoStore(repo)
        assert store.add_todo("   ", TodoKind.GENERAL) is None
        assert store.todos == []

    def test_toggle_sets_and_clears_done_at(self, repo):
        store = MemoStore(repo)
        item = store.add_todo("貯金箱", TodoKind.SAVINGS)
        store.toggle_todo(item.id)
        assert item.is_done is True
        assert item.done_at is not None
        store.toggle_todo(item.id)
        assert item.is_done is False
        assert item.done_at is None

    def test_toggle_unknown_id(self, repo):
        assert MemoStore(repo).toggle_todo("missing") is None

    def test_rename(self, repo):
        store = MemoStore(repo)
        item = store.add_todo("牛乳", TodoKind.SHOPPING)
        store.update_todo_title(item.id, "  豆乳 ")
        assert item.title == "豆乳"
        assert store.update_todo_title(item.id, "   ") is None
        assert item.title == "豆乳"

    def test_delete(self, repo):
        store = MemoStore(repo)
        item = store.add_todo("牛乳", TodoKind.SHOPPING)
        assert store.delete_todo(item.id) is True
        assert store.delete_todo(item.id) is False
        assert store.todos == []

    def test_filter_by_kind(self, repo):
        store = MemoStore(repo)
        store.add_todo("牛乳", TodoKind.SHOPPING)
        store.add_todo("定期預金", TodoKind.SAVINGS)
        assert [t.title for t in store.todos_of(TodoKind.SAVINGS)] == ["定期預金"]

    def test_persisted_across_instances(self, repo):
        store = MemoStore(repo)
        item = store.add_todo("牛乳", TodoKind.SHOPPING)
        store.toggle_todo(item.id)
        reloaded = MemoStore(repo).todos
        assert len(reloaded) == 1
        assert reloaded[0].id == item.id
        assert reloaded[0].kind is TodoKind.SHOPPING
        assert reloaded[0].is_done is True

    def test_unreadable_todos_discarded(self, repo):
        repo.set_setting(TODOS_KEY, [{"title": "no id"}])
        assert MemoStore(repo).todos == []

    def test_resolve_id_prefix(self, repo):
        store = MemoStore(repo)
        item = store.add_todo("牛乳", TodoKind.SHOPPING)
        assert store.resolve_id(item.id[:8]) == item.id
        assert store.resolve_id("zzzz") is None

    def test_kind_titles(self):
        assert TodoKind.SHOPPING.title == "買い物リスト"
        assert TodoKind.SAVINGS.title == "貯金ToDo"
        assert TodoKind.GENERAL.title == "その他ToDo"


class TestSavings:
    def test_target_persists(self, repo):
        MemoStore(repo).set_savings_target(30000)
        assert MemoStore(repo).savings_target_amount == 30000

    def test_checked_kept_within_month(self, repo):
        MemoStore(repo, today=date(2025, 7, 1)).set_savings_checked(True)
        assert MemoStore(repo, today=date(2025, 7, 31)).savings_checked_this_month is True

    def test_checked_resets_in_new_month(self, repo):
        MemoStore(repo, today=date(2025, 7, 1)).set_savings_checked(True)
        store = MemoStore(repo, today=date(2025, 8, 1))
        assert store.savings_checked_this_month is False
        assert repo.get_setting(SAVINGS_CHECKED_MONTH_KEY) == "2025-08"
        assert MemoStore(repo, today=date(2025, 8, 2)).savings_checked_this_month is False
