"""Free-text memo, todo lists and the monthly savings check.

Everything is kept as JSON values in the settings table, one key per item.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kakeibo.database.repository import Repository

logger = logging.getLogger(__name__)

MEMO_KEY = "memo.freeText.v1"
TODOS_KEY = "memo.todos.v1"
SAVINGS_TARGET_KEY = "memo.savingsTargetAmount.v1"
SAVINGS_CHECKED_KEY = "memo.savingsChecked.v1"
SAVINGS_CHECKED_MONTH_KEY = "memo.savingsCheckedMonth.v1"


class TodoKind(str, Enum):
    SHOPPING = "shopping"
    SAVINGS = "savings"
    GENERAL = "general"

    @property
    def title(self) -> str:
        return _KIND_TITLES[self]


_KIND_TITLES = {
    TodoKind.SHOPPING: "買い物リスト",
    TodoKind.SAVINGS: "貯金ToDo",
    TodoKind.GENERAL: "その他ToDo",
}


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


@dataclass
class TodoItem:
    title: str
    kind: TodoKind
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    is_done: bool = False
    created_at: str = field(default_factory=_now)
    done_at: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> TodoItem:
        return cls(
            id=data["id"],
            title=data["title"],
            kind=TodoKind(data["kind"]),
            is_done=bool(data.get("is_done", False)),
            created_at=data.get("created_at") or _now(),
            done_at=data.get("done_at"),
        )


class MemoStore:
    """Memo and todo state for one settings store.

    Each mutation is written back immediately. The savings check flag is
    cleared the first time the store is opened in a new month.
    """

    def __init__(self, repo: Repository, today: date | None = None):
        self.repo = repo
        self.free_memo: str = repo.get_setting(MEMO_KEY, "")
        self.todos: list[TodoItem] = self._load_todos()
        self.savings_target_amount: float = float(repo.get_setting(SAVINGS_TARGET_KEY, 0) or 0)
        self.savings_checked_this_month: bool = bool(repo.get_setting(SAVINGS_CHECKED_KEY, False))
        self._rollover_savings(today or date.today())

    def _load_todos(self) -> list[TodoItem]:
        raw = self.repo.get_setting(TODOS_KEY, [])
        try:
            return [TodoItem.from_dict(item) for item in raw]
        except (KeyError, TypeError, ValueError):
            logger.warning("Discarding unreadable todo list in setting '%s'", TODOS_KEY)
            return []

    def _rollover_savings(self, today: date) -> None:
        current = today.strftime("%Y-%m")
        if self.repo.get_setting(SAVINGS_CHECKED_MONTH_KEY) != current:
            self.savings_checked_this_month = False
            self.repo.set_setting(SAVINGS_CHECKED_KEY, False)
            self.repo.set_setting(SAVINGS_CHECKED_MONTH_KEY, current)

    def _save_todos(self) -> None:
        self.repo.set_setting(TODOS_KEY, [t.to_dict() for t in self.todos])

    def _find(self, todo_id: str) -> TodoItem | None:
        return next((t for t in self.todos if t.id == todo_id), None)

    # ── Memo ────────────────────────────────────────────────

    def set_free_memo(self, text: str) -> None:
        self.free_memo = text
        self.repo.set_setting(MEMO_KEY, text)

    # ── Todos ───────────────────────────────────────────────

    def add_todo(self, title: str, kind: TodoKind) -> TodoItem | None:
        """Add a todo at the top of the list. Blank titles are ignored."""
        trimmed = title.strip()
        if not trimmed:
            return None
        item = TodoItem(title=trimmed, kind=kind)
        self.todos.insert(0, item)
        self._save_todos()
        return item

    def toggle_todo(self, todo_id: str) -> TodoItem | None:
        item = self._find(todo_id)
        if item is None:
            return None
        item.is_done = not item.is_done
        item.done_at = _now() if item.is_done else None
        self._save_todos()
        return item

    def delete_todo(self, todo_id: str) -> bool:
        before = len(self.todos)
        self.todos = [t for t in self.todos if t.id != todo_id]
        if len(self.todos) == before:
            return False
        self._save_todos()
        return True

    def update_todo_title(self, todo_id: str, title: str) -> TodoItem | None:
        trimmed = title.strip()
        item = self._find(todo_id)
        if not trimmed or item is None:
            return None
        item.title = trimmed
        self._save_todos()
        return item

    def todos_of(self, kind: TodoKind) -> list[TodoItem]:
        return [t for t in self.todos if t.kind is kind]

    def resolve_id(self, prefix: str) -> str | None:
        """Full todo id for a unique id prefix, or None."""
        matches = [t.id for t in self.todos if t.id.startswith(prefix)]
        return matches[0] if len(matches) == 1 else None

    # ── Savings ─────────────────────────────────────────────

    def set_savings_target(self, amount: float) -> None:
        self.savings_target_amount = amount
        self.repo.set_setting(SAVINGS_TARGET_KEY, amount)

    def set_savings_checked(self, checked: bool) -> None:
        self.savings_checked_this_month = checked
        self.repo.set_setting(SAVINGS_CHECKED_KEY, checked)
