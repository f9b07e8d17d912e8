"""Dataclass models matching the SQLite schema.

Each dataclass corresponds to one table. Fields match column names exactly.
Expenses and categories use INTEGER AUTOINCREMENT keys (0 = not yet saved);
import ledger entries use TEXT UUID keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from uuid import uuid4

UNKNOWN_CATEGORY_NAME = "不明"
UNKNOWN_CATEGORY_ICON = "questionmark.circle"
UNKNOWN_CATEGORY_COLOR = "gray"
UNKNOWN_CATEGORY_SORT_ORDER = 999

DEFAULT_ICON = "tag.fill"
DEFAULT_COLOR = "gray"
DEFAULT_USER_ID = 1


def _new_id() -> str:
    return str(uuid4())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class TransactionType(IntEnum):
    EXPENSE = 0
    INCOME = 1


@dataclass
class Expense:
    amount: float
    date: str              # YYYY-MM-DD
    category_id: int
    note: str = ""
    id: int = 0
    txn_type: TransactionType = TransactionType.EXPENSE
    user_id: int = DEFAULT_USER_ID


@dataclass
class Category:
    name: str
    icon: str = DEFAULT_ICON
    color: str = DEFAULT_COLOR
    id: int = 0
    is_default: bool = False
    is_visible: bool = True
    is_active: bool = True
    sort_order: int = 0
    txn_type: TransactionType = TransactionType.EXPENSE
    created_at: str = field(default_factory=_now)


@dataclass
class Import:
    file_name: str
    file_hash: str
    id: str = field(default_factory=_new_id)
    inserted_count: int = 0
    skipped_count: int = 0
    created_at: str = field(default_factory=_now)


# name, icon, color, sort_order
DEFAULT_CATEGORIES: list[tuple[str, str, str, int]] = [
    ("食費", "fork.knife", "green", 1),
    ("交通費", "car.fill", "blue", 2),
    ("娯楽", "gamecontroller.fill", "purple", 3),
    ("家賃", "house.fill", "orange", 4),
]
