"""Category management rules that sit above the repository.

The repository enforces name uniqueness and protects default categories.
This module adds the rules the storage layer does not know about:
  - at least one category must stay visible
  - new categories go to the end of the current order
  - reordering rewrites sort_order as 0..n-1
  - expenses pointing at a deleted category show "削除済みカテゴリ"
"""

from __future__ import annotations

import logging

from kakeibo.database.models import (
    DEFAULT_COLOR,
    DEFAULT_ICON,
    UNKNOWN_CATEGORY_NAME,
    Category,
    Expense,
    TransactionType,
)
from kakeibo.database.repository import CategoryNotFoundError, Repository

logger = logging.getLogger(__name__)

DELETED_CATEGORY_NAME = "削除済みカテゴリ"


class LastVisibleCategoryError(Exception):
    """Raised when hiding the only category that is still visible."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Cannot hide '{name}': at least one category must stay visible"
        )


def _require_active(repo: Repository, category_id: int) -> Category:
    category = repo.get_category(category_id)
    if category is None or not category.is_active:
        raise CategoryNotFoundError(category_id)
    return category


def _clean_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned:
        raise ValueError("Category name must not be empty")
    return cleaned


def add_category(
    repo: Repository,
    name: str,
    icon: str = DEFAULT_ICON,
    color: str = DEFAULT_COLOR,
    txn_type: TransactionType = TransactionType.EXPENSE,
) -> Category:
    """Create a visible user category at the end of the list.

    Raises:
        ValueError: If the name is blank.
        DuplicateCategoryError: If an active category already has the name.
    """
    category = Category(
        name=_clean_name(name),
        icon=icon,
        color=color,
        sort_order=len(repo.fetch_categories()),
        txn_type=txn_type,
    )
    repo.insert_category(category)
    logger.info("Added category '%s' (id=%d)", category.name, category.id)
    return category


def edit_category(
    repo: Repository,
    category_id: int,
    name: str | None = None,
    icon: str | None = None,
    color: str | None = None,
) -> Category:
    category = _require_active(repo, category_id)
    if name is not None:
        category.name = _clean_name(name)
    if icon is not None:
        category.icon = icon
    if color is not None:
        category.color = color
    repo.update_category(category)
    return category


def set_visibility(repo: Repository, category_id: int, visible: bool) -> Category:
    """Show or hide a category.

    Raises:
        CategoryNotFoundError: If the category is missing or deleted.
        LastVisibleCategoryError: If hiding would leave nothing visible.
    """
    category = _require_active(repo, category_id)
    if category.is_visible == visible:
        return category
    if not visible:
        visible_count = sum(1 for c in repo.fetch_categories() if c.is_visible)
        if visible_count <= 1:
            raise LastVisibleCategoryError(category.name)
    category.is_visible = visible
    repo.update_category(category)
    logger.info(
        "Category '%s' is now %s", category.name, "visible" if visible else "hidden",
    )
    return category


def move_category(repo: Repository, category_id: int, position: int) -> list[Category]:
    """Move a category to a 0-based position and renumber every sort_order."""
    categories = repo.fetch_categories()
    index = next((i for i, c in enumerate(categories) if c.id == category_id), None)
    if index is None:
        raise CategoryNotFoundError(category_id)
    if not 0 <= position < len(categories):
        raise ValueError(
            f"Position {position} out of range (0-{len(categories) - 1})"
        )
    moved = categories.pop(index)
    categories.insert(position, moved)
    for i, c in enumerate(categories):
        c.sort_order = i
    repo.update_categories_order(categories)
    return categories


def delete_category(repo: Repository, category_id: int) -> int:
    """Logically delete a category. Returns how many expenses still use it."""
    usage = repo.count_category_usage(category_id)
    repo.delete_category_logically(category_id)
    return usage


def active_category_names(repo: Repository) -> dict[int, str]:
    """id -> name for active categories, as used by the CSV export."""
    return {c.id: c.name for c in repo.fetch_categories()}


def display_names(repo: Repository, expenses: list[Expense]) -> dict[int, str]:
    """id -> name for showing expenses, covering deleted categories too.

    Expenses may still point at logically deleted categories; those ids map
    to DELETED_CATEGORY_NAME. Ids that exist nowhere are left out.
    """
    names = active_category_names(repo)
    for category_id in {e.category_id for e in expenses} - names.keys():
        if repo.get_category(category_id) is not None:
            names[category_id] = DELETED_CATEGORY_NAME
    return names


def category_display_name(names: dict[int, str], category_id: int) -> str:
    return names.get(category_id, UNKNOWN_CATEGORY_NAME)


def deleted_category_usage(repo: Repository, expenses: list[Expense]) -> list[tuple[int, int]]:
    """(category_id, expense count) for deleted categories still in use, busiest first."""
    names = display_names(repo, expenses)
    counts: dict[int, int] = {}
    for e in expenses:
        if names.get(e.category_id) == DELETED_CATEGORY_NAME:
            counts[e.category_id] = counts.get(e.category_id, 0) + 1
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)
