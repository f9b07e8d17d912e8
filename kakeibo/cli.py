"""CLI entry point for kakeibo.

Commands:
    kakeibo import FILE [--yes]        Preview and import a 日付,金額,カテゴリ,メモ CSV
    kakeibo export [--period P]        Write expenses for a period to a CSV file
    kakeibo add AMOUNT                 Record an expense (or --income)
    kakeibo edit ID                    Change fields of a record
    kakeibo delete ID [ID ...]         Delete records
    kakeibo list [--month YYYY-MM]     List records, newest first
    kakeibo summary [--month YYYY-MM]  Category and daily totals for a month
    kakeibo trend [--months N]         Monthly expense / income / net
    kakeibo category ...               list, add, edit, hide, show, delete, reorder, reset
    kakeibo memo ...                   Free memo, todos and the monthly savings check
    kakeibo remind ...                 Daily reminder times
    kakeibo watch                      Auto-import CSV files dropped in the watch folder
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from datetime import date, datetime
from pathlib import Path

logger = logging.getLogger(__name__)


def _setup_logging() -> None:
    """Configure logging based on KAKEIBO_LOG_LEVEL env var."""
    level = os.environ.get("KAKEIBO_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _get_config():
    """Load application config, or None when there is no config directory."""
    from kakeibo.config import Config

    config_dir = os.environ.get("KAKEIBO_CONFIG_DIR", "config")
    if not Path(config_dir).is_dir():
        logger.debug("No config directory at %s; using built-in defaults", config_dir)
        return None
    return Config(config_dir=config_dir)


def _get_repo():
    """Create a Repository connected to the configured database."""
    from kakeibo.database.repository import Repository

    db_path = os.environ.get("KAKEIBO_DB_PATH", "kakeibo.db")
    return Repository(db_path=db_path)


def _get_watch_dir() -> Path:
    return Path(os.environ.get("KAKEIBO_WATCH_DIR", "import"))


def _get_migrations_dir() -> Path:
    """Get the migrations directory path."""
    from kakeibo.database.repository import DEFAULT_MIGRATIONS_DIR

    return Path(os.environ.get("KAKEIBO_MIGRATIONS_DIR", DEFAULT_MIGRATIONS_DIR))


def _open_repo(config=None):
    """Repository with the schema applied and default categories seeded."""
    repo = _get_repo()
    repo.apply_migrations(_get_migrations_dir())
    repo.seed_default_categories(config.default_categories() if config else None)
    return repo


def _session_kwargs(config) -> dict:
    if config is None:
        return {}
    return {
        "default_icon": config.import_default_icon,
        "default_color": config.import_default_color,
        "user_id": config.import_user_id,
    }


def _confirm(prompt: str) -> bool:
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def _parse_iso_date(text: str) -> date:
    try:
        return date.fromisoformat(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid date '{text}' (expected YYYY-MM-DD)") from e


def _parse_month(text: str) -> str:
    try:
        return datetime.strptime(text, "%Y-%m").strftime("%Y-%m")
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid month '{text}' (expected YYYY-MM)") from e


def _current_month() -> str:
    return date.today().strftime("%Y-%m")


def _format_yen(amount: float) -> str:
    return f"¥{amount:,.0f}"


# ── Command handlers: import / export ────────────────────


def _print_preview(session) -> None:
    rows = session.rows
    shown = session.preview()
    print(f"{len(rows)} row(s): {len(session.valid_rows)} valid, {len(session.error_rows)} with errors")
    if session.created_categories:
        print(f"New categories: {', '.join(session.created_categories)}")
    print("-" * 60)
    for row in shown:
        if row.error is not None:
            print(f"  Line {row.line:>4}: ERROR {row.error}")
            continue
        category = row.category_resolved_name
        if row.category_raw_name and row.category_raw_name != category:
            category = f"{row.category_raw_name} -> {category}"
        print(
            f"  Line {row.line:>4}: {row.date_text}  {row.amount_text:>10}"
            f"  {category}  {row.note}"
        )
    if len(rows) > len(shown):
        print(f"  ... and {len(rows) - len(shown)} more row(s)")


def cmd_import(args: argparse.Namespace) -> int:
    """Preview a CSV file, confirm, then commit its valid rows."""
    from kakeibo.database.models import Import
    from kakeibo.importer.session import CsvSchemaError, ImportSession
    from kakeibo.parsers.base import CsvDecodeError, compute_file_hash

    filepath = Path(args.file).resolve()
    if not filepath.is_file():
        print(f"Error: File not found: {filepath}")
        return 1

    config = _get_config()
    repo = _open_repo(config)
    try:
        file_hash = compute_file_hash(filepath)
        existing = repo.get_import_by_hash(file_hash)
        if existing is not None and not args.allow_duplicate:
            print(
                f"Error: {filepath.name} was already imported"
                f" ({existing.inserted_count} row(s) on {existing.created_at})."
                " Use --allow-duplicate to import it again."
            )
            return 1

        session = ImportSession(repo, **_session_kwargs(config))
        try:
            session.load_file(filepath)
        except (OSError, CsvDecodeError, CsvSchemaError) as e:
            print(f"Error: {e}")
            return 1

        _print_preview(session)

        if not session.can_commit:
            print("Nothing to import: every row has an error.")
            return 1

        if not args.yes and not _confirm(f"Import {len(session.valid_rows)} row(s)?"):
            print("Import cancelled.")
            return 0

        summary = session.commit()
        if existing is None:
            repo.insert_import(Import(
                file_name=filepath.name,
                file_hash=file_hash,
                inserted_count=summary.inserted,
                skipped_count=summary.skipped,
            ))
        print(f"Imported {summary.inserted} row(s), skipped {summary.skipped}.")
        return 0
    finally:
        repo.close()


def cmd_export(args: argparse.Namespace) -> int:
    """Write the records of one period to expenses_YYYYMMDD_HHMMSS.csv."""
    from kakeibo.categories import active_category_names
    from kakeibo.export.periods import (
        ExportPeriod,
        describe_period,
        filter_expenses,
        save_export,
    )
    from kakeibo.export.writer import write_csv

    period = ExportPeriod(args.period)
    if period is ExportPeriod.CUSTOM:
        if args.start is None or args.end is None:
            print("Error: --period custom needs --start and --end")
            return 1
        if args.start > args.end:
            print("Error: --start must not be after --end")
            return 1

    config = _get_config()
    repo = _open_repo(config)
    try:
        expenses = filter_expenses(
            repo.fetch_expenses(), period, start=args.start, end=args.end,
        )
        print(f"Period:  {describe_period(period, expenses, start=args.start, end=args.end)}")
        print(f"Records: {len(expenses)}")
        print(f"Total:   {_format_yen(sum(e.amount for e in expenses))}")
        if not expenses:
            print("Nothing to export.")
            return 1

        out_dir = args.out_dir
        if out_dir is None:
            out_dir = config.export_directory if config else Path("exports")
        text = write_csv(expenses, active_category_names(repo))
        path = save_export(text, out_dir)
        print(f"Wrote {path}")
        return 0
    finally:
        repo.close()


# ── Command handlers: records ────────────────────────────


def _resolve_category_id(repo, name: str | None) -> int | None:
    """Category id by name, or the first visible category when name is None."""
    if name is None:
        visible = repo.fetch_visible_categories()
        if visible:
            return visible[0].id
        return repo.ensure_unknown_category()
    category = repo.get_category_by_name(name.strip())
    return category.id if category else None


def cmd_add(args: argparse.Namespace) -> int:
    from kakeibo.database.models import DEFAULT_USER_ID, Expense, TransactionType
    from kakeibo.parsers.base import parse_amount

    amount = parse_amount(args.amount)
    if amount is None:
        print(f"Error: Invalid amount: {args.amount}")
        return 1

    config = _get_config()
    repo = _open_repo(config)
    try:
        category_id = _resolve_category_id(repo, args.category)
        if category_id is None:
            print(f"Error: Category '{args.category}' not found.")
            return 1
        expense = repo.insert_expense(Expense(
            amount=amount,
            date=(args.date or date.today()).isoformat(),
            note=args.note,
            category_id=category_id,
            txn_type=TransactionType.INCOME if args.income else TransactionType.EXPENSE,
            user_id=config.import_user_id if config else DEFAULT_USER_ID,
        ))
        print(f"Added #{expense.id}: {expense.date} {_format_yen(expense.amount)}")
        return 0
    finally:
        repo.close()


def cmd_edit(args: argparse.Namespace) -> int:
    from kakeibo.database.models import TransactionType
    from kakeibo.parsers.base import parse_amount

    config = _get_config()
    repo = _open_repo(config)
    try:
        expense = repo.get_expense(args.id)
        if expense is None:
            print(f"Error: Record #{args.id} not found.")
            return 1
        if args.amount is not None:
            amount = parse_amount(args.amount)
            if amount is None:
                print(f"Error: Invalid amount: {args.amount}")
                return 1
            expense.amount = amount
        if args.date is not None:
            expense.date = args.date.isoformat()
        if args.note is not None:
            expense.note = args.note
        if args.category is not None:
            category_id = _resolve_category_id(repo, args.category)
            if category_id is None:
                print(f"Error: Category '{args.category}' not found.")
                return 1
            expense.category_id = category_id
        if args.type is not None:
            expense.txn_type = TransactionType[args.type.upper()]
        repo.update_expense(expense)
        print(f"Updated #{expense.id}.")
        return 0
    finally:
        repo.close()


def cmd_delete(args: argparse.Namespace) -> int:
    config = _get_config()
    repo = _open_repo(config)
    try:
        removed = repo.delete_expenses(args.ids)
        print(f"Deleted {removed} record(s).")
        return 0 if removed == len(set(args.ids)) else 1
    finally:
        repo.close()


def cmd_list(args: argparse.Namespace) -> int:
    from kakeibo.categories import category_display_name, display_names
    from kakeibo.database.models import TransactionType

    config = _get_config()
    repo = _open_repo(config)
    try:
        expenses = repo.fetch_expenses()
        if args.month:
            expenses = [e for e in expenses if e.date.startswith(args.month + "-")]
        if not expenses:
            print("No records.")
            return 0
        names = display_names(repo, expenses)
        for e in expenses:
            sign = "+" if e.txn_type is TransactionType.INCOME else " "
            print(
                f"  #{e.id:<5} {e.date}  {sign}{_format_yen(e.amount):>12}"
                f"  {category_display_name(names, e.category_id)}  {e.note}"
            )
        return 0
    finally:
        repo.close()


def cmd_summary(args: argparse.Namespace) -> int:
    """Category totals and daily totals for one month."""
    from kakeibo.database.models import TransactionType
    from kakeibo.database.queries import (
        get_category_totals,
        get_daily_totals,
        get_month_total,
    )

    month = args.month or _current_month()
    config = _get_config()
    repo = _open_repo(config)
    try:
        expense_total = get_month_total(repo.conn, month)
        income_total = get_month_total(repo.conn, month, TransactionType.INCOME)
        print(f"Summary for {month}")
        print("=" * 40)
        print(f"  Expense: {_format_yen(expense_total)}")
        print(f"  Income:  {_format_yen(income_total)}")
        print(f"  Net:     {_format_yen(income_total - expense_total)}")

        print("\nBy category:")
        for row in get_category_totals(repo.conn, month):
            pct = f"{row['percentage']:5.1f}%" if row["percentage"] is not None else "     -"
            print(f"  {row['name']:<12} {_format_yen(row['total']):>12} {pct}")

        daily = get_daily_totals(repo.conn, month)
        if daily:
            print("\nBy day:")
            for day, total in daily.items():
                print(f"  {day}  {_format_yen(total):>12}")
        return 0
    finally:
        repo.close()


def cmd_trend(args: argparse.Namespace) -> int:
    """Monthly expense, income and net over a window of months."""
    from kakeibo.database.queries import get_monthly_series, shift_month

    if args.months < 1:
        print("Error: --months must be at least 1")
        return 1
    start = args.start or shift_month(_current_month(), -(args.months - 1))

    config = _get_config()
    repo = _open_repo(config)
    try:
        print(f"{'Month':<8} {'Expense':>12} {'Income':>12} {'Net':>12}")
        for row in get_monthly_series(repo.conn, start, args.months):
            print(
                f"{row['month']:<8} {_format_yen(row['expense']):>12}"
                f" {_format_yen(row['income']):>12} {_format_yen(row['net']):>12}"
            )
        return 0
    finally:
        repo.close()


# ── Category management ──────────────────────────────────


def cmd_category(args: argparse.Namespace) -> int:
    """Category management commands."""
    from kakeibo.categories import LastVisibleCategoryError
    from kakeibo.database.repository import (
        CategoryNotFoundError,
        DefaultCategoryError,
        DuplicateCategoryError,
    )

    sub = args.category_command
    if sub is None:
        print("Usage: kakeibo category {list,add,edit,hide,show,delete,reorder,reset}")
        return 1

    handler = _CATEGORY_COMMANDS.get(sub)
    if handler is None:
        return 1

    config = _get_config()
    repo = _open_repo(config)
    try:
        return handler(repo, config, args)
    except (
        CategoryNotFoundError,
        DefaultCategoryError,
        DuplicateCategoryError,
        LastVisibleCategoryError,
        ValueError,
    ) as e:
        print(f"Error: {e}")
        return 1
    finally:
        repo.close()


def _cmd_category_list(repo, config, args: argparse.Namespace) -> int:
    from kakeibo.categories import deleted_category_usage

    for c in repo.fetch_categories():
        flags = []
        if not c.is_visible:
            flags.append("hidden")
        if c.is_default:
            flags.append("default")
        suffix = f"  ({', '.join(flags)})" if flags else ""
        print(f"  [{c.id:>3}] {c.name}  {c.icon} / {c.color}{suffix}")

    usage = deleted_category_usage(repo, repo.fetch_expenses())
    if usage:
        print("\nDeleted categories still in use:")
        for category_id, count in usage:
            print(f"  [{category_id:>3}] {count} record(s)")
    return 0


def _cmd_category_add(repo, config, args: argparse.Namespace) -> int:
    from kakeibo.categories import add_category
    from kakeibo.database.models import TransactionType

    category = add_category(
        repo, args.name, icon=args.icon, color=args.color,
        txn_type=TransactionType.INCOME if args.income else TransactionType.EXPENSE,
    )
    print(f"Added '{category.name}' (id={category.id}).")
    return 0


def _cmd_category_edit(repo, config, args: argparse.Namespace) -> int:
    from kakeibo.categories import edit_category

    category = edit_category(
        repo, args.id, name=args.name, icon=args.icon, color=args.color,
    )
    print(f"Updated '{category.name}' (id={category.id}).")
    return 0


def _cmd_category_hide(repo, config, args: argparse.Namespace) -> int:
    from kakeibo.categories import set_visibility

    category = set_visibility(repo, args.id, False)
    print(f"'{category.name}' is now hidden.")
    return 0


def _cmd_category_show(repo, config, args: argparse.Namespace) -> int:
    from kakeibo.categories import set_visibility

    category = set_visibility(repo, args.id, True)
    print(f"'{category.name}' is now visible.")
    return 0


def _cmd_category_delete(repo, config, args: argparse.Namespace) -> int:
    from kakeibo.categories import delete_category

    usage = delete_category(repo, args.id)
    print(f"Deleted category {args.id}.")
    if usage:
        print(f"{usage} record(s) still use it and will show as 削除済みカテゴリ.")
    return 0


def _cmd_category_reorder(repo, config, args: argparse.Namespace) -> int:
    from kakeibo.categories import move_category

    categories = move_category(repo, args.id, args.position - 1)
    print("New order: " + ", ".join(c.name for c in categories))
    return 0


def _cmd_category_reset(repo, config, args: argparse.Namespace) -> int:
    repo.reset_default_categories(config.default_categories() if config else None)
    print("Default categories restored.")
    return 0


_CATEGORY_COMMANDS = {
    "list": _cmd_category_list,
    "add": _cmd_category_add,
    "edit": _cmd_category_edit,
    "hide": _cmd_category_hide,
    "show": _cmd_category_show,
    "delete": _cmd_category_delete,
    "reorder": _cmd_category_reorder,
    "reset": _cmd_category_reset,
}


# ── Memo ─────────────────────────────────────────────────


def _print_todos(store) -> None:
    from kakeibo.memo.store import TodoKind

    for kind in TodoKind:
        items = store.todos_of(kind)
        print(f"\n{kind.title} ({len(items)})")
        for item in items:
            mark = "x" if item.is_done else " "
            print(f"  [{mark}] {item.id[:8]}  {item.title}")


def cmd_memo(args: argparse.Namespace) -> int:
    """Free memo, todo lists and the monthly savings check."""
    from kakeibo.memo.store import MemoStore, TodoKind

    sub = args.memo_command
    if sub is None:
        print("Usage: kakeibo memo {show,set,todo-add,todo-toggle,todo-rename,todo-delete,savings}")
        return 1

    repo = _open_repo(_get_config())
    try:
        store = MemoStore(repo)

        if sub == "show":
            print("Memo:")
            print(store.free_memo or "(empty)")
            _print_todos(store)
            checked = "done" if store.savings_checked_this_month else "not yet"
            print(f"\nSavings target: {_format_yen(store.savings_target_amount)} (this month: {checked})")
            return 0

        if sub == "set":
            store.set_free_memo(args.text)
            print("Memo saved.")
            return 0

        if sub == "todo-add":
            item = store.add_todo(args.title, TodoKind(args.kind))
            if item is None:
                print("Error: Todo title must not be empty.")
                return 1
            print(f"Added {item.id[:8]}: {item.title}")
            return 0

        if sub == "savings":
            if args.target is not None:
                store.set_savings_target(args.target)
            if args.check is not None:
                store.set_savings_checked(args.check)
            checked = "done" if store.savings_checked_this_month else "not yet"
            print(f"Savings target: {_format_yen(store.savings_target_amount)} (this month: {checked})")
            return 0

        todo_id = store.resolve_id(args.id)
        if todo_id is None:
            print(f"Error: No single todo matches '{args.id}'.")
            return 1

        if sub == "todo-toggle":
            item = store.toggle_todo(todo_id)
            print(f"{item.title}: {'done' if item.is_done else 'open'}")
        elif sub == "todo-rename":
            item = store.update_todo_title(todo_id, args.title)
            if item is None:
                print("Error: Todo title must not be empty.")
                return 1
            print(f"Renamed to: {item.title}")
        elif sub == "todo-delete":
            store.delete_todo(todo_id)
            print("Todo deleted.")
        return 0
    finally:
        repo.close()


# ── Reminders ────────────────────────────────────────────


def cmd_remind(args: argparse.Namespace) -> int:
    """Daily reminder schedule."""
    from kakeibo.reminders import REMINDER_BODY, REMINDER_TITLE, ReminderSettings, ReminderTime

    sub = args.remind_command
    if sub is None:
        print("Usage: kakeibo remind {list,add,remove,toggle,update,reset,on,off,next}")
        return 1

    config = _get_config()
    repo = _open_repo(config)
    try:
        reminders = ReminderSettings(
            repo, default_times=config.reminder_default_times if config else None,
        )

        if sub == "list":
            print(f"Reminders: {'on' if reminders.enabled else 'off'}")
            for i, t in enumerate(reminders.times, start=1):
                print(f"  {i}. {t.display_time}{'' if t.is_enabled else '  (disabled)'}")
            return 0

        if sub in ("on", "off"):
            reminders.set_enabled(sub == "on")
            print(f"Reminders turned {sub}.")
            return 0

        if sub == "reset":
            reminders.reset_to_default()
            print("Reminder times reset.")
            return 0

        if sub == "next":
            due = reminders.next_due()
            if due is None:
                print("No reminder scheduled.")
                return 0
            print(f"{due:%Y-%m-%d %H:%M}  {REMINDER_TITLE}: {REMINDER_BODY}")
            return 0

        if sub == "add":
            time_ = ReminderTime.parse(args.time)
            reminders.add_time(time_.hour, time_.minute)
            print(f"Added {time_.display_time}.")
            return 0

        index = args.index - 1
        if sub == "remove":
            ok = reminders.remove_time(index)
        elif sub == "toggle":
            ok = reminders.toggle_time(index)
        else:
            time_ = ReminderTime.parse(args.time)
            ok = reminders.update_time(index, time_.hour, time_.minute)
        if not ok:
            print(f"Error: No reminder number {args.index}.")
            return 1
        print("Reminders updated.")
        return 0
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    finally:
        repo.close()


# ── Watcher ──────────────────────────────────────────────


def cmd_watch(args: argparse.Namespace) -> int:
    """Start the file watcher daemon."""
    from kakeibo.watcher.observer import FileWatcher, ImportPipeline

    config = _get_config()
    repo = _open_repo(config)

    pipeline = ImportPipeline(repo=repo, config=config)
    watcher = FileWatcher(watch_dir=_get_watch_dir(), pipeline=pipeline)

    print(f"Watching {watcher.watch_dir} for CSV files... (Ctrl+C to stop)")
    watcher.start()

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nStopping watcher...")
    finally:
        watcher.stop()
        repo.close()

    return 0


# ── Main entry point ─────────────────────────────────────


_COMMANDS = {
    "import": cmd_import,
    "export": cmd_export,
    "add": cmd_add,
    "edit": cmd_edit,
    "delete": cmd_delete,
    "list": cmd_list,
    "summary": cmd_summary,
    "trend": cmd_trend,
    "category": cmd_category,
    "memo": cmd_memo,
    "remind": cmd_remind,
    "watch": cmd_watch,
}


def main(argv: list[str] | None = None):
    _setup_logging()

    parser = argparse.ArgumentParser(
        prog="kakeibo",
        description="kakeibo household expense ledger",
    )
    subparsers = parser.add_subparsers(dest="command")

    # import
    import_p = subparsers.add_parser("import", help="Import a 日付,金額,カテゴリ,メモ CSV file")
    import_p.add_argument("file", type=Path, help="CSV file (UTF-8 or Shift-JIS)")
    import_p.add_argument("--yes", "-y", action="store_true", help="Commit without asking")
    import_p.add_argument(
        "--allow-duplicate", action="store_true",
        help="Import even if this exact file was imported before",
    )

    # export
    export_p = subparsers.add_parser("export", help="Export records to CSV")
    export_p.add_argument(
        "--period", default="all",
        choices=["all", "this-month", "last-month", "this-year", "custom"],
    )
    export_p.add_argument("--start", type=_parse_iso_date, help="Custom period start (YYYY-MM-DD)")
    export_p.add_argument("--end", type=_parse_iso_date, help="Custom period end (YYYY-MM-DD)")
    export_p.add_argument("--out-dir", type=Path, help="Directory for the export file")

    # add
    add_p = subparsers.add_parser("add", help="Record an expense or income")
    add_p.add_argument("amount", help="Amount, e.g. 1200 or 1,200")
    add_p.add_argument("--date", type=_parse_iso_date, help="Date (YYYY-MM-DD, default today)")
    add_p.add_argument("--category", help="Category name (default: first visible)")
    add_p.add_argument("--note", default="", help="Free-text memo")
    add_p.add_argument("--income", action="store_true", help="Record as income")

    # edit
    edit_p = subparsers.add_parser("edit", help="Change a record")
    edit_p.add_argument("id", type=int)
    edit_p.add_argument("--amount")
    edit_p.add_argument("--date", type=_parse_iso_date)
    edit_p.add_argument("--category")
    edit_p.add_argument("--note")
    edit_p.add_argument("--type", choices=["expense", "income"])

    # delete
    delete_p = subparsers.add_parser("delete", help="Delete records")
    delete_p.add_argument("ids", type=int, nargs="+", metavar="ID")

    # list
    list_p = subparsers.add_parser("list", help="List records, newest first")
    list_p.add_argument("--month", type=_parse_month, help="Only this month (YYYY-MM)")

    # summary
    summary_p = subparsers.add_parser("summary", help="Monthly totals by category and day")
    summary_p.add_argument("--month", type=_parse_month, help="Month (YYYY-MM, default current)")

    # trend
    trend_p = subparsers.add_parser("trend", help="Monthly expense, income and net")
    trend_p.add_argument("--months", type=int, default=12, help="Number of months (default 12)")
    trend_p.add_argument("--start", type=_parse_month, help="First month (YYYY-MM)")

    # category
    cat_p = subparsers.add_parser("category", help="Manage categories")
    cat_sub = cat_p.add_subparsers(dest="category_command")
    cat_sub.add_parser("list", help="List active categories")
    cat_add_p = cat_sub.add_parser("add", help="Add a category")
    cat_add_p.add_argument("name")
    cat_add_p.add_argument("--icon", default="tag.fill")
    cat_add_p.add_argument("--color", default="gray")
    cat_add_p.add_argument("--income", action="store_true", help="Income category")
    cat_edit_p = cat_sub.add_parser("edit", help="Rename or restyle a category")
    cat_edit_p.add_argument("id", type=int)
    cat_edit_p.add_argument("--name")
    cat_edit_p.add_argument("--icon")
    cat_edit_p.add_argument("--color")
    cat_hide_p = cat_sub.add_parser("hide", help="Hide a category from pickers")
    cat_hide_p.add_argument("id", type=int)
    cat_show_p = cat_sub.add_parser("show", help="Show a hidden category")
    cat_show_p.add_argument("id", type=int)
    cat_delete_p = cat_sub.add_parser("delete", help="Delete a user category")
    cat_delete_p.add_argument("id", type=int)
    cat_reorder_p = cat_sub.add_parser("reorder", help="Move a category to a position")
    cat_reorder_p.add_argument("id", type=int)
    cat_reorder_p.add_argument("position", type=int, help="1-based position")
    cat_sub.add_parser("reset", help="Restore the default categories")

    # memo
    memo_p = subparsers.add_parser("memo", help="Memo, todos and savings check")
    memo_sub = memo_p.add_subparsers(dest="memo_command")
    memo_sub.add_parser("show", help="Show memo, todos and savings")
    memo_set_p = memo_sub.add_parser("set", help="Replace the free memo")
    memo_set_p.add_argument("text")
    todo_add_p = memo_sub.add_parser("todo-add", help="Add a todo")
    todo_add_p.add_argument("kind", choices=["shopping", "savings", "general"])
    todo_add_p.add_argument("title")
    todo_toggle_p = memo_sub.add_parser("todo-toggle", help="Mark a todo done or open")
    todo_toggle_p.add_argument("id", help="Todo id or unique prefix")
    todo_rename_p = memo_sub.add_parser("todo-rename", help="Rename a todo")
    todo_rename_p.add_argument("id", help="Todo id or unique prefix")
    todo_rename_p.add_argument("title")
    todo_delete_p = memo_sub.add_parser("todo-delete", help="Delete a todo")
    todo_delete_p.add_argument("id", help="Todo id or unique prefix")
    savings_p = memo_sub.add_parser("savings", help="Monthly savings target and check")
    savings_p.add_argument("--target", type=float, help="Monthly savings target")
    savings_check = savings_p.add_mutually_exclusive_group()
    savings_check.add_argument("--check", dest="check", action="store_true", default=None)
    savings_check.add_argument("--uncheck", dest="check", action="store_false")

    # remind
    remind_p = subparsers.add_parser("remind", help="Daily reminder times")
    remind_sub = remind_p.add_subparsers(dest="remind_command")
    remind_sub.add_parser("list", help="List reminder times")
    remind_add_p = remind_sub.add_parser("add", help="Add a time")
    remind_add_p.add_argument("time", help="HH:MM")
    remind_remove_p = remind_sub.add_parser("remove", help="Remove a time")
    remind_remove_p.add_argument("index", type=int, help="Number shown by `remind list`")
    remind_toggle_p = remind_sub.add_parser("toggle", help="Enable or disable one time")
    remind_toggle_p.add_argument("index", type=int)
    remind_update_p = remind_sub.add_parser("update", help="Change one time")
    remind_update_p.add_argument("index", type=int)
    remind_update_p.add_argument("time", help="HH:MM")
    remind_sub.add_parser("reset", help="Back to the default times")
    remind_sub.add_parser("on", help="Turn reminders on")
    remind_sub.add_parser("off", help="Turn reminders off")
    remind_sub.add_parser("next", help="Show the next reminder")

    # watch
    subparsers.add_parser("watch", help="Auto-import CSV files from the watch folder")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    handler = _COMMANDS.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}")
        sys.exit(1)

    sys.exit(handler(args))


if __name__ == "__main__":
    main()
