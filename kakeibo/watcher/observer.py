"""Drop-folder auto-import.

A PollingObserver watches the import folder, which also works on synced
folders and network mounts. Each new CSV has to hold still before it is
touched, must end with a line break, and is then imported without a
confirmation step:
  detect → settle → completeness check → ledger check → load → commit → record

Files whose SHA-256 is already in the import ledger are skipped.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import FileSystemEventHandler

from kakeibo.database.models import Import
from kakeibo.database.repository import DuplicateImportError
from kakeibo.importer.session import (
    CsvSchemaError,
    ImportSession,
    NothingToImportError,
)
from kakeibo.parsers.base import CsvDecodeError, compute_file_hash

if TYPE_CHECKING:
    from kakeibo.config import Config
    from kakeibo.database.repository import Repository

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".csv"}

# A file counts as settled once size and mtime are unchanged this long
SETTLE_SECONDS = 10
STAT_INTERVAL = 2.0
SETTLE_TIMEOUT = 300.0

POLL_SECONDS = 30


@dataclass
class ImportResult:
    """What happened to one file: status is "success", "duplicate" or "error"."""

    file_name: str
    status: str
    inserted_count: int = 0
    skipped_count: int = 0
    created_categories: int = 0
    error_message: str | None = None

    @classmethod
    def failed(cls, file_name: str, message: str, **counts: int) -> ImportResult:
        return cls(file_name=file_name, status="error", error_message=message, **counts)


class FileStabilityError(Exception):
    """Raised when a settled file still looks empty or cut off."""


# ── Settling & completeness ──────────────────────────────


def _signature(filepath: Path) -> tuple[int, float]:
    st = filepath.stat()
    return st.st_size, st.st_mtime


def wait_for_stable(
    filepath: Path,
    stability_seconds: float = SETTLE_SECONDS,
    check_interval: float = STAT_INTERVAL,
    max_wait: float = SETTLE_TIMEOUT,
) -> None:
    """Block until size and mtime have not changed for stability_seconds.

    Raises:
        TimeoutError: If the file keeps changing past max_wait seconds.
        OSError: If the file disappears while waiting.
    """
    deadline = time.monotonic() + max_wait
    last_seen: tuple[int, float] | None = None
    unchanged_since = 0.0

    while time.monotonic() <= deadline:
        current = _signature(filepath)
        now = time.monotonic()
        if current != last_seen:
            last_seen, unchanged_since = current, now
        elif now - unchanged_since >= stability_seconds:
            return
        time.sleep(check_interval)

    raise TimeoutError(f"{filepath} did not stabilize within {max_wait}s")


def validate_file_completeness(filepath: Path) -> None:
    """A dropped CSV must be non-empty and end with a line break.

    Raises:
        FileStabilityError: If the file looks empty or truncated.
    """
    size = filepath.stat().st_size
    if size == 0:
        raise FileStabilityError(f"Empty CSV file: {filepath}")
    with open(filepath, "rb") as f:
        f.seek(size - 1)
        if f.read(1) not in (b"\n", b"\r"):
            raise FileStabilityError(f"CSV file does not end with newline: {filepath}")


# ── Import pipeline ──────────────────────────────────────


class ImportPipeline:
    """Import one dropped CSV file end to end.

    Args:
        repo: Database repository.
        config: Application config, for import defaults. Optional.
    """

    def __init__(self, repo: Repository, config: Config | None = None):
        self.repo = repo
        self.config = config

    def _new_session(self) -> ImportSession:
        if self.config is None:
            return ImportSession(self.repo)
        return ImportSession(
            self.repo,
            default_icon=self.config.import_default_icon,
            default_color=self.config.import_default_color,
            user_id=self.config.import_user_id,
        )

    def process_file(self, filepath: Path) -> ImportResult:
        """Run the import on a single file and report what happened.

        Files already in the import ledger (same SHA-256) are skipped.
        """
        file_name = filepath.name

        if filepath.suffix.lower() not in SUPPORTED_EXTENSIONS:
            return ImportResult.failed(
                file_name, f"Unsupported file extension: {filepath.suffix}",
            )

        file_hash = compute_file_hash(filepath)
        if self.repo.get_import_by_hash(file_hash) is not None:
            logger.info("%s was imported before; skipping", file_name)
            return ImportResult(file_name=file_name, status="duplicate")

        session = self._new_session()
        try:
            session.load_file(filepath)
            summary = session.commit()
        except (CsvDecodeError, CsvSchemaError, NothingToImportError) as e:
            logger.error("Import rejected for %s: %s", file_name, e)
            return ImportResult.failed(
                file_name, str(e),
                skipped_count=len(session.error_rows),
                created_categories=len(session.created_categories),
            )

        for row in session.error_rows:
            logger.warning("Skipped %s line %d: %s", file_name, row.line, row.error)

        try:
            self.repo.insert_import(Import(
                file_name=file_name,
                file_hash=file_hash,
                inserted_count=summary.inserted,
                skipped_count=summary.skipped,
            ))
        except DuplicateImportError:
            logger.warning("Import ledger already has %s", file_name)

        return ImportResult(
            file_name=file_name,
            status="success",
            inserted_count=summary.inserted,
            skipped_count=summary.skipped,
            created_categories=len(session.created_categories),
        )


# ── Folder watcher ───────────────────────────────────────


class FileWatcher(FileSystemEventHandler):
    """Auto-import CSV files that appear in watch_dir.

    Picks up files created in place and files renamed into the folder, since
    sync clients often write under a temporary name first. Files are handled
    one at a time on the observer thread.

    Args:
        watch_dir: Directory to watch.
        pipeline: ImportPipeline that imports each file.
        stability_seconds: How long a file must hold still before import.
        check_interval: Seconds between stat checks while settling.
    """

    def __init__(
        self,
        watch_dir: Path,
        pipeline: ImportPipeline,
        stability_seconds: float = SETTLE_SECONDS,
        check_interval: float = STAT_INTERVAL,
    ):
        self.watch_dir = Path(watch_dir)
        self.pipeline = pipeline
        self.stability_seconds = stability_seconds
        self.check_interval = check_interval
        self._observer = None

    def start(self) -> None:
        from watchdog.observers.polling import PollingObserver

        self.watch_dir.mkdir(parents=True, exist_ok=True)
        observer = PollingObserver(timeout=POLL_SECONDS)
        observer.schedule(self, str(self.watch_dir), recursive=False)
        observer.start()
        self._observer = observer
        logger.info("Watching %s for new CSV files", self.watch_dir)

    def stop(self) -> None:
        observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        observer.join()
        logger.info("Stopped watching %s", self.watch_dir)

    def on_created(self, event) -> None:
        if not event.is_directory:
            self._handle(Path(event.src_path))

    def on_moved(self, event) -> None:
        if not event.is_directory:
            self._handle(Path(event.dest_path))

    def _handle(self, filepath: Path) -> None:
        if filepath.suffix.lower() not in SUPPORTED_EXTENSIONS:
            logger.debug("Ignoring %s", filepath.name)
            return
        if filepath.parent.resolve() != self.watch_dir.resolve():
            return
        logger.info("New file detected: %s", filepath.name)
        self._process_file(filepath)

    def _process_file(self, filepath: Path) -> ImportResult:
        """Let the file settle, check it is whole, then import it."""
        try:
            wait_for_stable(
                filepath,
                stability_seconds=self.stability_seconds,
                check_interval=self.check_interval,
            )
            validate_file_completeness(filepath)
        except (FileStabilityError, TimeoutError, OSError) as e:
            logger.error("Not importing %s: %s", filepath.name, e)
            return ImportResult.failed(filepath.name, str(e))

        try:
            result = self.pipeline.process_file(filepath)
        except Exception as e:
            logger.exception("Unexpected error processing %s", filepath.name)
            return ImportResult.failed(filepath.name, str(e))

        logger.info(
            "%s: %s (inserted=%d, skipped=%d)",
            filepath.name, result.status, result.inserted_count, result.skipped_count,
        )
        return result
