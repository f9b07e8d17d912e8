"""Shared CSV format constants and field conversion helpers."""

from __future__ import annotations

import hashlib
import math
import re
from datetime import date, datetime
from pathlib import Path

CSV_HEADER: list[str] = ["日付", "金額", "カテゴリ", "メモ"]

# yyyy/MM/dd, used by both import and export
CSV_DATE_FORMAT = "%Y/%m/%d"

# Tried in order when decoding an imported file. utf-8-sig tolerates a BOM;
# cp932 is the Windows flavour of Shift-JIS that spreadsheet apps write.
IMPORT_ENCODINGS: tuple[str, ...] = ("utf-8-sig", "cp932")

_DECIMAL_RE = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")


class CsvDecodeError(Exception):
    """Raised when file bytes decode under none of the accepted encodings."""

    def __init__(self, file_name: str):
        self.file_name = file_name
        super().__init__(
            f"Could not read {file_name} as text (tried UTF-8 and Shift-JIS)"
        )


def decode_csv_bytes(data: bytes, file_name: str = "<bytes>") -> str:
    """Decode imported bytes, UTF-8 first and Shift-JIS as the fallback.

    Raises:
        CsvDecodeError: If no accepted encoding decodes the data.
    """
    for encoding in IMPORT_ENCODINGS:
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise CsvDecodeError(file_name)


def read_csv_text(file_path: Path) -> str:
    """Read and decode a CSV file.

    Raises:
        OSError: If the file cannot be read.
        CsvDecodeError: If its bytes are not UTF-8 or Shift-JIS.
    """
    file_path = Path(file_path)
    return decode_csv_bytes(file_path.read_bytes(), file_path.name)


def compute_file_hash(file_path: Path) -> str:
    """SHA256 of entire file contents."""
    h = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def parse_csv_date(text: str) -> str | None:
    """yyyy/MM/dd -> YYYY-MM-DD. Returns None if the text is not a valid date."""
    try:
        return datetime.strptime(text, CSV_DATE_FORMAT).date().isoformat()
    except ValueError:
        return None


def format_csv_date(iso_date: str) -> str:
    """YYYY-MM-DD -> yyyy/MM/dd."""
    return date.fromisoformat(iso_date).strftime(CSV_DATE_FORMAT)


def parse_amount(text: str) -> float | None:
    """Parse an amount cell, ignoring thousands separators.

    Returns None for anything that is not a finite decimal number.
    """
    normalized = text.replace(",", "")
    if not _DECIMAL_RE.fullmatch(normalized):
        return None
    value = float(normalized)
    if not math.isfinite(value):
        return None
    return value


def format_amount(amount: float) -> str:
    """Integer-rounded amount with no thousands separators."""
    return f"{amount:.0f}"
