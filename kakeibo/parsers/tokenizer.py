"""Quote-aware CSV tokenizer.

Turns raw text into rows of string cells:
- fields may be wrapped in double quotes; "" inside quotes is a literal "
- commas and line breaks inside quotes belong to the field
- LF, CRLF and lone CR all end a row outside quotes
- a row holding a single blank field (e.g. a trailing empty line) is dropped

No header or column-count checks happen here.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def _is_blank_row(row: list[str]) -> bool:
    return len(row) == 1 and not row[0].strip()


def parse_csv(text: str) -> list[list[str]]:
    rows: list[list[str]] = []
    row: list[str] = []
    field: list[str] = []
    in_quotes = False

    def end_field() -> None:
        row.append("".join(field))
        field.clear()

    def end_row() -> None:
        nonlocal row
        if not _is_blank_row(row):
            rows.append(row)
        row = []

    i = 0
    n = len(text)
    while i < n:
        c = text[i]
        if in_quotes:
            if c == '"':
                if i + 1 < n and text[i + 1] == '"':
                    field.append('"')
                    i += 1
                else:
                    in_quotes = False
            else:
                field.append(c)
        elif c == '"':
            in_quotes = True
        elif c == ",":
            end_field()
        elif c == "\n":
            end_field()
            end_row()
        elif c == "\r":
            # CRLF: let the LF end the row
            if not (i + 1 < n and text[i + 1] == "\n"):
                end_field()
                end_row()
        else:
            field.append(c)
        i += 1

    if in_quotes:
        # Lenient: the unterminated field keeps everything up to end of input
        logger.warning(
            "Unterminated quoted field at end of CSV input (row %d); "
            "keeping remaining text as the last field",
            len(rows) + 1,
        )

    end_field()
    end_row()
    return rows
