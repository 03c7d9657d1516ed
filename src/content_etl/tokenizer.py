"""content_etl.tokenizer

Quote-aware CSV tokenizer.

The header line is split naively on commas.  Data lines go through a
quote-aware state machine:

  - inside quotes, "" is a literal quote and a comma is literal text
  - a lone quote toggles quoted/unquoted state
  - outside quotes, a comma ends the current field

A line whose quote is still open at end-of-line continues onto the next
line, so quoted cells may carry embedded newlines.  Cell-count mismatches
are recorded as warnings and the row is kept; rows that cannot be tokenized
at all are recorded as errors and skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from content_etl.normalize import clean_header
from content_etl.shared import EmptyInputError, FileRejectedError, ValidationIssue

log = logging.getLogger(__name__)

MAX_FILE_BYTES = 10 * 1024 * 1024
_BOM = "\ufeff"


# ---------------------------------------------------------------------------
# RawTable
# ---------------------------------------------------------------------------

@dataclass
class RawTable:
    headers: list[str]
    rows: list[list[str]]
    issues: list[ValidationIssue] = field(default_factory=list)
    skipped_rows: int = 0
    # 1-based data-row number of each kept row (skipped rows leave gaps).
    row_numbers: list[int] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def row_number(self, idx: int) -> int:
        if idx < len(self.row_numbers):
            return self.row_numbers[idx]
        return idx + 1

    def column_index(self, header: str) -> int:
        """Index of the first column named `header`, or -1."""
        try:
            return self.headers.index(header)
        except ValueError:
            return -1

    def row_as_dict(self, idx: int) -> dict[str, str]:
        """Row `idx` (0-based) keyed by header; the first duplicate header wins."""
        out: dict[str, str] = {}
        row = self.rows[idx]
        for pos, header in enumerate(self.headers):
            if header in out:
                continue
            out[header] = row[pos] if pos < len(row) else ""
        return out


# ---------------------------------------------------------------------------
# Row tokenizer
# ---------------------------------------------------------------------------

def _scan(line: str) -> tuple[list[str], bool]:
    """Run the state machine over `line`; return (cells, still_in_quotes)."""
    cells: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if ch == '"':
            if in_quotes and i + 1 < n and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif ch == "," and not in_quotes:
            cells.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
        i += 1
    cells.append("".join(current).strip())
    return cells, in_quotes


def tokenize_row(line: str) -> list[str]:
    """Split one logical CSV record into trimmed cells.

    Raises ValueError when a quoted field is never closed.
    """
    cells, in_quotes = _scan(line)
    if in_quotes:
        raise ValueError("unterminated quoted field")
    return cells


def _closing_lines(lines: list[str]) -> list[int]:
    """For each line, the index of the next line with an odd quote count (-1 if none).

    Every quote either toggles the quoted state or pairs with its neighbour as
    an escaped literal, so a record opened on line i closes on the first later
    line whose own quote count is odd.
    """
    closing = [-1] * len(lines)
    following = -1
    for idx in range(len(lines) - 1, -1, -1):
        closing[idx] = following
        if lines[idx].count('"') % 2:
            following = idx
    return closing


# ---------------------------------------------------------------------------
# Table parser
# ---------------------------------------------------------------------------

def parse_csv_text(text: str) -> RawTable:
    """Tokenize raw CSV text into a RawTable.

    Raises EmptyInputError when `text` is empty or whitespace-only.
    """
    if text.startswith(_BOM):
        text = text[len(_BOM):]
    if not text.strip():
        raise EmptyInputError()

    lines = [ln[:-1] if ln.endswith("\r") else ln for ln in text.split("\n")]

    pos = 0
    while not lines[pos].strip():
        pos += 1
    headers = [clean_header(h) for h in lines[pos].split(",")]
    pos += 1

    table = RawTable(headers=headers, rows=[])
    closing = _closing_lines(lines)
    row_number = 0

    while pos < len(lines):
        line = lines[pos]
        if not line.strip():
            pos += 1
            continue

        row_number += 1
        start = pos
        record = line
        # A quoted cell left open continues through its closing line.
        if line.count('"') % 2 and closing[pos] >= 0:
            pos = closing[pos]
            record = "\n".join(lines[start:pos + 1])

        try:
            values = tokenize_row(record)
        except ValueError as exc:
            table.issues.append(ValidationIssue(
                row=row_number,
                column="general",
                message=f"Failed to parse row: {exc}",
                severity="error",
            ))
            table.skipped_rows += 1
            log.warning("row %d skipped: %s", row_number, exc)
            # Only the opening line is lost; resume right after it.
            pos = start + 1
            continue

        if len(values) != len(headers):
            table.issues.append(ValidationIssue(
                row=row_number,
                column="general",
                message=f"Expected {len(headers)} columns, found {len(values)}",
                severity="warning",
            ))
        table.rows.append(values)
        table.row_numbers.append(row_number)
        pos += 1

    log.info(
        "parsed %d rows (%d skipped) with %d columns",
        table.row_count, table.skipped_rows, len(headers),
    )
    return table


# ---------------------------------------------------------------------------
# File gate
# ---------------------------------------------------------------------------

def check_csv_file(path: Path, max_bytes: int = MAX_FILE_BYTES) -> None:
    """Raise FileRejectedError unless `path` is an existing, small-enough .csv file."""
    if path.suffix.lower() != ".csv":
        raise FileRejectedError("Invalid File Type", "Please select a CSV file")
    if not path.is_file():
        raise FileRejectedError("File Not Found", f"No such file: {path}")
    size = path.stat().st_size
    if size > max_bytes:
        limit_mb = max_bytes / (1024 * 1024)
        raise FileRejectedError(
            "File Too Large", f"File size must be less than {limit_mb:g}MB"
        )


def read_csv_file(path: Path, max_bytes: int = MAX_FILE_BYTES) -> str:
    """Gate and read a CSV file as UTF-8 text (BOM tolerated)."""
    check_csv_file(path, max_bytes)
    try:
        return path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as exc:
        raise FileRejectedError(
            "Invalid Encoding", f"File must be UTF-8 encoded ({exc.reason})"
        ) from exc
