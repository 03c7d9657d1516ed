"""content_etl.exporter

Serialize in-memory records back to CSV text.

Cell rules:
  - lists join with "; " and are always quoted
  - dicts become compact JSON and are always quoted
  - other values are quoted only when they contain a comma, quote or newline
  - internal quotes are doubled whenever a cell is quoted

Row order always matches input order; nothing is sorted or deduplicated.
Exporting zero records returns None ("nothing to export") instead of raising.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping, Sequence

from content_etl.tokenizer import RawTable

log = logging.getLogger(__name__)


def _quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return _quote("; ".join("" if v is None else str(v) for v in value))
    if isinstance(value, dict):
        return _quote(json.dumps(value, separators=(",", ":"), default=str))
    if isinstance(value, bool):
        text = "true" if value else "false"
    else:
        text = str(value)
    if any(ch in text for ch in (",", '"', "\n", "\r")):
        return _quote(text)
    return text


def to_csv(
    records: Sequence[Mapping[str, Any]],
    columns: Sequence[str] | None = None,
) -> str | None:
    """Render `records` as CSV text, or None when there is nothing to export.

    The header row is `columns` when given (and non-empty), otherwise the
    keys of the first record in their natural order.
    """
    if not records:
        log.info("nothing to export")
        return None
    headers = list(columns) if columns else list(records[0].keys())
    lines = [",".join(format_cell(h) for h in headers)]
    for record in records:
        lines.append(",".join(format_cell(record.get(h)) for h in headers))
    return "\n".join(lines)


def export_filename(name: str) -> str:
    return name if name.lower().endswith(".csv") else f"{name}.csv"


def save_csv(text: str, path: Path) -> Path:
    """Write rendered CSV `text` to `path` (UTF-8, trailing newline)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text + "\n", encoding="utf-8")
    log.info("wrote %s", path)
    return path


def records_from_table(raw_table: RawTable) -> list[dict[str, str]]:
    """Tokenized rows back to header-keyed dicts (first duplicate header wins)."""
    return [raw_table.row_as_dict(idx) for idx in range(raw_table.row_count)]
