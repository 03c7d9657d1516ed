"""content_etl.preview

Preview builder: a non-mutating dry run over a tokenized table.

Row counts are parser-level: `valid_rows` are rows the tokenizer kept,
`invalid_rows` are rows it had to skip, and the two always add up to
`total_rows`.  Field-level issues (missing required values, strict-mode
coercion failures) are advisory at preview time and are counted
separately in `rows_with_errors`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from content_etl.coerce import CoercionMode, validate_row
from content_etl.mapping import ColumnMapping, auto_map, describe_mappings
from content_etl.schema import FieldSpec
from content_etl.shared import ValidationIssue
from content_etl.tokenizer import RawTable

DEFAULT_SAMPLE_ROWS = 5
MAX_RENDERED_ISSUES = 20


@dataclass(frozen=True)
class PreviewResult:
    raw_table: RawTable
    mappings: tuple[ColumnMapping, ...]
    total_rows: int
    valid_rows: int
    invalid_rows: int
    rows_with_errors: int
    issues: tuple[ValidationIssue, ...]
    sample_rows: tuple[tuple[str, ...], ...]

    @property
    def headers(self) -> list[str]:
        return self.raw_table.headers

    @property
    def error_count(self) -> int:
        return sum(1 for i in self.issues if i.is_error)

    @property
    def warning_count(self) -> int:
        return sum(1 for i in self.issues if not i.is_error)

    @property
    def has_blocking_errors(self) -> bool:
        return self.rows_with_errors > 0


def build_preview(
    raw_table: RawTable,
    field_specs: Sequence[FieldSpec],
    mappings: Sequence[ColumnMapping] | None = None,
    mode: CoercionMode = CoercionMode.LENIENT,
    sample_rows: int = DEFAULT_SAMPLE_ROWS,
    now: datetime | None = None,
) -> PreviewResult:
    """Map, validate, and summarize `raw_table` without touching it.

    When `mappings` is None the columns are auto-mapped from `field_specs`.
    Calling this twice with the same inputs gives equal results.
    """
    if mappings is None:
        mappings = auto_map(field_specs, raw_table.headers)

    field_issues: list[ValidationIssue] = []
    rows_with_errors = 0
    for idx, row in enumerate(raw_table.rows):
        result = validate_row(
            mappings, raw_table.headers, row, raw_table.row_number(idx), mode, now,
        )
        field_issues.extend(result.issues)
        if result.has_errors:
            rows_with_errors += 1

    issues = sorted(
        [*raw_table.issues, *field_issues],
        key=lambda i: i.row,
    )
    valid = raw_table.row_count
    invalid = raw_table.skipped_rows
    return PreviewResult(
        raw_table=raw_table,
        mappings=tuple(mappings),
        total_rows=valid + invalid,
        valid_rows=valid,
        invalid_rows=invalid,
        rows_with_errors=rows_with_errors,
        issues=tuple(issues),
        sample_rows=tuple(tuple(r) for r in raw_table.rows[:max(sample_rows, 0)]),
    )


def issues_for_row(preview: PreviewResult, row: int) -> list[ValidationIssue]:
    return [i for i in preview.issues if i.row == row]


def render_preview(preview: PreviewResult) -> str:
    """Plain-text rendering for the terminal."""
    lines = [
        f"Rows: {preview.total_rows} total, {preview.valid_rows} parsed, "
        f"{preview.invalid_rows} skipped, {preview.rows_with_errors} with field errors",
        f"Columns ({len(preview.headers)}): {', '.join(preview.headers)}",
        "",
        "Mappings (* = required):",
        *("  " + line for line in describe_mappings(preview.mappings)),
    ]

    if preview.sample_rows:
        lines += ["", f"First {len(preview.sample_rows)} row(s):"]
        for idx, row in enumerate(preview.sample_rows):
            number = preview.raw_table.row_number(idx)
            marker = "!" if any(i.is_error for i in issues_for_row(preview, number)) else " "
            lines.append(f" {marker}{number:>4} | " + " | ".join(row))

    if preview.issues:
        lines += ["", f"Issues ({preview.error_count} errors, {preview.warning_count} warnings):"]
        for issue in preview.issues[:MAX_RENDERED_ISSUES]:
            lines.append(
                f"  row {issue.row:>4} [{issue.severity}] {issue.column}: {issue.message}"
            )
        hidden = len(preview.issues) - MAX_RENDERED_ISSUES
        if hidden > 0:
            lines.append(f"  ... {hidden} more")
    return "\n".join(lines)
