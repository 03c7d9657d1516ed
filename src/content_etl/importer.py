"""content_etl.importer

Batch importer.

Rows are imported strictly one at a time, in file order:

  1. coerce every mapped field (re-validating with the final mappings)
  2. apply the entity kind's defaults policy
  3. hand the entity to the sink
  4. success -> processed += 1; exception -> processed += 1, error_count += 1,
     a RowFailure is recorded and the batch moves on

A failing row never aborts the batch and nothing already persisted is rolled
back by the importer.  The progress callback fires after every row.  A
CancelToken is checked between rows; cancelling stops before the next row.

With strict=True rows carrying field-level errors are not sent to the sink;
they are counted as skipped (and as processed).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Sequence

from content_etl.coerce import CoercionMode, validate_row
from content_etl.defaults import page_label
from content_etl.mapping import ColumnMapping
from content_etl.schema import EntitySchema
from content_etl.shared import RejectWriter, RunCounters
from content_etl.sinks import EntitySink
from content_etl.tokenizer import RawTable

log = logging.getLogger(__name__)


class ImportStage(str, Enum):
    PARSING = "parsing"
    VALIDATING = "validating"
    IMPORTING = "importing"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ImportProgress:
    stage: ImportStage
    processed: int
    total: int
    error_count: int
    message: str

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 100 if self.stage is ImportStage.COMPLETE else 0
        return int(self.processed * 100 / self.total)


@dataclass(frozen=True)
class RowFailure:
    """Why a row did not make it into the target system."""

    row: int
    message: str
    record: dict[str, Any]
    cause: str = "persistence"  # or "validation"


@dataclass
class ImportSummary:
    kind: str
    total: int
    imported: int = 0
    failed: int = 0
    skipped_invalid: int = 0
    cancelled: bool = False
    failures: list[RowFailure] = field(default_factory=list)
    progress: ImportProgress | None = None

    @property
    def processed(self) -> int:
        return self.imported + self.failed + self.skipped_invalid

    @property
    def error_count(self) -> int:
        return self.failed + self.skipped_invalid

    @property
    def ok(self) -> bool:
        return self.failed == 0 and not self.cancelled

    def failed_rows(self) -> list[int]:
        return [f.row for f in self.failures]


class CancelToken:
    """Cooperative cancellation flag checked by the importer between rows."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


ProgressCallback = Callable[[ImportProgress], None]


def completion_message(kind: str, imported: int, errors: int, target_page: str | None) -> str:
    label = page_label(target_page)
    page_text = f" to {label} page" if label else ""
    error_text = f" ({errors} errors)" if errors > 0 else ""
    return f"Imported {imported} {kind}{page_text}{error_text}"


def import_all(
    raw_table: RawTable,
    mappings: Sequence[ColumnMapping],
    schema: EntitySchema,
    sink: EntitySink,
    *,
    mode: CoercionMode = CoercionMode.LENIENT,
    strict: bool = False,
    target_page: str | None = None,
    on_progress: ProgressCallback | None = None,
    cancel: CancelToken | None = None,
    rejects: RejectWriter | None = None,
    counters: RunCounters | None = None,
    now: datetime | None = None,
) -> ImportSummary:
    """Import every row of `raw_table` into `sink`; see module docstring."""
    total = raw_table.row_count
    summary = ImportSummary(kind=schema.kind, total=total)
    progress = ImportProgress(
        stage=ImportStage.IMPORTING,
        processed=0,
        total=total,
        error_count=0,
        message="Starting import...",
    )
    _emit(on_progress, progress)

    for idx, row in enumerate(raw_table.rows):
        if cancel is not None and cancel.cancelled:
            summary.cancelled = True
            log.info("import cancelled after %d of %d rows", idx, total)
            break

        row_number = raw_table.row_number(idx)
        result = validate_row(mappings, raw_table.headers, row, row_number, mode, now)

        if strict and result.has_errors:
            reason = "; ".join(i.message for i in result.issues if i.is_error)
            summary.skipped_invalid += 1
            summary.failures.append(RowFailure(
                row=row_number,
                message=reason,
                record=result.to_record(),
                cause="validation",
            ))
            if rejects is not None:
                rejects.write(raw_table.row_as_dict(idx), f"validation: {reason}")
        else:
            entity = schema.defaults.apply(
                result.to_record(), target_page=target_page, now=now,
            )
            try:
                sink.persist(schema.kind, entity)
                summary.imported += 1
            except Exception as exc:
                summary.failed += 1
                summary.failures.append(RowFailure(
                    row=row_number, message=str(exc), record=entity,
                ))
                log.warning("row %d: %s import failed: %s", row_number, schema.kind, exc)
                if rejects is not None:
                    rejects.write(raw_table.row_as_dict(idx), f"persist_error: {exc}")

        progress = replace(
            progress,
            processed=summary.processed,
            error_count=summary.error_count,
            message=f"Imported row {summary.processed} of {total}",
        )
        _emit(on_progress, progress)

    if summary.cancelled:
        progress = replace(
            progress,
            stage=ImportStage.CANCELLED,
            message=(
                f"Import cancelled after {summary.processed} of {total} rows "
                f"({summary.imported} imported)"
            ),
        )
    else:
        progress = replace(
            progress,
            stage=ImportStage.COMPLETE,
            message=completion_message(
                schema.kind, summary.imported, summary.error_count, target_page,
            ),
        )
    summary.progress = progress
    _emit(on_progress, progress)

    if counters is not None:
        counters.rows_processed += summary.processed
        counters.rows_imported += summary.imported
        counters.rows_failed += summary.failed
        counters.rows_skipped_invalid += summary.skipped_invalid
        counters.rows_rejected += summary.failed + summary.skipped_invalid
        counters.cancelled = counters.cancelled or summary.cancelled
        for failure in summary.failures[:50]:
            counters.warnings.append(f"row {failure.row}: {failure.cause}: {failure.message}")

    log.info(progress.message)
    return summary


def _emit(callback: ProgressCallback | None, progress: ImportProgress) -> None:
    if callback is not None:
        callback(progress)
