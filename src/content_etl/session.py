"""content_etl.session

One operator import session.

States:
    idle -> parsing -> mapped -> previewed -> importing -> complete | failed

Loading a file replaces any previous session state wholesale; a file that
is rejected (wrong type, too large, empty) leaves the previous state
untouched.  Column mappings are the only state the operator changes
directly, and every change rebuilds the preview.  Completing an import
drops the table and preview; failed imports keep them for another try.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Sequence

from content_etl.config import PipelineConfig
from content_etl.exporter import save_csv, to_csv
from content_etl.importer import CancelToken, ImportSummary, ProgressCallback, import_all
from content_etl.mapping import ColumnMapping, apply_overrides, auto_map, set_mapping
from content_etl.notify import Notifier
from content_etl.preview import PreviewResult, build_preview
from content_etl.schema import EntitySchema
from content_etl.shared import (
    EmptyInputError,
    FileRejectedError,
    RejectWriter,
    RunCounters,
    SessionStateError,
)
from content_etl.sinks import EntitySink
from content_etl.tokenizer import RawTable, parse_csv_text, read_csv_file

log = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    PARSING = "parsing"
    MAPPED = "mapped"
    PREVIEWED = "previewed"
    IMPORTING = "importing"
    COMPLETE = "complete"
    FAILED = "failed"


class ImportSession:
    def __init__(
        self,
        config: PipelineConfig,
        kind: str,
        notifier: Notifier | None = None,
        counters: RunCounters | None = None,
    ) -> None:
        self.config = config
        self.schema: EntitySchema = config.registry.get(kind)
        self.notifier = notifier or Notifier()
        self.counters = counters or RunCounters()
        self.state = SessionState.IDLE
        self.source_name: str | None = None
        self.raw_table: RawTable | None = None
        self.mappings: list[ColumnMapping] = []
        self.preview: PreviewResult | None = None
        self.last_summary: ImportSummary | None = None
        self._cancel: CancelToken | None = None

    # -- loading ----------------------------------------------------------

    def load_file(self, path: Path) -> PreviewResult | None:
        """Gate, read and preview `path`.  Returns None when the file is rejected."""
        try:
            text = read_csv_file(path, self.config.max_file_bytes)
        except FileRejectedError as exc:
            self.notifier.error(exc.title, exc.message)
            return None
        return self.load_text(text, path.name)

    def load_text(self, text: str, name: str = "<text>") -> PreviewResult | None:
        self._require_not_importing("load a new file")
        previous = self.state
        self.state = SessionState.PARSING
        try:
            table = parse_csv_text(text)
        except EmptyInputError as exc:
            self.state = previous
            self.notifier.error("File Processing Error", str(exc))
            return None

        self.reset()
        self.source_name = name
        self.raw_table = table
        self.mappings = auto_map(self.schema.fields, table.headers)
        self.state = SessionState.MAPPED
        self.counters.rows_read += table.row_count + table.skipped_rows
        self.counters.rows_skipped_parse += table.skipped_rows
        self.counters.parse_warnings += sum(1 for i in table.issues if not i.is_error)

        preview = self._rebuild_preview()
        self.counters.rows_with_errors += preview.rows_with_errors
        self.counters.field_errors += preview.error_count - table.skipped_rows
        self.notifier.success(
            "File Processed",
            f"Found {preview.total_rows} rows with {len(table.headers)} columns",
        )
        if preview.invalid_rows:
            self.notifier.warning(
                "Rows Skipped",
                f"{preview.invalid_rows} row(s) could not be parsed and will not be imported",
            )
        return preview

    # -- mapping ----------------------------------------------------------

    def set_mapping(self, index: int, header: str | None) -> PreviewResult:
        self._require(
            SessionState.MAPPED, SessionState.PREVIEWED, SessionState.FAILED,
            action="change mappings",
        )
        self.mappings = set_mapping(self.mappings, index, header)
        return self._rebuild_preview()

    def apply_overrides(self, overrides: dict[str, str | None]) -> PreviewResult:
        self._require(
            SessionState.MAPPED, SessionState.PREVIEWED, SessionState.FAILED,
            action="change mappings",
        )
        self.mappings = apply_overrides(self.mappings, overrides, self._table().headers)
        return self._rebuild_preview()

    def _rebuild_preview(self) -> PreviewResult:
        self.preview = build_preview(
            self._table(),
            self.schema.fields,
            self.mappings,
            mode=self.config.coercion_mode,
            sample_rows=self.config.sample_rows,
        )
        self.state = SessionState.PREVIEWED
        return self.preview

    # -- import -----------------------------------------------------------

    def run_import(
        self,
        sink: EntitySink,
        *,
        strict: bool = False,
        target_page: str | None = None,
        on_progress: ProgressCallback | None = None,
        rejects: RejectWriter | None = None,
    ) -> ImportSummary:
        self._require(SessionState.PREVIEWED, SessionState.FAILED, action="import")
        table = self._table()
        page = target_page if target_page is not None else self.config.target_page

        self.state = SessionState.IMPORTING
        self._cancel = CancelToken()
        self.notifier.info("Import Started", f"Importing {table.row_count} {self.schema.kind}")
        try:
            summary = import_all(
                table,
                self.mappings,
                self.schema,
                sink,
                mode=self.config.coercion_mode,
                strict=strict,
                target_page=page,
                on_progress=on_progress,
                cancel=self._cancel,
                rejects=rejects,
                counters=self.counters,
            )
        except Exception as exc:
            self.state = SessionState.FAILED
            self.notifier.error("Import Failed", str(exc))
            raise
        finally:
            self._cancel = None

        self.last_summary = summary
        message = summary.progress.message if summary.progress else ""
        if summary.cancelled:
            self.notifier.warning("Import Cancelled", message)
        elif summary.error_count:
            self.notifier.warning("Import Completed With Errors", message)
        else:
            self.notifier.success("Import Successful", message)

        self.state = SessionState.COMPLETE
        self.raw_table = None
        self.preview = None
        self.mappings = []
        return summary

    def cancel(self) -> None:
        """Stop an in-flight import before its next row, or drop the session."""
        if self.state is SessionState.IMPORTING and self._cancel is not None:
            self._cancel.cancel()
            return
        self.reset()

    def reset(self) -> None:
        self._require_not_importing("reset")
        self.state = SessionState.IDLE
        self.source_name = None
        self.raw_table = None
        self.mappings = []
        self.preview = None

    # -- export -----------------------------------------------------------

    def export(
        self,
        records: Sequence[Mapping[str, Any]],
        filename: str,
        columns: Sequence[str] | None = None,
        *,
        path: Path | None = None,
    ) -> str | None:
        """Render `records` as CSV and, when `path` is given, write it there.

        Returns None (and writes nothing) when there are no records.
        """
        text = to_csv(records, columns)
        if text is None:
            self.notifier.warning("No Data to Export", "There is no data available to export")
            return None
        if path is not None:
            save_csv(text, path)
        self.counters.records_exported += len(records)
        self.notifier.success("Export Successful", f"Exported {len(records)} records to {filename}")
        return text

    # -- guards -----------------------------------------------------------

    def _table(self) -> RawTable:
        if self.raw_table is None:
            raise SessionStateError("no file loaded")
        return self.raw_table

    def _require(self, *states: SessionState, action: str) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise SessionStateError(
                f"cannot {action} in state {self.state.value!r} (needs {allowed})"
            )

    def _require_not_importing(self, action: str) -> None:
        if self.state is SessionState.IMPORTING:
            raise SessionStateError(f"cannot {action} while an import is running")
