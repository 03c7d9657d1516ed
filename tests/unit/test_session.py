"""Unit tests for content_etl.session."""

from __future__ import annotations

import pytest

from content_etl.config import PipelineConfig
from content_etl.notify import Notifier
from content_etl.session import ImportSession, SessionState
from content_etl.shared import PersistenceError, RunCounters, SessionStateError
from content_etl.sinks import MemorySink

DOCS_CSV = (
    "Headline,content,category\n"
    "Alpha,First,guide\n"
    "Beta,Second,guide\n"
)


def _session(kind: str = "documents") -> ImportSession:
    return ImportSession(PipelineConfig(), kind, notifier=Notifier(), counters=RunCounters())


class TestLoading:
    def test_load_text_auto_maps_and_previews(self):
        session = _session()
        preview = session.load_text(DOCS_CSV, "docs.csv")
        assert session.state is SessionState.PREVIEWED
        assert session.source_name == "docs.csv"
        assert preview.total_rows == 2
        # "Headline" does not match "title", so every row is missing it.
        assert preview.rows_with_errors == 2
        note = session.notifier.last()
        assert note.title == "File Processed"
        assert note.message == "Found 2 rows with 3 columns"

    def test_counters_updated(self):
        session = _session()
        session.load_text('title,content,category\n"broken\nA,b,c\n')
        assert session.counters.rows_read == 2
        assert session.counters.rows_skipped_parse == 1
        assert session.notifier.last().title == "Rows Skipped"

    def test_empty_text_keeps_previous_state(self):
        session = _session()
        session.load_text(DOCS_CSV)
        assert session.load_text("  ") is None
        assert session.state is SessionState.PREVIEWED
        assert session.raw_table is not None
        assert session.notifier.last().title == "File Processing Error"

    def test_rejected_file_notifies(self, tmp_path):
        session = _session()
        path = tmp_path / "docs.txt"
        path.write_text(DOCS_CSV)
        assert session.load_file(path) is None
        assert session.state is SessionState.IDLE
        note = session.notifier.last()
        assert note.type == "error"
        assert note.title == "Invalid File Type"

    def test_load_file(self, tmp_path):
        path = tmp_path / "docs.csv"
        path.write_text(DOCS_CSV)
        session = _session()
        assert session.load_file(path).valid_rows == 2
        assert session.source_name == "docs.csv"

    def test_new_file_replaces_old(self):
        session = _session()
        session.load_text(DOCS_CSV)
        session.set_mapping(0, "Headline")
        session.load_text("title,content,category\nX,y,z\n")
        assert session.mappings[0].source_column == "title"
        assert session.preview.total_rows == 1


class TestMapping:
    def test_set_mapping_rebuilds_preview(self):
        session = _session()
        session.load_text(DOCS_CSV)
        preview = session.set_mapping(0, "Headline")
        assert preview.rows_with_errors == 0
        assert session.preview is preview

    def test_apply_overrides(self):
        session = _session()
        session.load_text(DOCS_CSV)
        preview = session.apply_overrides({"title": "Headline"})
        assert preview.rows_with_errors == 0

    def test_mapping_before_load_rejected(self):
        with pytest.raises(SessionStateError, match="cannot change mappings"):
            _session().set_mapping(0, "x")


class TestImport:
    def test_successful_import_clears_session(self):
        session = _session()
        session.load_text(DOCS_CSV)
        session.set_mapping(0, "Headline")
        sink = MemorySink()
        summary = session.run_import(sink)
        assert summary.imported == 2
        assert session.state is SessionState.COMPLETE
        assert session.raw_table is None
        assert session.preview is None
        assert session.mappings == []
        assert session.notifier.last().title == "Import Successful"
        assert session.notifier.last().message == "Imported 2 documents"

    def test_row_errors_reported(self):
        session = _session()
        session.load_text(DOCS_CSV)
        sink = MemorySink(fail_on=lambda kind, e: e.get("content") == "Second")
        summary = session.run_import(sink)
        assert summary.error_count == 1
        assert session.notifier.last().title == "Import Completed With Errors"

    def test_target_page_defaults_from_config(self):
        session = ImportSession(PipelineConfig(target_page="event"), "documents")
        session.load_text("title,content\nA,b\n")
        sink = MemorySink()
        summary = session.run_import(sink)
        assert sink.entities["documents"][0]["category"] == "event"
        assert summary.progress.message == "Imported 1 documents to Event page"

    def test_sink_crash_marks_failed_and_allows_retry(self):
        session = _session()
        session.load_text(DOCS_CSV)

        class ExplodingRejects:
            def write(self, row, reason):
                raise OSError("disk full")

        sink = MemorySink(fail_on=lambda kind, e: True)
        with pytest.raises(OSError):
            session.run_import(sink, rejects=ExplodingRejects())
        assert session.state is SessionState.FAILED
        assert session.notifier.last().title == "Import Failed"

        summary = session.run_import(MemorySink())
        assert summary.imported == 2

    def test_import_before_preview_rejected(self):
        with pytest.raises(SessionStateError, match="cannot import"):
            _session().run_import(MemorySink())

    def test_cancel_mid_import(self):
        session = _session()
        session.load_text(DOCS_CSV)

        def on_progress(progress):
            if progress.processed == 1:
                session.cancel()

        summary = session.run_import(MemorySink(), on_progress=on_progress)
        assert summary.cancelled
        assert summary.processed == 1
        assert session.notifier.last().title == "Import Cancelled"

    def test_load_during_import_rejected(self):
        session = _session()
        session.load_text(DOCS_CSV)
        errors = []

        def on_progress(progress):
            if progress.processed == 1:
                try:
                    session.load_text(DOCS_CSV)
                except SessionStateError as exc:
                    errors.append(exc)

        session.run_import(MemorySink(), on_progress=on_progress)
        assert len(errors) == 1

    def test_cancel_when_idle_resets(self):
        session = _session()
        session.load_text(DOCS_CSV)
        session.cancel()
        assert session.state is SessionState.IDLE
        assert session.raw_table is None

    def test_persistence_error_is_not_fatal(self):
        session = _session()
        session.load_text(DOCS_CSV)

        class FlakySink:
            calls = 0

            def persist(self, kind, entity):
                FlakySink.calls += 1
                if FlakySink.calls == 1:
                    raise PersistenceError("timeout")

        summary = session.run_import(FlakySink())
        assert summary.failed == 1
        assert summary.imported == 1


class TestExport:
    def test_export_notifies_success(self):
        session = _session()
        text = session.export([{"a": 1}], "documents.csv")
        assert text == "a\n1"
        assert session.notifier.last().message == "Exported 1 records to documents.csv"
        assert session.counters.records_exported == 1

    def test_export_nothing(self):
        session = _session()
        assert session.export([], "documents.csv") is None
        assert session.notifier.last().title == "No Data to Export"

    def test_export_writes_path(self, tmp_path):
        session = _session()
        path = tmp_path / "out" / "documents.csv"
        session.export([{"a": 1}, {"a": 2}], "documents.csv", path=path)
        assert path.read_text(encoding="utf-8") == "a\n1\n2\n"

    def test_export_nothing_leaves_path_absent(self, tmp_path):
        session = _session()
        path = tmp_path / "documents.csv"
        assert session.export([], "documents.csv", path=path) is None
        assert not path.exists()
