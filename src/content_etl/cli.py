"""content_etl.cli

Unified CLI entrypoint for content CSV import/export.

Modes (--mode):
  preview  - parse + auto-map + validate a CSV and print the preview (default)
  import   - preview, then import every row through the REST API or PostgreSQL
  export   - write documents / update logs (JSON file or API) to CSV
  schemas  - list registered entity kinds and their fields

Usage (import):
    python -m content_etl \\
        --mode import \\
        --kind documents \\
        --csv-path "exports/guides.csv" \\
        --map title=Headline \\
        --target-page gacha \\
        --api-url "$CONTENT_API_URL" \\
        --rejects-path "artifacts/rejects/guides_rejects.csv"

Usage (export):
    python -m content_etl \\
        --mode export \\
        --kind update-logs \\
        --input-json "dumps/update_logs.json" \\
        --columns version,title,date,tags
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from pathlib import Path
from typing import Any

import click
import psycopg

from content_etl.coerce import CoercionMode
from content_etl.config import PipelineConfig, load_config, validate_target_page
from content_etl.defaults import ALL_PAGES, AVAILABLE_PAGES
from content_etl.exporter import export_filename
from content_etl.mapping import parse_override_pairs
from content_etl.notify import ClickNotifier, ProgressPrinter
from content_etl.preview import render_preview
from content_etl.session import ImportSession
from content_etl.shared import (
    ContentEtlError,
    RejectWriter,
    RunCounters,
    utc_now_iso,
    write_run_report,
)
from content_etl.sinks import EntitySink, MemorySink, PostgresSink, RestApiSink

log = logging.getLogger(__name__)


@click.command()
@click.option(
    "--mode",
    type=click.Choice(["preview", "import", "export", "schemas"]),
    default="preview",
    show_default=True,
)
@click.option("--kind", default="documents", show_default=True, help="Entity kind (documents, update-logs, or a YAML-declared kind)")
@click.option("--csv-path", default=None, type=click.Path(), help="[preview|import] Input CSV")
@click.option("--map", "map_pairs", multiple=True, help="[preview|import] Column override field=Column (repeatable; field= unmaps)")
@click.option("--strict", is_flag=True, default=False, help="[preview|import] Strict coercion: bad numbers/dates are errors, not silent defaults")
@click.option("--strict-rows", is_flag=True, default=False, help="[import] Skip rows with field errors instead of importing them")
@click.option("--target-page", default=None, help="[import] Default category for documents without one ('all' = none)")
@click.option("--api-url", default=None, help="[import|export] Content API base URL (default: $CONTENT_API_URL)")
@click.option("--db-dsn", default=None, help="[import] PostgreSQL DSN; persists directly instead of through the API")
@click.option("--dry-run", is_flag=True, default=False, help="[import] Validate and build entities without persisting")
@click.option("--rejects-path", default=None, type=click.Path(), help="[import] CSV of rows that failed to import")
@click.option("--max-error-rate", default=1.0, type=float, show_default=True, help="[import] Exit non-zero when failed/total exceeds this")
@click.option("--input-json", default=None, type=click.Path(), help="[export] JSON file holding a list of records")
@click.option("--columns", default=None, help="[export] Comma-separated column subset")
@click.option("--output-path", "--filename", "output_path", default=None, type=click.Path(), help="[export] Output CSV path (default: ./<kind>.csv)")
@click.option("--config", "config_path", default=None, type=click.Path(), help="YAML pipeline config")
@click.option("--schema-path", "schema_paths", multiple=True, type=click.Path(), help="Extra YAML entity schema (repeatable)")
@click.option("--report-dir", default="./artifacts/reports", show_default=True, type=click.Path())
@click.option("--run-id", default=None, help="Override UUID for log correlation")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default="WARNING",
    show_default=True,
)
def main(
    mode: str,
    kind: str,
    csv_path: str | None,
    map_pairs: tuple[str, ...],
    strict: bool,
    strict_rows: bool,
    target_page: str | None,
    api_url: str | None,
    db_dsn: str | None,
    dry_run: bool,
    rejects_path: str | None,
    max_error_rate: float,
    input_json: str | None,
    columns: str | None,
    output_path: str | None,
    config_path: str | None,
    schema_paths: tuple[str, ...],
    report_dir: str,
    run_id: str | None,
    log_level: str,
) -> None:
    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run_id = run_id or str(uuid.uuid4())
    started_at = utc_now_iso()
    counters = RunCounters()

    try:
        config = load_config(
            Path(config_path) if config_path else None,
            [Path(p) for p in schema_paths],
        )
    except (ContentEtlError, OSError) as exc:
        click.echo(f"[{run_id}] FATAL: could not load configuration: {exc}", err=True)
        sys.exit(1)

    if strict:
        config.coercion_mode = CoercionMode.STRICT
    if api_url:
        config.api_base_url = api_url

    if mode == "schemas":
        _run_schemas(config)
        return

    if kind not in config.registry:
        click.echo(
            f"[{run_id}] FATAL: unknown --kind {kind!r}; "
            f"registered: {', '.join(config.registry.kinds())}",
            err=True,
        )
        sys.exit(1)

    click.echo(f"[{run_id}] Starting {mode} run kind={kind} (dry_run={dry_run})")

    if mode == "export":
        _validate_export_flags(run_id, input_json, config)
        _run_export(run_id, config, kind, input_json, columns, output_path, counters)
        source_paths = {"input_json": input_json or "", "output_path": output_path or ""}
    else:
        _validate_import_flags(run_id, mode, csv_path, target_page, dry_run, db_dsn, config)
        if target_page is not None:
            config.target_page = target_page
        _run_import(
            run_id=run_id,
            mode=mode,
            config=config,
            kind=kind,
            csv_path=Path(csv_path),
            map_pairs=map_pairs,
            strict_rows=strict_rows,
            db_dsn=db_dsn,
            dry_run=dry_run,
            rejects_path=Path(rejects_path) if rejects_path else None,
            max_error_rate=max_error_rate,
            counters=counters,
        )
        source_paths = {"csv_path": csv_path or ""}

    report_path = write_run_report(
        run_id, started_at, mode, dry_run, source_paths, counters, Path(report_dir),
    )
    click.echo(f"[{run_id}] Run report: {report_path}")
    click.echo(json.dumps(counters.to_dict(), indent=2, default=str))
    click.echo(f"[{run_id}] Done.")


# ---------------------------------------------------------------------------
# Flag validation
# ---------------------------------------------------------------------------

def _validate_import_flags(
    run_id: str,
    mode: str,
    csv_path: str | None,
    target_page: str | None,
    dry_run: bool,
    db_dsn: str | None,
    config: PipelineConfig,
) -> None:
    if not csv_path:
        click.echo(f"[{run_id}] FATAL: --mode {mode} requires --csv-path", err=True)
        sys.exit(1)
    if target_page is not None:
        try:
            validate_target_page(target_page)
        except ContentEtlError as exc:
            click.echo(f"[{run_id}] FATAL: {exc}", err=True)
            sys.exit(1)
    if mode == "import" and not dry_run and not db_dsn and not config.api_base_url:
        click.echo(
            f"[{run_id}] FATAL: --mode import requires --api-url, $CONTENT_API_URL, "
            "--db-dsn, or --dry-run",
            err=True,
        )
        sys.exit(1)


def _validate_export_flags(run_id: str, input_json: str | None, config: PipelineConfig) -> None:
    if not input_json and not config.api_base_url:
        click.echo(
            f"[{run_id}] FATAL: --mode export requires --input-json or an API URL",
            err=True,
        )
        sys.exit(1)


# ---------------------------------------------------------------------------
# Runners
# ---------------------------------------------------------------------------

def _run_schemas(config: PipelineConfig) -> None:
    for schema in config.registry:
        click.echo(f"{schema.kind} (endpoint={schema.endpoint}, table={schema.table})")
        for spec in schema.fields:
            marker = "*" if spec.required else " "
            click.echo(f"  {marker} {spec.target_field:<16} {spec.data_type}")
    pages = ", ".join([ALL_PAGES, *AVAILABLE_PAGES])
    click.echo(f"target pages: {pages}")


def _run_import(
    run_id: str,
    mode: str,
    config: PipelineConfig,
    kind: str,
    csv_path: Path,
    map_pairs: tuple[str, ...],
    strict_rows: bool,
    db_dsn: str | None,
    dry_run: bool,
    rejects_path: Path | None,
    max_error_rate: float,
    counters: RunCounters,
) -> None:
    notifier = ClickNotifier(run_id)
    session = ImportSession(config, kind, notifier=notifier, counters=counters)

    preview = session.load_file(csv_path)
    if preview is None:
        sys.exit(1)

    if map_pairs:
        try:
            preview = session.apply_overrides(parse_override_pairs(map_pairs))
        except ContentEtlError as exc:
            click.echo(f"[{run_id}] FATAL: {exc}", err=True)
            sys.exit(1)

    click.echo(render_preview(preview))

    if mode == "preview":
        return

    rejects = RejectWriter(rejects_path) if rejects_path else None
    pg_sink: PostgresSink | None = None
    sink: EntitySink
    if db_dsn:
        try:
            pg_sink = PostgresSink(psycopg.connect(db_dsn, autocommit=False))
        except psycopg.Error as exc:
            click.echo(f"[{run_id}] FATAL: could not connect to database: {exc}", err=True)
            sys.exit(1)
        sink = pg_sink
    elif dry_run:
        sink = MemorySink()
    else:
        sink = RestApiSink(config.api_base_url or "", timeout=config.api_timeout)
    log.info("importing %s via %s (dry_run=%s)", kind, type(sink).__name__, dry_run)

    every = max(preview.valid_rows // 20, 1)
    try:
        summary = session.run_import(
            sink,
            strict=strict_rows,
            on_progress=ProgressPrinter(run_id, every=every),
            rejects=rejects,
        )
        if pg_sink is not None:
            if dry_run:
                pg_sink.rollback()
                click.echo(f"[{run_id}] [dry-run] All changes rolled back.")
            else:
                pg_sink.commit()
                click.echo(f"[{run_id}] Committed.")
    except Exception as exc:
        if pg_sink is not None:
            pg_sink.rollback()
        click.echo(f"[{run_id}] FATAL: import failed: {exc}", err=True)
        sys.exit(1)
    finally:
        if pg_sink is not None:
            pg_sink.close()
        if rejects is not None:
            rejects.close()

    if rejects is not None and rejects.count:
        click.echo(f"[{run_id}] {rejects.count} rejected row(s) written to {rejects.path}")

    if summary.total > 0 and (summary.error_count / summary.total) > max_error_rate:
        click.echo(
            f"[{run_id}] FAIL: error rate ({summary.error_count / summary.total:.2%}) "
            f"exceeds threshold of {max_error_rate:.2%}.",
            err=True,
        )
        sys.exit(1)


def _load_records(
    run_id: str,
    config: PipelineConfig,
    kind: str,
    input_json: str | None,
) -> list[dict[str, Any]]:
    if input_json:
        data = json.loads(Path(input_json).read_text(encoding="utf-8"))
        if isinstance(data, dict):
            data = data.get("data", [])
        if not isinstance(data, list):
            raise ValueError(f"{input_json}: expected a JSON list of records")
        return data
    sink = RestApiSink(config.api_base_url or "", timeout=config.api_timeout)
    click.echo(f"[{run_id}] Fetching {kind} from {config.api_base_url}")
    return sink.fetch_all(kind)


def _run_export(
    run_id: str,
    config: PipelineConfig,
    kind: str,
    input_json: str | None,
    columns: str | None,
    output_path: str | None,
    counters: RunCounters,
) -> None:
    session = ImportSession(config, kind, notifier=ClickNotifier(run_id), counters=counters)
    try:
        records = _load_records(run_id, config, kind, input_json)
    except (ContentEtlError, OSError, ValueError) as exc:
        click.echo(f"[{run_id}] FATAL: could not load records: {exc}", err=True)
        sys.exit(1)

    column_list = [c.strip() for c in columns.split(",") if c.strip()] if columns else None
    path = Path(output_path) if output_path else Path(export_filename(kind))
    session.export(records, str(path), column_list, path=path)


if __name__ == "__main__":
    main()
