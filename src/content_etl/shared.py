"""content_etl.shared

Shared pieces used by every pipeline stage: the exception hierarchy,
ValidationIssue, RejectWriter, run counters, and report-writing support.
"""

from __future__ import annotations

import csv
import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

Severity = Literal["error", "warning"]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ContentEtlError(Exception):
    """Base class for all pipeline errors."""


class EmptyInputError(ContentEtlError):
    """Raised when CSV text is empty or whitespace-only."""

    def __init__(self, message: str = "CSV file is empty") -> None:
        super().__init__(message)


class FileRejectedError(ContentEtlError):
    """Raised when an input file fails the type/size/encoding gate.

    `title` is the short heading shown in the operator notification.
    """

    def __init__(self, title: str, message: str) -> None:
        super().__init__(message)
        self.title = title
        self.message = message


class SchemaValidationError(ContentEtlError, ValueError):
    """Raised when a YAML schema or config file fails validation."""


class UnknownEntityKindError(ContentEtlError, KeyError):
    """Raised when the registry has no schema for the requested kind."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "unknown entity kind"


class MappingError(ContentEtlError, ValueError):
    """Raised for invalid operator column-mapping changes."""


class CoercionError(ContentEtlError, ValueError):
    """Raised by strict-mode coercion when a cell cannot be converted."""


class PersistenceError(ContentEtlError):
    """Raised by a sink when a single entity could not be persisted."""


class ApiError(PersistenceError):
    """HTTP-level failure from the content API; status 0 means transport error."""

    def __init__(self, message: str, status: int) -> None:
        super().__init__(message)
        self.status = status


class SessionStateError(ContentEtlError, RuntimeError):
    """Raised when an import session operation is called in the wrong state."""


# ---------------------------------------------------------------------------
# ValidationIssue
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ValidationIssue:
    """One parse- or field-level finding.

    `row` is 1-based and excludes the header line.
    """

    row: int
    column: str
    message: str
    severity: Severity

    @property
    def is_error(self) -> bool:
        return self.severity == "error"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# RejectWriter
# ---------------------------------------------------------------------------

class RejectWriter:
    """Lazy-open CSV writer for rows that failed to import."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._fh = None
        self._writer = None
        self.count = 0

    @property
    def path(self) -> Path:
        return self._path

    def write(self, row: dict[str, Any], reason: str) -> None:
        if self._fh is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(self._path, "w", newline="", encoding="utf-8")
            fieldnames = list(row.keys()) + ["_reject_reason"]
            self._writer = csv.DictWriter(
                self._fh, fieldnames=fieldnames, extrasaction="ignore"
            )
            self._writer.writeheader()
        out = dict(row)
        out["_reject_reason"] = reason
        self._writer.writerow(out)
        self._fh.flush()
        self.count += 1

    def close(self) -> None:
        if self._fh:
            self._fh.close()
            self._fh = None


# ---------------------------------------------------------------------------
# RunCounters
# ---------------------------------------------------------------------------

@dataclass
class RunCounters:
    # Parse
    rows_read: int = 0
    rows_skipped_parse: int = 0
    parse_warnings: int = 0
    # Validation
    rows_with_errors: int = 0
    field_errors: int = 0
    # Import
    rows_processed: int = 0
    rows_imported: int = 0
    rows_failed: int = 0
    rows_skipped_invalid: int = 0
    rows_rejected: int = 0
    # Export
    records_exported: int = 0
    cancelled: bool = False
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        d = {k: v for k, v in self.__dict__.items() if k != "warnings"}
        d["warnings"] = self.warnings[:50]
        return d


# ---------------------------------------------------------------------------
# Report writer
# ---------------------------------------------------------------------------

def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def write_run_report(
    run_id: str,
    started_at: str,
    mode: str,
    dry_run: bool,
    source_paths: dict[str, str],
    counters: RunCounters,
    report_dir: Path = Path("./artifacts/reports"),
) -> Path:
    report = {
        "run_id": run_id,
        "mode": mode,
        "started_at": started_at,
        "finished_at": utc_now_iso(),
        "dry_run": dry_run,
        **source_paths,
        "counters": counters.to_dict(),
    }
    report_path = report_dir / f"{run_id}.json"
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(json.dumps(report, indent=2, default=str))
    return report_path
