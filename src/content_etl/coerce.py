"""content_etl.coerce

Validator/coercer: turns raw string cells into typed values per the field's
declared data type.

Coercion modes:
  lenient  - unparsable numbers become 0 and invalid dates become today,
             silently (the behavior existing data producers rely on)
  strict   - unparsable numbers and invalid dates raise CoercionError, which
             validate_row turns into an error issue for that cell

In both modes an absent number is 0, an absent date is today, an absent
array is [], and an absent boolean is False.  Required-field checks are
independent of the mode.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Sequence, Union

from content_etl.mapping import ColumnMapping
from content_etl.normalize import parse_bool, parse_date, parse_number, split_list, today_iso, trim
from content_etl.schema import FieldSpec
from content_etl.shared import CoercionError, ValidationIssue


class CoercionMode(str, Enum):
    LENIENT = "lenient"
    STRICT = "strict"


# ---------------------------------------------------------------------------
# CellValue
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StringValue:
    value: str

    def to_python(self) -> str:
        return self.value


@dataclass(frozen=True)
class NumberValue:
    value: int | float

    def to_python(self) -> int | float:
        return self.value


@dataclass(frozen=True)
class BoolValue:
    value: bool

    def to_python(self) -> bool:
        return self.value


@dataclass(frozen=True)
class DateValue:
    value: str  # YYYY-MM-DD

    def to_python(self) -> str:
        return self.value


@dataclass(frozen=True)
class ListValue:
    value: tuple[str, ...]

    def to_python(self) -> list[str]:
        return list(self.value)


CellValue = Union[StringValue, NumberValue, BoolValue, DateValue, ListValue]


# ---------------------------------------------------------------------------
# Per-type coercers
# ---------------------------------------------------------------------------

def _coerce_string(raw: str | None, mode: CoercionMode, now: datetime | None) -> CellValue:
    return StringValue(raw or "")


def _coerce_number(raw: str | None, mode: CoercionMode, now: datetime | None) -> CellValue:
    if trim(raw) is None:
        return NumberValue(0)
    num = parse_number(raw)
    if num is None:
        if mode is CoercionMode.STRICT:
            raise CoercionError(f"{raw!r} is not a number")
        return NumberValue(0)
    return NumberValue(num)


def _coerce_boolean(raw: str | None, mode: CoercionMode, now: datetime | None) -> CellValue:
    return BoolValue(parse_bool(raw))


def _coerce_array(raw: str | None, mode: CoercionMode, now: datetime | None) -> CellValue:
    return ListValue(tuple(split_list(raw)))


def _coerce_date(raw: str | None, mode: CoercionMode, now: datetime | None) -> CellValue:
    if trim(raw) is None:
        return DateValue(today_iso(now))
    parsed = parse_date(raw)
    if parsed is None:
        if mode is CoercionMode.STRICT:
            raise CoercionError(f"{raw!r} is not a valid date")
        return DateValue(today_iso(now))
    return DateValue(parsed.isoformat())


_COERCERS: dict[str, Callable[[str | None, CoercionMode, datetime | None], CellValue]] = {
    "string": _coerce_string,
    "number": _coerce_number,
    "boolean": _coerce_boolean,
    "array": _coerce_array,
    "date": _coerce_date,
}


def coerce_cell(
    spec: FieldSpec,
    raw: str | None,
    mode: CoercionMode = CoercionMode.LENIENT,
    now: datetime | None = None,
) -> CellValue:
    """Coerce one raw cell for `spec`.  Raises CoercionError in strict mode."""
    coercer = _COERCERS.get(spec.data_type)
    if coercer is None:
        raise CoercionError(f"unsupported data type {spec.data_type!r}")
    return coercer(raw, mode, now)


# ---------------------------------------------------------------------------
# Row validation
# ---------------------------------------------------------------------------

@dataclass
class RowValidation:
    row: int
    values: dict[str, CellValue] = field(default_factory=dict)
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(i.is_error for i in self.issues)

    def to_record(self) -> dict[str, Any]:
        return row_to_record(self.values)


def row_to_record(values: dict[str, CellValue]) -> dict[str, Any]:
    return {name: cell.to_python() for name, cell in values.items()}


def _resolve_raw(
    mapping: ColumnMapping,
    headers: Sequence[str],
    row: Sequence[str],
) -> str | None:
    """Raw cell for `mapping`, or None when unmapped / not present in the row."""
    if not mapping.source_column:
        return None
    try:
        idx = list(headers).index(mapping.source_column)
    except ValueError:
        return None
    if idx >= len(row):
        return None
    return row[idx]


def validate_row(
    mappings: Sequence[ColumnMapping],
    headers: Sequence[str],
    row: Sequence[str],
    row_number: int,
    mode: CoercionMode = CoercionMode.LENIENT,
    now: datetime | None = None,
) -> RowValidation:
    """Coerce every mapped field of one row and collect its issues.

    A required field that is unmapped, missing from the row, or empty yields
    exactly one error issue and is left out of `values`.  Optional fields
    that are unmapped, or mapped to a header the file does not have, are
    simply absent.
    """
    result = RowValidation(row=row_number)
    for mapping in mappings:
        spec = mapping.field_spec
        column = mapping.source_column or spec.target_field
        raw = _resolve_raw(mapping, headers, row)

        if spec.required and trim(raw) is None:
            if not mapping.is_mapped:
                message = f"Required field '{spec.target_field}' is not mapped to a column"
            else:
                message = f"Required field '{spec.target_field}' is empty"
            result.issues.append(ValidationIssue(
                row=row_number, column=column, message=message, severity="error",
            ))
            continue

        if not mapping.is_mapped or mapping.source_column not in headers:
            continue

        try:
            result.values[spec.target_field] = coerce_cell(spec, raw, mode, now)
        except CoercionError as exc:
            result.issues.append(ValidationIssue(
                row=row_number,
                column=column,
                message=f"Invalid {spec.data_type} for '{spec.target_field}': {exc}",
                severity="error",
            ))
    return result
