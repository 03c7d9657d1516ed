"""content_etl.mapping

Column mapper: associates each schema field with zero or one CSV column.

Mappings are seeded by fuzzy name matching (case-insensitive substring in
either direction, first header wins) and may then be adjusted by the
operator.  Adjustments never validate the chosen header; validation
happens when the mapping is used.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, Sequence

from content_etl.normalize import match_key
from content_etl.schema import FieldSpec
from content_etl.shared import MappingError


@dataclass(frozen=True)
class ColumnMapping:
    field_spec: FieldSpec
    source_column: str | None = None

    @property
    def target_field(self) -> str:
        return self.field_spec.target_field

    @property
    def is_mapped(self) -> bool:
        return bool(self.source_column)


def _matches(header: str, field_name: str) -> bool:
    h = match_key(header)
    f = match_key(field_name)
    if not h or not f:
        return False
    return f in h or h in f


def auto_map(field_specs: Iterable[FieldSpec], headers: Sequence[str]) -> list[ColumnMapping]:
    """Seed one mapping per field from the first fuzzily matching header."""
    mappings: list[ColumnMapping] = []
    for spec in field_specs:
        source = next((h for h in headers if _matches(h, spec.target_field)), None)
        mappings.append(ColumnMapping(field_spec=spec, source_column=source))
    return mappings


def set_mapping(
    mappings: Sequence[ColumnMapping],
    index: int,
    header: str | None,
) -> list[ColumnMapping]:
    """Return a copy of `mappings` with entry `index` pointed at `header`.

    An empty or None header unmaps the field.
    """
    if index < 0 or index >= len(mappings):
        raise MappingError(f"mapping index {index} out of range (0..{len(mappings) - 1})")
    out = list(mappings)
    out[index] = replace(out[index], source_column=header or None)
    return out


def apply_overrides(
    mappings: Sequence[ColumnMapping],
    overrides: dict[str, str | None],
    headers: Sequence[str],
) -> list[ColumnMapping]:
    """Apply operator `field -> column` overrides by field name.

    Unlike set_mapping this is the CLI path, so unknown fields and headers
    are rejected up front.
    """
    out = list(mappings)
    by_field = {m.target_field: idx for idx, m in enumerate(out)}
    for target, column in overrides.items():
        if target not in by_field:
            raise MappingError(
                f"unknown field {target!r}; expected one of {sorted(by_field)}"
            )
        if column and column not in headers:
            raise MappingError(f"column {column!r} not found in CSV headers")
        out = set_mapping(out, by_field[target], column)
    return out


def parse_override_pairs(pairs: Iterable[str]) -> dict[str, str | None]:
    """Parse CLI `field=Column` pairs; `field=` unmaps the field."""
    out: dict[str, str | None] = {}
    for pair in pairs:
        if "=" not in pair:
            raise MappingError(f"mapping override {pair!r} must look like field=Column")
        target, column = pair.split("=", 1)
        target = target.strip()
        if not target:
            raise MappingError(f"mapping override {pair!r} has no field name")
        out[target] = column.strip() or None
    return out


def describe_mappings(mappings: Sequence[ColumnMapping]) -> list[str]:
    lines = []
    for m in mappings:
        marker = "*" if m.field_spec.required else " "
        source = m.source_column or "(unmapped)"
        lines.append(f"{marker} {m.target_field:<16} {m.field_spec.data_type:<8} <- {source}")
    return lines
