"""content_etl.schema

Schema registry: for each importable entity kind, the ordered target fields
(with required-ness and primitive data type) plus the defaults policy that
completes a record before persistence.

The registry is an explicit object handed to every entry point.  The two
built-in kinds come from `default_registry()`; further kinds can be loaded
from YAML files:

    kind: screenshots
    endpoint: /screenshots
    table: screenshots
    fields:
      - {field: title, required: true, type: string}
      - {field: tags, type: array}
    defaults:
      isPublished: false

Usage:
    from pathlib import Path
    from content_etl.schema import default_registry, load_entity_schema

    registry = default_registry()
    registry.register(load_entity_schema(Path("config/schemas/screenshots.yml")))
    schema = registry.get("documents")
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Literal, get_args

import yaml

from content_etl.defaults import (
    DefaultsPolicy,
    DocumentDefaults,
    LiteralDefaults,
    UpdateLogDefaults,
)
from content_etl.shared import SchemaValidationError, UnknownEntityKindError

DataType = Literal["string", "number", "boolean", "date", "array"]

VALID_DATA_TYPES = frozenset(get_args(DataType))

REQUIRED_YAML_KEYS = frozenset({"kind", "fields"})


# ---------------------------------------------------------------------------
# FieldSpec / EntitySchema
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FieldSpec:
    target_field: str
    required: bool
    data_type: DataType


@dataclass(frozen=True)
class EntitySchema:
    kind: str
    fields: tuple[FieldSpec, ...]
    defaults: DefaultsPolicy
    endpoint: str | None = None
    table: str | None = None
    schema_hash: str | None = None

    @property
    def field_names(self) -> list[str]:
        return [f.target_field for f in self.fields]

    @property
    def required_fields(self) -> list[str]:
        return [f.target_field for f in self.fields if f.required]


DOCUMENT_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("title", True, "string"),
    FieldSpec("content", True, "string"),
    FieldSpec("category", True, "string"),
    FieldSpec("tags", False, "array"),
    FieldSpec("author", False, "string"),
    FieldSpec("isPublished", False, "boolean"),
    FieldSpec("createdAt", False, "date"),
    FieldSpec("updatedAt", False, "date"),
)

UPDATE_LOG_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("version", True, "string"),
    FieldSpec("title", True, "string"),
    FieldSpec("description", False, "string"),
    FieldSpec("content", True, "string"),
    FieldSpec("date", True, "date"),
    FieldSpec("tags", False, "array"),
    FieldSpec("isPublished", False, "boolean"),
)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class SchemaRegistry:
    """Ordered mapping of entity kind -> EntitySchema."""

    def __init__(self, schemas: list[EntitySchema] | None = None) -> None:
        self._schemas: dict[str, EntitySchema] = {}
        for schema in schemas or []:
            self.register(schema)

    def register(self, schema: EntitySchema) -> None:
        self._schemas[schema.kind] = schema

    def get(self, kind: str) -> EntitySchema:
        try:
            return self._schemas[kind]
        except KeyError:
            known = ", ".join(self._schemas) or "none"
            raise UnknownEntityKindError(
                f"unknown entity kind {kind!r} (registered: {known})"
            ) from None

    def kinds(self) -> list[str]:
        return list(self._schemas)

    def __contains__(self, kind: object) -> bool:
        return kind in self._schemas

    def __iter__(self) -> Iterator[EntitySchema]:
        return iter(self._schemas.values())

    def __len__(self) -> int:
        return len(self._schemas)


def default_registry() -> SchemaRegistry:
    """A fresh registry holding the built-in documents and update-logs kinds."""
    return SchemaRegistry([
        EntitySchema(
            kind="documents",
            fields=DOCUMENT_FIELDS,
            defaults=DocumentDefaults(),
            endpoint="/documents",
            table="documents",
        ),
        EntitySchema(
            kind="update-logs",
            fields=UPDATE_LOG_FIELDS,
            defaults=UpdateLogDefaults(),
            endpoint="/update-logs",
            table="update_logs",
        ),
    ])


# ---------------------------------------------------------------------------
# YAML loader + validator
# ---------------------------------------------------------------------------

def load_entity_schema(yaml_path: Path) -> EntitySchema:
    """Load, validate, and return an EntitySchema from a YAML file.

    Raises:
        SchemaValidationError: If the file does not match the schema shape.
        FileNotFoundError: If the YAML file does not exist.
    """
    raw = yaml_path.read_text(encoding="utf-8")
    data = yaml.safe_load(raw)
    validate_entity_schema(data)
    fields = tuple(
        FieldSpec(
            target_field=str(item["field"]),
            required=bool(item.get("required", False)),
            data_type=item.get("type", "string"),
        )
        for item in data["fields"]
    )
    kind = str(data["kind"])
    return EntitySchema(
        kind=kind,
        fields=fields,
        defaults=LiteralDefaults(dict(data.get("defaults") or {})),
        endpoint=data.get("endpoint") or f"/{kind}",
        table=data.get("table"),
        schema_hash=hashlib.sha256(raw.encode("utf-8")).hexdigest(),
    )


def validate_entity_schema(data: Any) -> None:
    """Raise SchemaValidationError if data does not match the required shape.

    Validates:
      - top level is a mapping with `kind` and a non-empty `fields` list
      - every field has a name, a known type, and appears once
      - `defaults`, when present, is a mapping
    """
    if not isinstance(data, dict):
        raise SchemaValidationError("schema file must contain a YAML mapping")

    missing = REQUIRED_YAML_KEYS - set(data)
    if missing:
        raise SchemaValidationError(f"missing required keys: {sorted(missing)}")

    if not str(data["kind"]).strip():
        raise SchemaValidationError("kind must be a non-empty string")

    items = data["fields"]
    if not isinstance(items, list) or not items:
        raise SchemaValidationError("fields must be a non-empty list")

    seen: set[str] = set()
    for idx, item in enumerate(items):
        if not isinstance(item, dict) or not item.get("field"):
            raise SchemaValidationError(f"fields[{idx}] must be a mapping with a 'field' key")
        name = str(item["field"])
        if name in seen:
            raise SchemaValidationError(f"duplicate field {name!r}")
        seen.add(name)
        dtype = item.get("type", "string")
        if dtype not in VALID_DATA_TYPES:
            raise SchemaValidationError(
                f"field {name!r} has unknown type {dtype!r}; "
                f"expected one of {sorted(VALID_DATA_TYPES)}"
            )

    defaults = data.get("defaults")
    if defaults is not None and not isinstance(defaults, dict):
        raise SchemaValidationError("defaults must be a mapping of field -> value")
