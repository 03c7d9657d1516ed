"""content_etl.config

Pipeline configuration, passed explicitly into every entry point.

An optional YAML file supplies defaults; CLI flags override it, and the
CONTENT_API_URL environment variable fills in the API base URL when neither
does.  Example:

    coercion_mode: strict
    max_file_mb: 5
    sample_rows: 10
    target_page: gacha
    api_base_url: https://content.example.com/api
    api_timeout: 15
    schemas:
      - config/schemas/screenshots.yml
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from content_etl.coerce import CoercionMode
from content_etl.defaults import ALL_PAGES, AVAILABLE_PAGES
from content_etl.preview import DEFAULT_SAMPLE_ROWS
from content_etl.schema import SchemaRegistry, default_registry, load_entity_schema
from content_etl.shared import SchemaValidationError
from content_etl.sinks import DEFAULT_TIMEOUT
from content_etl.tokenizer import MAX_FILE_BYTES

log = logging.getLogger(__name__)

API_URL_ENV = "CONTENT_API_URL"

_KNOWN_KEYS = frozenset({
    "coercion_mode",
    "max_file_mb",
    "sample_rows",
    "target_page",
    "api_base_url",
    "api_timeout",
    "schemas",
})


@dataclass
class PipelineConfig:
    registry: SchemaRegistry = field(default_factory=default_registry)
    coercion_mode: CoercionMode = CoercionMode.LENIENT
    max_file_bytes: int = MAX_FILE_BYTES
    sample_rows: int = DEFAULT_SAMPLE_ROWS
    target_page: str = ALL_PAGES
    api_base_url: str | None = None
    api_timeout: int = DEFAULT_TIMEOUT


def validate_target_page(page: str) -> str:
    if page != ALL_PAGES and page not in AVAILABLE_PAGES:
        raise SchemaValidationError(
            f"unknown target page {page!r}; expected 'all' or one of {sorted(AVAILABLE_PAGES)}"
        )
    return page


def load_config(
    path: Path | None = None,
    schema_paths: list[Path] | None = None,
) -> PipelineConfig:
    """Build a PipelineConfig from an optional YAML file plus extra schema files.

    Relative schema paths inside the YAML file resolve against the file's
    directory.
    """
    data: dict[str, Any] = {}
    if path is not None:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise SchemaValidationError(f"{path}: config file must contain a YAML mapping")
        unknown = set(loaded) - _KNOWN_KEYS
        if unknown:
            log.warning("%s: ignoring unknown config keys %s", path, sorted(unknown))
        data = loaded

    config = PipelineConfig()

    if "coercion_mode" in data:
        try:
            config.coercion_mode = CoercionMode(data["coercion_mode"])
        except ValueError:
            raise SchemaValidationError(
                f"coercion_mode must be 'lenient' or 'strict', got {data['coercion_mode']!r}"
            ) from None
    if "max_file_mb" in data:
        config.max_file_bytes = int(float(data["max_file_mb"]) * 1024 * 1024)
    if "sample_rows" in data:
        config.sample_rows = int(data["sample_rows"])
    if "target_page" in data:
        config.target_page = validate_target_page(str(data["target_page"]))
    if "api_timeout" in data:
        config.api_timeout = int(data["api_timeout"])
    config.api_base_url = data.get("api_base_url") or os.environ.get(API_URL_ENV) or None

    base_dir = path.parent if path is not None else Path(".")
    all_schema_paths = [base_dir / p for p in data.get("schemas") or []]
    all_schema_paths += schema_paths or []
    for schema_path in all_schema_paths:
        schema = load_entity_schema(schema_path)
        config.registry.register(schema)
        log.info("registered entity kind %r from %s", schema.kind, schema_path)

    return config
