"""Unit tests for content_etl.config."""

from __future__ import annotations

import textwrap

import pytest

from content_etl.coerce import CoercionMode
from content_etl.config import API_URL_ENV, PipelineConfig, load_config, validate_target_page
from content_etl.shared import SchemaValidationError
from content_etl.tokenizer import MAX_FILE_BYTES

SCHEMA_YAML = textwrap.dedent("""\
    kind: screenshots
    fields:
      - {field: title, required: true}
""")


class TestLoadConfig:
    def test_defaults_without_file(self, monkeypatch):
        monkeypatch.delenv(API_URL_ENV, raising=False)
        config = load_config()
        assert isinstance(config, PipelineConfig)
        assert config.coercion_mode is CoercionMode.LENIENT
        assert config.max_file_bytes == MAX_FILE_BYTES
        assert config.target_page == "all"
        assert config.api_base_url is None
        assert config.registry.kinds() == ["documents", "update-logs"]

    def test_env_supplies_api_url(self, monkeypatch):
        monkeypatch.setenv(API_URL_ENV, "https://env.example.com")
        assert load_config().api_base_url == "https://env.example.com"

    def test_yaml_values(self, tmp_path, monkeypatch):
        monkeypatch.setenv(API_URL_ENV, "https://env.example.com")
        path = tmp_path / "pipeline.yml"
        path.write_text(textwrap.dedent("""\
            coercion_mode: strict
            max_file_mb: 2
            sample_rows: 8
            target_page: gacha
            api_base_url: https://yaml.example.com
            api_timeout: 12
        """))
        config = load_config(path)
        assert config.coercion_mode is CoercionMode.STRICT
        assert config.max_file_bytes == 2 * 1024 * 1024
        assert config.sample_rows == 8
        assert config.target_page == "gacha"
        assert config.api_base_url == "https://yaml.example.com"
        assert config.api_timeout == 12

    def test_schema_paths_relative_to_config(self, tmp_path):
        (tmp_path / "schemas").mkdir()
        (tmp_path / "schemas" / "screenshots.yml").write_text(SCHEMA_YAML)
        path = tmp_path / "pipeline.yml"
        path.write_text("schemas:\n  - schemas/screenshots.yml\n")
        config = load_config(path)
        assert "screenshots" in config.registry

    def test_extra_schema_paths(self, tmp_path):
        schema_path = tmp_path / "screenshots.yml"
        schema_path.write_text(SCHEMA_YAML)
        config = load_config(schema_paths=[schema_path])
        assert config.registry.kinds()[-1] == "screenshots"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "pipeline.yml"
        path.write_text("")
        assert load_config(path).sample_rows == 5

    def test_bad_mode(self, tmp_path):
        path = tmp_path / "pipeline.yml"
        path.write_text("coercion_mode: loose\n")
        with pytest.raises(SchemaValidationError, match="coercion_mode"):
            load_config(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "pipeline.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(SchemaValidationError, match="YAML mapping"):
            load_config(path)

    def test_unknown_keys_warned(self, tmp_path, caplog):
        path = tmp_path / "pipeline.yml"
        path.write_text("colour: blue\n")
        load_config(path)
        assert "ignoring unknown config keys" in caplog.text


class TestValidateTargetPage:
    def test_known_pages(self):
        assert validate_target_page("all") == "all"
        assert validate_target_page("festival") == "festival"

    def test_unknown_page(self):
        with pytest.raises(SchemaValidationError, match="unknown target page"):
            validate_target_page("lobby")
