from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
import yaml

from piclimate.config import (
    DEFAULT_CONFIG,
    load_config,
    parse_name_list,
    render_config_yaml,
)
from piclimate.constants import DEFAULT_COUNT_LIMIT, DEFAULT_TABLE_NAME


def _write_config(path: Path, payload: dict) -> None:
    path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")


def test_missing_file_gets_defaults_and_is_created(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    cfg = load_config(config_path)
    assert cfg.logger.provider == "random"
    assert cfg.logger.loggers == ["console"]
    assert cfg.database.table_name == DEFAULT_TABLE_NAME
    assert cfg.count_limiter.count_limit == DEFAULT_COUNT_LIMIT
    assert cfg.logger.loop_delay_s == 60.0
    assert config_path.exists()
    assert yaml.safe_load(config_path.read_text(encoding="utf-8")) == DEFAULT_CONFIG


def test_regeneration_keeps_user_values_and_adds_comments(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, {"logger": {"provider": "bme280"}, "server": {"port": 9000}})
    load_config(config_path)
    text = config_path.read_text(encoding="utf-8")
    assert "# Measurement provider name" in text
    data = yaml.safe_load(text)
    assert data["logger"]["provider"] == "bme280"
    assert data["server"]["port"] == 9000
    assert data["bme280"]["oversampling"] == 16


def test_regenerate_false_leaves_file_untouched(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, {"server": {"port": 9000}})
    before = config_path.read_text(encoding="utf-8")
    load_config(config_path, regenerate=False)
    assert config_path.read_text(encoding="utf-8") == before


def test_json_settings_file_is_accepted(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(json.dumps({"logger": {"loggers": ["sqlite"]}}), encoding="utf-8")
    cfg = load_config(config_path)
    assert cfg.logger.loggers == ["sqlite"]


def test_overrides_are_not_persisted(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    cfg = load_config(config_path, overrides={"logger": {"provider": "bme_reader"}})
    assert cfg.logger.provider == "bme_reader"
    data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    assert data["logger"]["provider"] == "random"


def test_database_path_resolves_relative_to_config_dir(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, {"database": {"path": "db/climate.db"}})
    cfg = load_config(config_path)
    assert cfg.database.path == tmp_path / "db" / "climate.db"


def test_top_level_must_be_mapping(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError, match="YAML object"):
        load_config(config_path)


def test_loop_delay_is_clamped_with_warning(tmp_path: Path, caplog) -> None:
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, {"logger": {"loop_delay_s": 0.1}})
    with caplog.at_level(logging.WARNING):
        cfg = load_config(config_path)
    assert cfg.logger.loop_delay_s == 1.0
    assert any("loop_delay_s" in record.getMessage() for record in caplog.records)


@pytest.mark.parametrize(("value", "expected"), [("0x77", 0x77), (0x76, 0x76), (None, None)])
def test_custom_address_parsing(tmp_path: Path, value, expected) -> None:
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, {"bme280": {"custom_address": value}})
    assert load_config(config_path).bme280.custom_address == expected


def test_custom_address_out_of_range_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, {"bme280": {"custom_address": "0x99"}})
    with pytest.raises(ValueError, match="custom_address"):
        load_config(config_path)


def test_invalid_oversampling_falls_back_to_16(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, {"bme280": {"oversampling": 3}})
    assert load_config(config_path).bme280.oversampling == 16


def test_invalid_table_name_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, {"database": {"table_name": "bad name; DROP"}})
    with pytest.raises(ValueError):
        load_config(config_path)


def test_invalid_server_source_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, {"server": {"source": "mysql"}})
    with pytest.raises(ValueError, match="server.source"):
        load_config(config_path)


def test_parse_name_list_trims_and_dedupes() -> None:
    assert parse_name_list(" console, sqlite,,console ") == ["console", "sqlite"]
    assert parse_name_list(["period", "count", "period"]) == ["period", "count"]
    assert parse_name_list(None) == []


def test_render_config_yaml_round_trips_defaults() -> None:
    text = render_config_yaml(DEFAULT_CONFIG)
    assert text.startswith("# ")
    assert yaml.safe_load(text) == DEFAULT_CONFIG
