"""Tests for configuration loading and validation."""

import json
from pathlib import Path

import pytest

from windmap.config import ConfigurationError, WindConfig, load_config

REPO_CONFIG = Path(__file__).resolve().parent.parent / "config" / "wind.json"


def test_defaults():
    cfg = load_config()
    assert cfg.tile_size_deg == 10.0
    assert cfg.batch_size == 24
    assert cfg.sub_batch_size == 24
    assert cfg.max_concurrency == 10
    assert cfg.sub_batch_delay_s == 5.0
    assert cfg.sweep_batch_delay_s == 60.0
    assert cfg.steady_batch_delay_s == 7200.0
    assert cfg.sweep_batch_threshold == 27
    assert cfg.refresh_interval_s == 7200.0
    assert cfg.reset_batch_count_at_threshold is True


def test_repo_config_file_loads():
    assert load_config(REPO_CONFIG) == WindConfig()


@pytest.mark.parametrize("changes", [
    {"batch_size": 0},
    {"sub_batch_size": -1},
    {"max_concurrency": 0},
    {"sweep_batch_threshold": 0},
    {"tile_size_deg": 0.0},
    {"tile_size_deg": 200.0},
    {"sub_batch_delay_s": -0.1},
    {"refresh_interval_s": -1.0},
    {"request_timeout_s": 0.0},
    {"forecast_url": ""},
])
def test_invalid_values(changes):
    with pytest.raises(ConfigurationError):
        WindConfig().replace(**changes)


def test_from_dict_coerces_whole_numbers():
    cfg = WindConfig.from_dict({"sub_batch_delay_s": 1, "batch_size": 12})
    assert cfg.sub_batch_delay_s == 1.0
    assert isinstance(cfg.sub_batch_delay_s, float)
    assert cfg.batch_size == 12


@pytest.mark.parametrize("data", [
    {"batch_sizes": 12},
    {"batch_size": 12.5},
    {"batch_size": "12"},
    {"reset_batch_count_at_threshold": 1},
])
def test_from_dict_rejects_bad_input(data):
    with pytest.raises(ConfigurationError):
        WindConfig.from_dict(data)


def test_load_config_file(tmp_path):
    path = tmp_path / "wind.json"
    path.write_text(json.dumps({"batch_size": 6, "sub_batch_size": 3}), encoding="utf-8")
    cfg = load_config(path)
    assert (cfg.batch_size, cfg.sub_batch_size) == (6, 3)


def test_load_config_errors(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(bad)

    not_object = tmp_path / "list.json"
    not_object.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(not_object)
