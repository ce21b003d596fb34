from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from installer_runner.loader import ConfigError, load_config, parse_config, resolve_config_path
from installer_runner.models import DEFAULT_THEME, RunnerOptions

BASE_CONFIG = {"steps": [{"id": "prepare", "title": "Preparing", "durationMs": 500}]}


def test_fills_theme_and_ui_defaults() -> None:
    config = parse_config(BASE_CONFIG)

    assert config.theme.accent == DEFAULT_THEME["accent"]
    assert config.theme.brand == ("#00C2FF", "#00E6A8")
    assert config.ui.unicode is True
    assert config.ui.brand_label == "OpenInstall"
    assert config.ui.animation.tick_ms == 90
    assert config.steps[0].duration_ms == 500


def test_weight_defaults_to_one() -> None:
    config = parse_config(BASE_CONFIG)
    assert config.steps[0].weight == 1


def test_rejects_missing_title() -> None:
    with pytest.raises(ConfigError, match="(?i)title"):
        parse_config({"steps": [{"id": "x"}]})


def test_rejects_empty_step_list() -> None:
    with pytest.raises(ConfigError, match="steps"):
        parse_config({"steps": []})


@pytest.mark.parametrize("weight", [0, -1])
def test_rejects_non_positive_weight(weight: int) -> None:
    with pytest.raises(ConfigError, match="weight"):
        parse_config({"steps": [{"id": "x", "title": "X", "weight": weight}]})


def test_normalizes_string_logs() -> None:
    config = parse_config({"steps": [{"id": "x", "title": "X", "logs": ["Hello"]}]})

    log = config.steps[0].logs[0]
    assert (log.level, log.message) == ("info", "Hello")


@pytest.mark.parametrize("entry", ["", {"level": "info", "message": ""}])
def test_rejects_empty_log_messages(entry: object) -> None:
    with pytest.raises(ConfigError, match="(?i)message"):
        parse_config({"steps": [{"id": "x", "title": "X", "logs": [entry]}]})


def test_keeps_empty_result_distinct_from_missing() -> None:
    config = parse_config(
        {"steps": [{"id": "x", "title": "X", "result": ""}, {"id": "y", "title": "Y"}]}
    )
    assert config.steps[0].result == ""
    assert config.steps[1].result is None


def test_does_not_share_defaults_between_parses() -> None:
    first = parse_config({"steps": [{"id": "x", "title": "X"}]})
    second = parse_config({"steps": [{"id": "y", "title": "Y"}]})

    first.ui.spinner_frames.append("*")

    assert second.ui.spinner_frames == ["⟡", "⟢", "⟣", "⟤"]
    assert first.ui.bar_chars is not second.ui.bar_chars


def test_exported_theme_defaults_are_read_only() -> None:
    with pytest.raises(TypeError):
        DEFAULT_THEME["spinner"] = "line"  # type: ignore[index]


def test_accepts_snake_case_keys() -> None:
    config = parse_config({"steps": [{"id": "x", "title": "X", "duration_ms": 10}]})
    assert config.steps[0].duration_ms == 10


def test_load_config_reads_json_and_yaml(tmp_path: Path) -> None:
    json_path = tmp_path / "steps.json"
    json_path.write_text(json.dumps(BASE_CONFIG), encoding="utf-8")
    yaml_path = tmp_path / "steps.yaml"
    yaml_path.write_text(yaml.safe_dump(BASE_CONFIG), encoding="utf-8")

    assert load_config(json_path).steps[0].title == "Preparing"
    assert load_config(yaml_path).steps[0].title == "Preparing"


def test_load_config_reports_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigError, match="not valid JSON"):
        load_config(path)


def test_load_config_requires_mapping(tmp_path: Path) -> None:
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="mapping"):
        load_config(path)


def test_load_config_reports_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Cannot read"):
        load_config(tmp_path / "missing.json")


def test_resolve_config_path_prefers_cli_path(tmp_path: Path) -> None:
    explicit = tmp_path / "custom.json"
    assert resolve_config_path(explicit, base_dir=tmp_path) == explicit.resolve()


def test_resolve_config_path_finds_candidates(tmp_path: Path) -> None:
    (tmp_path / "config").mkdir()
    candidate = tmp_path / "config" / "steps.json"
    candidate.write_text(json.dumps(BASE_CONFIG), encoding="utf-8")

    assert resolve_config_path(None, base_dir=tmp_path) == candidate.resolve()


def test_resolve_config_path_without_candidates(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="No config file found"):
        resolve_config_path(None, base_dir=tmp_path)


@pytest.mark.parametrize("speed", [0, -1, float("inf"), float("nan")])
def test_runner_options_reject_invalid_speed(speed: float) -> None:
    with pytest.raises(ValueError, match="speed"):
        RunnerOptions(speed=speed)
