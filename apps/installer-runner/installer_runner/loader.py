"""Installer configuration loading utilities."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from .models import InstallerConfig

CONFIG_CANDIDATES = (
    Path("installer.config.json"),
    Path("installer.config.yaml"),
    Path("config/steps.json"),
    Path("config/steps.yaml"),
)


class ConfigError(ValueError):
    """Raised when the installer configuration cannot be located, read or validated."""


def parse_config(data: Any) -> InstallerConfig:
    """Validate an already-decoded configuration document."""

    if not isinstance(data, dict):
        raise ConfigError("Invalid config: top level must be a mapping")
    try:
        return InstallerConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config: {_summarize(exc)}") from exc


def load_config(path: Path) -> InstallerConfig:
    """Load and validate a JSON or YAML installer config file."""

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc.strerror or exc}") from exc

    if path.suffix.lower() in {".yaml", ".yml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Config file {path} is not valid YAML: {exc}") from exc
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Config file {path} is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return parse_config(data)


def resolve_config_path(cli_path: Optional[Path] = None, base_dir: Optional[Path] = None) -> Path:
    """Return the explicit config path, or the first well-known config file that exists."""

    if cli_path is not None:
        return cli_path.resolve()

    root = base_dir or Path.cwd()
    for candidate in CONFIG_CANDIDATES:
        resolved = (root / candidate).resolve()
        if resolved.exists():
            return resolved
    raise ConfigError("No config file found. Use --config <path>.")


def _summarize(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"])
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)
