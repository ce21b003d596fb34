"""Installer configuration and runtime models."""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

LogLevel = Literal["info", "warn", "error", "success"]

DEFAULT_THEME = MappingProxyType(
    {
        "brand": ("#00C2FF", "#00E6A8"),
        "accent": "#F6C177",
        "success": "#2ED573",
        "warn": "#FFA502",
        "error": "#FF4757",
        "bar_complete": "#00E6A8",
        "bar_incomplete": "#2F3542",
        "spinner": "dots",
    }
)

DEFAULT_SPINNER_FRAMES = ("⟡", "⟢", "⟣", "⟤")


class _ConfigModel(BaseModel):
    """Base for config sections: camelCase in files, snake_case in code, immutable once parsed."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class StepLog(_ConfigModel):
    """Log line scheduled during a simulated step."""

    level: LogLevel = "info"
    message: str = Field(min_length=1)


class StepConfig(_ConfigModel):
    """Single unit of installer work, either a shell command or a timed simulation."""

    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    weight: float = Field(default=1, gt=0, allow_inf_nan=False)
    duration_ms: Optional[int] = Field(default=None, gt=0)
    command: Optional[str] = Field(default=None, min_length=1)
    cwd: Optional[str] = Field(default=None, min_length=1)
    env: Optional[dict[str, str]] = None
    logs: Optional[list[StepLog]] = None
    result: Optional[str] = None
    package: Optional[str] = Field(default=None, min_length=1)

    @field_validator("logs", mode="before")
    @classmethod
    def _normalize_logs(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        return [{"level": "info", "message": item} if isinstance(item, str) else item for item in value]


class ThemeConfig(_ConfigModel):
    """Colours used by the console reporter."""

    brand: tuple[str, str] = Field(default_factory=lambda: DEFAULT_THEME["brand"])
    accent: str = DEFAULT_THEME["accent"]
    success: str = DEFAULT_THEME["success"]
    warn: str = DEFAULT_THEME["warn"]
    error: str = DEFAULT_THEME["error"]
    bar_complete: str = DEFAULT_THEME["bar_complete"]
    bar_incomplete: str = DEFAULT_THEME["bar_incomplete"]
    spinner: str = DEFAULT_THEME["spinner"]


class BarChars(_ConfigModel):
    full: str = "█"
    empty: str = "░"
    glow: str = "▓"


class Separators(_ConfigModel):
    unicode: str = " • "
    ascii: str = " | "


class AnimationConfig(_ConfigModel):
    tick_ms: int = Field(default=90, gt=0)
    glow_width: int = Field(default=4, gt=0)
    frame_tick_ms: int = Field(default=140, gt=0)


class UiConfig(_ConfigModel):
    """Presentation settings consumed by the console reporter only."""

    unicode: bool = True
    brand_label: str = "OpenInstall"
    spinner_frames: list[str] = Field(default_factory=lambda: list(DEFAULT_SPINNER_FRAMES))
    bar_chars: BarChars = Field(default_factory=BarChars)
    separators: Separators = Field(default_factory=Separators)
    animation: AnimationConfig = Field(default_factory=AnimationConfig)


class InstallerConfig(_ConfigModel):
    """Top-level installer configuration: ordered steps plus presentation settings."""

    theme: ThemeConfig = Field(default_factory=ThemeConfig)
    ui: UiConfig = Field(default_factory=UiConfig)
    steps: list[StepConfig] = Field(min_length=1)


class RunnerOptions(BaseModel):
    """Execution options chosen on the command line."""

    model_config = ConfigDict(frozen=True)

    speed: float = Field(default=1.0, gt=0, allow_inf_nan=False)
    continue_on_error: bool = False
    verbose: bool = False
