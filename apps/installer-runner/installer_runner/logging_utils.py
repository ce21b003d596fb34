"""Structured logging helpers for the installer runner."""

from __future__ import annotations

import logging
import sys
from io import StringIO
from typing import Any

import structlog
from rich.console import Console
from rich.text import Text

from .events import Event, EventChannel, EventKind, serialize_event
from .output_config import LogFormat

LOGGER_NAME = "installer_runner"

_EVENT_LEVELS = {
    EventKind.STEP_PROGRESS: "debug",
    EventKind.STEP_LOG: "debug",
    EventKind.STEP_ERROR: "warning",
    EventKind.RUN_ERROR: "error",
}


class RichConsoleRenderer:
    """structlog renderer producing coloured one-line records through Rich."""

    def __init__(self) -> None:
        self.level_styles = {
            "debug": "dim cyan",
            "info": "cyan",
            "warning": "yellow",
            "error": "bold red",
            "critical": "bold white on red",
        }

    def __call__(self, logger: Any, name: str, event_dict: dict[str, Any]) -> str:
        timestamp = event_dict.pop("timestamp", "")
        level = event_dict.pop("level", "info")
        event = event_dict.pop("event", "")
        exception = event_dict.pop("exception", None)

        text = Text()
        text.append(timestamp, style="dim white")
        text.append(" ")
        text.append(f"[{level:<8}]", style=self.level_styles.get(level, "white"))
        text.append(" ")
        text.append(event, style="bold white")

        padding = max(0, 24 - len(event))
        if padding > 0 and event_dict:
            text.append(" " * padding)

        for key, value in sorted(event_dict.items()):
            text.append(f" {key}=", style="dim white")
            text.append(str(value), style="bright_cyan")

        if exception:
            text.append(f"\n{exception}", style="red")

        buffer = StringIO()
        Console(file=buffer, force_terminal=True, width=200, legacy_windows=False).print(text, end="")
        return buffer.getvalue()


def configure_logging(log_level: str, log_format: LogFormat = "console") -> structlog.stdlib.BoundLogger:
    """Configure structlog on stderr so diagnostics never interleave with the progress display."""

    normalized_level = getattr(logging, log_level.upper(), logging.WARNING)
    logging.basicConfig(
        level=normalized_level,
        stream=sys.stderr,
        format="%(message)s",
        force=True,
    )

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
        structlog.processors.format_exc_info,
    ]
    if log_format == "console":
        processors.append(RichConsoleRenderer())
    elif log_format == "plain":
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    else:  # json
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(normalized_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    return structlog.get_logger(LOGGER_NAME)


class EventLogger:
    """Event channel subscriber that records every run event as a structured log entry."""

    def __init__(self, logger: Any = None) -> None:
        self._logger = logger or structlog.get_logger(LOGGER_NAME)

    def attach(self, channel: EventChannel) -> None:
        channel.subscribe_all(self)

    def __call__(self, event: Event) -> None:
        payload = serialize_event(event)
        name = payload.pop("event").replace(":", "_")
        if "level" in payload:
            payload["step_level"] = payload.pop("level")
        level = _EVENT_LEVELS.get(event.kind, "info")
        getattr(self._logger, level)(name, **payload)
