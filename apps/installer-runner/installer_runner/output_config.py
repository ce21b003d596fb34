"""Output and log format selection for the installer CLI."""

import os
from enum import Enum
from typing import Literal, Optional


class OutputFormat(str, Enum):
    """How the console reporter draws a run."""
    AUTO = "auto"
    RICH = "rich"
    PLAIN = "plain"
    JSON = "json"


LogFormat = Literal["json", "console", "plain"]

ENV_VAR_NAME = "CONSOLE_OUTPUT_FORMAT"

# auto and rich share the colored console renderer.
_LOG_FORMATS: dict[OutputFormat, LogFormat] = {
    OutputFormat.AUTO: "console",
    OutputFormat.RICH: "console",
    OutputFormat.PLAIN: "plain",
    OutputFormat.JSON: "json",
}


def _parse_format(value: Optional[str]) -> Optional[OutputFormat]:
    if not value:
        return None
    try:
        return OutputFormat(value.strip().lower())
    except ValueError:
        return None


def get_output_format(cli_override: Optional[str] = None) -> OutputFormat:
    """Pick the first recognised format from the CLI flag, then the environment.

    Falls back to ``auto`` when neither names a known format.
    """
    for candidate in (cli_override, os.environ.get(ENV_VAR_NAME)):
        parsed = _parse_format(candidate)
        if parsed is not None:
            return parsed
    return OutputFormat.AUTO


def get_log_format(output_format: OutputFormat) -> LogFormat:
    return _LOG_FORMATS[output_format]
