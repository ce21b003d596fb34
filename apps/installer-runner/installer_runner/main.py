"""CLI entrypoint for the installer runner."""

from __future__ import annotations

import asyncio
import math
import os
import sys
from pathlib import Path
from typing import NoReturn, Optional

import typer

if __package__ in {None, ""}:
    package_root = Path(__file__).resolve().parents[1]
    if str(package_root) not in sys.path:
        sys.path.insert(0, str(package_root))
    __package__ = "installer_runner"

from .console_reporter import ConsoleReporter
from .controller import StepController
from .events import EventChannel
from .loader import load_config, resolve_config_path
from .logging_utils import EventLogger, configure_logging
from .models import InstallerConfig, RunnerOptions
from .os_detect import detect_os, resolve_install_steps
from .output_config import get_log_format, get_output_format
from .prompt import ENV_VAR_NAME as PROMPT_ENV_VAR
from .prompt import create_prompt

app = typer.Typer(help="Installer-style CLI with progress bar and logs.")


def _fail(message: str) -> NoReturn:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _parse_speed(raw: str) -> float:
    try:
        speed = float(raw)
    except ValueError:
        speed = math.nan
    if not math.isfinite(speed) or speed <= 0:
        _fail("Invalid speed: must be a number greater than 0.")
    return speed


def _print_plan(config: InstallerConfig) -> None:
    typer.echo("Dry run: no steps executed.")
    typer.echo("Plan:")
    for index, step in enumerate(config.steps, start=1):
        typer.echo(f"  {index}. {step.title} (weight {step.weight:g})")
        if step.command:
            typer.echo(f"     $ {step.command}")


@app.command()
def install(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        help="Path to the installer config (JSON or YAML).",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate config and print the plan."),
    verbose: bool = typer.Option(False, "--verbose", help="Print info-level step logs."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable ANSI colors."),
    continue_on_error: bool = typer.Option(
        False,
        "--continue-on-error",
        help="Keep going after a step fails.",
    ),
    auto: bool = typer.Option(False, "--auto", help="Run every step without prompting."),
    speed: str = typer.Option("1", "--speed", help="Speed factor for simulated steps."),
    output_format: Optional[str] = typer.Option(
        None,
        "--output-format",
        help="Console output: auto, rich, plain or json.",
    ),
    log_level: str = typer.Option("warning", "--log-level", help="Diagnostic log level."),
) -> None:
    """Run the configured installer steps."""

    speed_factor = _parse_speed(speed)
    fmt = get_output_format(output_format)
    logger = configure_logging(log_level, get_log_format(fmt))

    try:
        installer_config = load_config(resolve_config_path(config))
        installer_config = resolve_install_steps(installer_config, detect_os())

        if dry_run:
            _print_plan(installer_config)
            return

        options = RunnerOptions(
            speed=speed_factor,
            continue_on_error=continue_on_error,
            verbose=verbose,
        )
        channel = EventChannel()
        reporter = ConsoleReporter(installer_config, fmt, verbose=verbose, no_color=no_color)
        reporter.attach(channel)
        EventLogger(logger).attach(channel)

        controller = StepController(
            config=installer_config,
            options=options,
            channel=channel,
            prompt=create_prompt(os.environ.get(PROMPT_ENV_VAR)),
            renderer=reporter,
        )
        asyncio.run(controller.run_all(force_auto=auto))
    except Exception as exc:
        logger.debug("install_failed", exc_info=True)
        _fail(str(exc) or type(exc).__name__)


def run() -> None:
    """Console_scripts hook."""

    app()


if __name__ == "__main__":  # pragma: no cover
    run()
