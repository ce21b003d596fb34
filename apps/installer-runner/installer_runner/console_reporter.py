"""Console reporter with intelligent environment detection for installer output."""

from __future__ import annotations

import json
import os
import sys
import time
from dataclasses import dataclass
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.text import Text

from .events import (
    Event,
    EventChannel,
    EventKind,
    RunComplete,
    RunError,
    RunStart,
    StepError,
    StepLogged,
    StepProgress,
    StepResult,
    StepStart,
    StepSuccess,
    serialize_event,
)
from .models import InstallerConfig, LogLevel
from .output_config import OutputFormat
from .progress import compute_overall_percent, format_duration

_UNICODE_ICONS = {"success": "✓", "warn": "⚠", "error": "✖", "info": "ℹ"}
_ASCII_ICONS = {"success": "+", "warn": "!", "error": "x", "info": "i"}


@dataclass
class _StepRow:
    index: int
    title: str
    passed: bool
    duration_ms: float
    error: Optional[str] = None


class ConsoleReporter:
    """
    Renders run events to the terminal, adapting to the environment.

    Automatically detects:
    - Interactive terminals (use rich with a live progress bar)
    - CI/CD environments (use plain text)
    - Pipe/redirect scenarios (use plain text)

    JSON mode writes one object per event, for machines.
    """

    def __init__(
        self,
        config: InstallerConfig,
        output_format: OutputFormat = OutputFormat.AUTO,
        *,
        verbose: bool = False,
        no_color: bool = False,
        console: Optional[Console] = None,
    ) -> None:
        self.config = config
        self.output_format = output_format
        self.verbose = verbose
        self.no_color = no_color
        self._detect_environment()

        self.console = console or Console(no_color=no_color, highlight=False)
        self._unicode = config.ui.unicode
        self._icons = _UNICODE_ICONS if self._unicode else _ASCII_ICONS
        self._separator = config.ui.separators.unicode if self._unicode else config.ui.separators.ascii

        self.progress: Optional[Progress] = None
        self.progress_task: Optional[TaskID] = None
        self._live = False
        self._paused = False
        self._total_steps = len(config.steps)
        self._run_started = time.perf_counter()
        self._step_started = self._run_started
        self._rows: list[_StepRow] = []

    def _detect_environment(self) -> None:
        """Detect if we should use rich output or plain text."""
        if self.output_format == OutputFormat.RICH:
            self.use_rich = True
        elif self.output_format in (OutputFormat.PLAIN, OutputFormat.JSON):
            self.use_rich = False
        else:  # AUTO
            is_terminal = sys.stdout.isatty()
            is_ci = any(
                name in os.environ for name in ("CI", "JENKINS_HOME", "GITLAB_CI", "TRAVIS", "GITHUB_ACTIONS")
            )
            self.use_rich = is_terminal and not is_ci

    def attach(self, channel: EventChannel) -> None:
        """Subscribe to every event kind the reporter draws."""
        if self.output_format == OutputFormat.JSON:
            channel.subscribe_all(self._emit_json)
            return
        channel.subscribe(EventKind.RUN_START, self._on_run_start)
        channel.subscribe(EventKind.STEP_START, self._on_step_start)
        channel.subscribe(EventKind.STEP_PROGRESS, self._on_step_progress)
        channel.subscribe(EventKind.STEP_LOG, self._on_step_log)
        channel.subscribe(EventKind.STEP_RESULT, self._on_step_result)
        channel.subscribe(EventKind.STEP_SUCCESS, self._on_step_success)
        channel.subscribe(EventKind.STEP_ERROR, self._on_step_error)
        channel.subscribe(EventKind.RUN_COMPLETE, self._on_run_complete)
        channel.subscribe(EventKind.RUN_ERROR, self._on_run_error)

    def pause(self) -> None:
        """Suspend live drawing while an interactive prompt owns the terminal."""
        self._paused = True
        if self.progress is not None and self._live:
            self.progress.stop()
            self._live = False

    def resume(self) -> None:
        self._paused = False
        if self.progress is not None and not self._live:
            self.progress.start()
            self._live = True

    # Event handlers

    def _emit_json(self, event: Event) -> None:
        print(json.dumps(serialize_event(event), default=str), flush=True)

    def _on_run_start(self, event: RunStart) -> None:
        self._total_steps = event.total
        self._run_started = time.perf_counter()
        self._rows = []
        if self.use_rich:
            self.progress = self._build_progress()
            self.progress_task = self.progress.add_task("Starting", total=100)
            self.progress.start()
            self._live = True
        else:
            print(f"{self.config.ui.brand_label}: installing {event.total} steps")
            print("-" * 80)

    def _on_step_start(self, event: StepStart) -> None:
        self._step_started = time.perf_counter()
        label = f"Step {event.index + 1}/{self._total_steps}{self._separator}{event.step.title}"
        if self.use_rich:
            self._update_bar(label, compute_overall_percent(event.total_weight, event.completed_weight, 0, 0))
        else:
            print(f"[{event.index + 1}/{self._total_steps}] {event.step.title} ...", flush=True)

    def _on_step_progress(self, event: StepProgress) -> None:
        if not self.use_rich:
            return
        overall = compute_overall_percent(
            event.total_weight, event.completed_weight, event.step.weight, event.percent
        )
        self._update_bar(None, overall)

    def _on_step_log(self, event: StepLogged) -> None:
        if self.verbose or event.level != "info":
            self._print_log(event.level, event.message)

    def _on_step_result(self, event: StepResult) -> None:
        if not event.result.strip():
            return
        self._print_log("success", f"RESULT | {event.result}")

    def _on_step_success(self, event: StepSuccess) -> None:
        self._rows.append(_StepRow(event.index, event.step.title, True, self._elapsed_step_ms()))
        if self.use_rich:
            self._update_bar(None, compute_overall_percent(event.total_weight, event.completed_weight, 0, 0))
        self._print_log("success", f"{event.step.title} completed")

    def _on_step_error(self, event: StepError) -> None:
        message = str(event.error) or type(event.error).__name__
        self._rows.append(_StepRow(event.index, event.step.title, False, self._elapsed_step_ms(), message))
        self._print_log("error", f"{event.step.title} failed: {message}")

    def _on_run_complete(self, event: RunComplete) -> None:
        self._finish(aborted=False)

    def _on_run_error(self, event: RunError) -> None:
        self._finish(aborted=True)

    # Drawing helpers

    def _build_progress(self) -> Progress:
        theme = self.config.theme
        try:
            spinner = SpinnerColumn(spinner_name=theme.spinner, style=theme.accent)
        except KeyError:
            spinner = SpinnerColumn(style=theme.accent)
        return Progress(
            spinner,
            TextColumn(f"[bold {theme.brand[0]}]{self.config.ui.brand_label}"),
            BarColumn(
                bar_width=22,
                style=theme.bar_incomplete,
                complete_style=theme.bar_complete,
                finished_style=theme.success,
            ),
            TextColumn(f"[{theme.accent}]{{task.percentage:>3.0f}}%"),
            TextColumn("{task.description}"),
            TimeElapsedColumn(),
            console=self.console,
        )

    def _update_bar(self, description: Optional[str], percent: int) -> None:
        if self.progress is None or self.progress_task is None:
            return
        if description is None:
            self.progress.update(self.progress_task, completed=percent)
        else:
            self.progress.update(self.progress_task, completed=percent, description=description)

    def _print_log(self, level: LogLevel, message: str) -> None:
        icon = self._icons[level]
        if self.use_rich:
            theme = self.config.theme
            style = {"success": theme.success, "warn": theme.warn, "error": theme.error}.get(level, theme.accent)
            text = Text()
            text.append(icon, style=style)
            text.append(f" {message}")
            self.console.print(text)
        else:
            print(f"{icon} {message}", flush=True)

    def _elapsed_step_ms(self) -> float:
        return (time.perf_counter() - self._step_started) * 1000

    def _finish(self, *, aborted: bool) -> None:
        duration_ms = (time.perf_counter() - self._run_started) * 1000
        passed = len([row for row in self._rows if row.passed])
        failed = len(self._rows) - passed

        if self.use_rich:
            if self.progress is not None and self._live:
                self.progress.stop()
            self._live = False
            self._print_rich_summary(passed, failed, duration_ms, aborted)
        else:
            print("-" * 80)
            print(
                f"Steps: {len(self._rows)} | Succeeded: {passed} | Failed: {failed} | "
                f"Duration: {format_duration(duration_ms)}"
            )
            print(self._status_line(failed, aborted))

    def _print_rich_summary(self, passed: int, failed: int, duration_ms: float, aborted: bool) -> None:
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Step", style="dim", width=8)
        table.add_column("Title", width=40)
        table.add_column("Status", width=10)
        table.add_column("Duration", justify="right", width=10)
        for row in self._rows:
            status = Text(
                f"{self._icons['success']} OK" if row.passed else f"{self._icons['error']} FAIL",
                style="green" if row.passed else "red",
            )
            table.add_row(str(row.index + 1), row.title, status, f"{row.duration_ms:.0f}ms")
            if row.error:
                table.add_row("", Text(f"Error: {row.error}", style="red"), "", "")

        ok = failed == 0 and not aborted
        summary_text = Text()
        summary_text.append(f"Steps: {len(self._rows)}  ", style="bold")
        summary_text.append(f"Succeeded: {passed}  ", style="bold green")
        summary_text.append(f"Failed: {failed}  ", style="bold red" if failed else "bold green")
        summary_text.append(f"Duration: {format_duration(duration_ms)}", style="bold cyan")

        self.console.print(table)
        self.console.print(
            Panel(
                summary_text,
                title=Text(self._status_line(failed, aborted), style="bold green" if ok else "bold red"),
                border_style="green" if ok else "red",
            )
        )

    def _status_line(self, failed: int, aborted: bool) -> str:
        if aborted:
            return f"{self._icons['error']} INSTALL ABORTED"
        if failed:
            return f"{self._icons['error']} INSTALL FINISHED WITH ERRORS"
        return f"{self._icons['success']} INSTALL COMPLETE"
