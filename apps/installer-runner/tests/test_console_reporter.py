from __future__ import annotations

import json
from io import StringIO
from typing import Any

import pytest
from rich.console import Console

from installer_runner.console_reporter import ConsoleReporter
from installer_runner.controller import StepController
from installer_runner.events import EventChannel
from installer_runner.loader import parse_config
from installer_runner.models import InstallerConfig, RunnerOptions
from installer_runner.output_config import OutputFormat
from installer_runner.prompt import StaticPrompt


def _config(**ui: Any) -> InstallerConfig:
    return parse_config(
        {
            "ui": ui,
            "steps": [
                {
                    "id": "prepare",
                    "title": "Preparing",
                    "durationMs": 10,
                    "logs": ["quiet detail", {"level": "warn", "message": "disk almost full"}],
                    "result": "Ready",
                },
                {"id": "finish", "title": "Finishing", "durationMs": 10, "result": ""},
            ],
        }
    )


async def _run(reporter: ConsoleReporter, config: InstallerConfig, clock: Any, **options: Any) -> None:
    channel = EventChannel()
    reporter.attach(channel)
    controller = StepController(
        config=config,
        options=RunnerOptions(**options),
        channel=channel,
        prompt=StaticPrompt("next"),
        renderer=reporter,
        clock=clock,
    )
    await controller.run_all()


@pytest.mark.asyncio
async def test_plain_output_reports_steps_and_summary(capsys, fake_clock) -> None:
    config = _config()
    reporter = ConsoleReporter(config, OutputFormat.PLAIN)

    await _run(reporter, config, fake_clock)

    out = capsys.readouterr().out
    assert "[1/2] Preparing ..." in out
    assert "⚠ disk almost full" in out
    assert "quiet detail" not in out
    assert "✓ RESULT | Ready" in out
    assert out.count("RESULT |") == 1
    assert "✓ Preparing completed" in out
    assert "✓ Finishing completed" in out
    assert "Succeeded: 2 | Failed: 0" in out
    assert "INSTALL COMPLETE" in out


@pytest.mark.asyncio
async def test_plain_verbose_shows_info_logs_and_ascii_icons(capsys, fake_clock) -> None:
    config = _config(unicode=False)
    reporter = ConsoleReporter(config, OutputFormat.PLAIN, verbose=True)

    await _run(reporter, config, fake_clock)

    out = capsys.readouterr().out
    assert "i quiet detail" in out
    assert "! disk almost full" in out
    assert "+ Preparing completed" in out


@pytest.mark.asyncio
async def test_plain_output_marks_failures(capsys, fake_clock) -> None:
    config = parse_config(
        {
            "steps": [
                {"id": "bad", "title": "Broken", "command": "exit 2"},
                {"id": "ok", "title": "Fine", "durationMs": 10},
            ]
        }
    )
    reporter = ConsoleReporter(config, OutputFormat.PLAIN)

    await _run(reporter, config, fake_clock, continue_on_error=True)

    out = capsys.readouterr().out
    assert "✖ Broken failed: Command failed: exit 2 (exit 2)" in out
    assert "Succeeded: 1 | Failed: 1" in out
    assert "INSTALL FINISHED WITH ERRORS" in out


@pytest.mark.asyncio
async def test_json_output_emits_one_object_per_event(capsys, fake_clock) -> None:
    config = _config()
    reporter = ConsoleReporter(config, OutputFormat.JSON)

    await _run(reporter, config, fake_clock)

    lines = [json.loads(line) for line in capsys.readouterr().out.strip().splitlines()]
    names = [line["event"] for line in lines]
    assert names[0] == "run:start"
    assert names[-1] == "run:complete"
    assert names.count("step:success") == 2
    assert {"event": "step:result", "step_id": "finish", "step_title": "Finishing", "index": 1, "result": ""} in lines


@pytest.mark.asyncio
async def test_rich_output_renders_summary(fake_clock) -> None:
    buffer = StringIO()
    config = _config()
    reporter = ConsoleReporter(
        config,
        OutputFormat.RICH,
        console=Console(file=buffer, width=120, no_color=True),
    )

    await _run(reporter, config, fake_clock)

    text = buffer.getvalue()
    assert "Preparing completed" in text
    assert "RESULT | Ready" in text
    assert "INSTALL COMPLETE" in text
    assert reporter.use_rich


def test_auto_format_falls_back_to_plain_in_ci(monkeypatch) -> None:
    monkeypatch.setenv("CI", "true")
    reporter = ConsoleReporter(_config(), OutputFormat.AUTO)
    assert reporter.use_rich is False


def test_unknown_spinner_name_falls_back(monkeypatch) -> None:
    config = parse_config({"theme": {"spinner": "no-such-spinner"}, "steps": [{"id": "x", "title": "X"}]})
    reporter = ConsoleReporter(config, OutputFormat.RICH, console=Console(file=StringIO()))

    assert reporter._build_progress() is not None
