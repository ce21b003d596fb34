"""Run controller: sequencing, pacing and failure policy for a whole install."""

from __future__ import annotations

from typing import Any, Awaitable, Optional, Protocol

import structlog

from .clock import Clock
from .events import EventChannel, RunComplete, RunError, RunStart
from .executor import StepExecutor
from .models import InstallerConfig, RunnerOptions
from .prompt import Choice, StaticPrompt

LOGGER = structlog.get_logger("installer_runner")


class Prompt(Protocol):
    def open(self) -> Awaitable[Choice]:
        """Ask once between steps; resolve to ``next``, ``auto`` or ``back``."""


class StepController:
    """Drives the ordered step list for one ``run_all`` call.

    Between steps, unless in auto mode, the controller pauses the renderer and
    asks the prompt what to do: ``auto`` runs the rest unattended, ``back``
    re-runs the previous step (commands included), anything else moves on.
    """

    def __init__(
        self,
        *,
        config: InstallerConfig,
        options: RunnerOptions,
        channel: EventChannel,
        prompt: Prompt,
        renderer: Optional[Any] = None,
        executor: Optional[StepExecutor] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._config = config
        self._options = options
        self._channel = channel
        self._prompt = prompt
        self._pause = getattr(renderer, "pause", None)
        self._resume = getattr(renderer, "resume", None)
        self._executor = executor or StepExecutor(
            config=config,
            options=options,
            channel=channel,
            clock=clock,
        )

    async def run_all(self, force_auto: bool = False) -> None:
        steps = self._config.steps
        self._channel.publish(RunStart(total=len(steps)))
        LOGGER.info("run_started", total=len(steps), auto=force_auto)

        index = 0
        auto_mode = force_auto
        while index < len(steps):
            try:
                await self._executor.run_single_step(index)
            except Exception as exc:
                if not self._options.continue_on_error:
                    self._abort(exc)
                    raise
                LOGGER.info("step_error_ignored", step_id=steps[index].id, index=index)

            if not auto_mode:
                try:
                    choice = await self._ask()
                except Exception as exc:
                    self._abort(exc)
                    raise
                LOGGER.debug("prompt_choice", choice=choice, index=index)

                if choice == "auto":
                    auto_mode = True
                    index += 1
                    continue
                if choice == "back":
                    index = max(0, index - 1)
                    continue

            index += 1

        self._channel.publish(RunComplete(total=len(steps)))
        LOGGER.info("run_completed", total=len(steps))

    async def _ask(self) -> Choice:
        if self._pause is not None:
            self._pause()
        try:
            return await self._prompt.open()
        finally:
            if self._resume is not None:
                self._resume()

    def _abort(self, exc: BaseException) -> None:
        LOGGER.error("run_aborted", error=str(exc))
        self._channel.publish(RunError(error=exc))


async def run_steps(
    config: InstallerConfig,
    options: RunnerOptions,
    channel: EventChannel,
    clock: Optional[Clock] = None,
) -> None:
    """Run every step in order without prompting."""

    controller = StepController(
        config=config,
        options=options,
        channel=channel,
        prompt=StaticPrompt("auto"),
        clock=clock,
    )
    await controller.run_all(force_auto=True)
