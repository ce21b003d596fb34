"""Step execution: shell commands and timed simulations."""

from __future__ import annotations

import asyncio
import contextlib
import os
import signal
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import structlog

from .clock import Clock, SystemClock
from .events import EventChannel, StepError, StepLogged, StepProgress, StepResult, StepStart, StepSuccess
from .models import InstallerConfig, LogLevel, RunnerOptions, StepConfig
from .progress import (
    completed_weight,
    log_offsets_ms,
    simulated_duration_ms,
    simulated_percent,
    total_weight,
)

LOGGER = structlog.get_logger("installer_runner")

SIMULATED_TICK_SECONDS = 0.08
COMMAND_TICK_SECONDS = 0.2
COMMAND_PROGRESS_INCREMENT = 3
COMMAND_PROGRESS_CEILING = 90
STDOUT_LEVEL: LogLevel = "info"
STDERR_LEVEL: LogLevel = "error"
STREAM_LIMIT = 1024 * 1024


class CommandFailedError(RuntimeError):
    """A command step exited non-zero or was killed by a signal."""

    def __init__(
        self,
        command: str,
        *,
        exit_code: Optional[int] = None,
        signal_name: Optional[str] = None,
    ) -> None:
        detail = f"signal {signal_name}" if signal_name else f"exit {exit_code}"
        super().__init__(f"Command failed: {command} ({detail})")
        self.command = command
        self.exit_code = exit_code
        self.signal_name = signal_name


@dataclass(frozen=True)
class StepContext:
    index: int
    completed_weight: float
    total_weight: float


async def iter_lines(stream: Optional[asyncio.StreamReader]) -> AsyncIterator[str]:
    """Yield decoded lines from a subprocess pipe until EOF.

    Lines longer than the reader's buffer limit are drained in chunks and
    joined, so an oversized line is still delivered whole.
    """

    if stream is None:
        return
    pending = bytearray()
    while True:
        try:
            pending += await stream.readuntil(b"\n")
        except asyncio.IncompleteReadError as exc:
            pending += exc.partial
            if pending:
                yield _decode_line(pending)
            return
        except asyncio.LimitOverrunError as exc:
            pending += await stream.read(exc.consumed)
            continue
        yield _decode_line(pending)
        pending = bytearray()


def _decode_line(raw: bytearray) -> str:
    return bytes(raw).decode("utf-8", errors="replace").rstrip("\r\n")


def _signal_name(returncode: int) -> str:
    try:
        return signal.Signals(-returncode).name
    except ValueError:
        return f"SIG{-returncode}"


class StepExecutor:
    """Runs one configured step to completion and reports it on the event channel.

    The executor never decides what happens next: failures are published as
    ``step:error`` and re-raised for the controller to judge.
    """

    def __init__(
        self,
        *,
        config: InstallerConfig,
        options: RunnerOptions,
        channel: EventChannel,
        clock: Optional[Clock] = None,
    ) -> None:
        self._config = config
        self._options = options
        self._channel = channel
        self._clock = clock or SystemClock()

    async def run_single_step(self, index: int) -> None:
        steps = self._config.steps
        step = steps[index]
        context = StepContext(
            index=index,
            completed_weight=completed_weight(steps, index),
            total_weight=total_weight(steps),
        )
        logger = LOGGER.bind(step_id=step.id, index=index)
        logger.debug("step_started", mode="command" if step.command else "simulated")

        self._channel.publish(
            StepStart(
                step=step,
                index=index,
                completed_weight=context.completed_weight,
                total_weight=context.total_weight,
            )
        )
        try:
            if step.command:
                await self._run_command(step, context)
            else:
                await self._run_simulated(step, context)
        except Exception as exc:
            logger.warning("step_failed", error=str(exc))
            self._channel.publish(
                StepError(
                    step=step,
                    index=index,
                    error=exc,
                    completed_weight=context.completed_weight,
                    total_weight=context.total_weight,
                )
            )
            raise

        if step.result is not None:
            self._channel.publish(StepResult(step=step, index=index, result=step.result))
        self._channel.publish(
            StepSuccess(
                step=step,
                index=index,
                completed_weight=context.completed_weight + step.weight,
                total_weight=context.total_weight,
            )
        )
        logger.debug("step_succeeded")

    async def _run_simulated(self, step: StepConfig, context: StepContext) -> None:
        duration_ms = simulated_duration_ms(step.duration_ms, self._options.speed)
        entries = step.logs or []
        pending = list(zip(log_offsets_ms(duration_ms, len(entries)), entries))
        start = self._clock.monotonic()

        while True:
            await self._clock.sleep(SIMULATED_TICK_SECONDS)
            elapsed_ms = (self._clock.monotonic() - start) * 1000
            percent = simulated_percent(elapsed_ms, duration_ms)

            # Every scheduled log lands before the terminal 100% event.
            while pending and (percent >= 100 or pending[0][0] <= elapsed_ms):
                _, entry = pending.pop(0)
                self._log(step, context, entry.level, entry.message)

            self._progress(step, context, percent)
            if percent >= 100:
                return

    async def _run_command(self, step: StepConfig, context: StepContext) -> None:
        command = step.command or ""
        logger = LOGGER.bind(step_id=step.id, index=context.index)
        env = {**os.environ, **(step.env or {})}
        cwd = step.cwd or os.getcwd()

        process = await asyncio.create_subprocess_shell(
            command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=env,
            limit=STREAM_LIMIT,
        )
        logger.debug("command_spawned", command=command, pid=process.pid, cwd=cwd)

        readers = [
            asyncio.ensure_future(self._pump(process.stdout, step, context, STDOUT_LEVEL)),
            asyncio.ensure_future(self._pump(process.stderr, step, context, STDERR_LEVEL)),
        ]
        ticker = asyncio.ensure_future(self._tick_command(step, context))
        settle = asyncio.ensure_future(self._settle(process, readers))
        try:
            await asyncio.wait({settle, ticker}, return_when=asyncio.FIRST_COMPLETED)
            # The ticker only finishes early when a subscriber raised.
            if ticker.done():
                ticker.result()
            returncode = settle.result()
        finally:
            ticker.cancel()
            if process.returncode is None:
                logger.info("command_killed", command=command, pid=process.pid)
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()
            for task in (settle, *readers):
                task.cancel()
            await asyncio.gather(ticker, settle, *readers, return_exceptions=True)

        logger.debug("command_exited", command=command, returncode=returncode)
        if returncode == 0:
            self._progress(step, context, 100)
            return
        if returncode < 0:
            raise CommandFailedError(command, signal_name=_signal_name(returncode))
        raise CommandFailedError(command, exit_code=returncode)

    async def _settle(self, process: asyncio.subprocess.Process, readers: list[asyncio.Future]) -> int:
        await asyncio.gather(*readers)
        return await process.wait()

    async def _pump(
        self,
        stream: Optional[asyncio.StreamReader],
        step: StepConfig,
        context: StepContext,
        level: LogLevel,
    ) -> None:
        async for line in iter_lines(stream):
            self._log(step, context, level, line)

    async def _tick_command(self, step: StepConfig, context: StepContext) -> None:
        percent = 0
        while True:
            await self._clock.sleep(COMMAND_TICK_SECONDS)
            percent = min(COMMAND_PROGRESS_CEILING, percent + COMMAND_PROGRESS_INCREMENT)
            self._progress(step, context, percent)

    def _progress(self, step: StepConfig, context: StepContext, percent: int) -> None:
        self._channel.publish(
            StepProgress(
                step=step,
                index=context.index,
                percent=percent,
                completed_weight=context.completed_weight,
                total_weight=context.total_weight,
            )
        )

    def _log(self, step: StepConfig, context: StepContext, level: LogLevel, message: str) -> None:
        self._channel.publish(StepLogged(step=step, index=context.index, level=level, message=message))
