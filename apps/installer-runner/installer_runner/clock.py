"""Time source used to pace progress ticks."""

from __future__ import annotations

import asyncio
import time
from typing import Protocol


class Clock(Protocol):
    def monotonic(self) -> float:
        """Seconds from an arbitrary, never decreasing origin."""

    async def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """Wall clock backed by the running event loop."""

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
