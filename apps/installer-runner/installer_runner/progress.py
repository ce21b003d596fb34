"""Pure progress arithmetic shared by the executor and the console reporter."""

from __future__ import annotations

import math
from typing import Optional, Sequence

from .models import StepConfig

DEFAULT_SIMULATED_DURATION_MS = 800
MIN_SIMULATED_DURATION_MS = 200
MIN_SPEED = 0.1


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def compute_overall_percent(
    total_weight: float,
    completed_weight: float,
    current_weight: float,
    step_percent: float,
) -> int:
    """Weighted overall completion of a run as an integer in [0, 100].

    ``completed_weight`` is the weight of every step before the current one and
    ``step_percent`` the current step's own completion. A non-positive total
    means there is nothing to measure and yields 0.
    """
    if total_weight <= 0:
        return 0

    clamped = min(100.0, max(0.0, step_percent))
    progress_weight = current_weight * clamped / 100
    overall = (completed_weight + progress_weight) / total_weight * 100
    return min(100, max(0, round_half_up(overall)))


def total_weight(steps: Sequence[StepConfig]) -> float:
    return sum(step.weight for step in steps)


def completed_weight(steps: Sequence[StepConfig], index: int) -> float:
    """Sum of the weights of every step before ``index``."""
    return sum(step.weight for step in steps[:index])


def simulated_duration_ms(duration_ms: Optional[int], speed: float) -> float:
    base = DEFAULT_SIMULATED_DURATION_MS if duration_ms is None else duration_ms
    return max(MIN_SIMULATED_DURATION_MS, base / max(MIN_SPEED, speed))


def simulated_percent(elapsed_ms: float, duration_ms: float) -> int:
    if duration_ms <= 0:
        return 100
    return min(100, round_half_up(elapsed_ms / duration_ms * 100))


def log_offsets_ms(duration_ms: float, count: int) -> list[float]:
    """Evenly spaced emission times strictly between 0 and ``duration_ms``."""
    spacing = duration_ms / (count + 1)
    return [spacing * (idx + 1) for idx in range(count)]


def format_duration(ms: float) -> str:
    total_seconds = max(0, round_half_up(ms / 1000))
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes:02d}:{seconds:02d}"
