"""Run and step lifecycle events plus the channel that broadcasts them."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Callable, ClassVar, Union

from .models import LogLevel, StepConfig


class EventKind(str, Enum):
    RUN_START = "run:start"
    RUN_COMPLETE = "run:complete"
    RUN_ERROR = "run:error"
    STEP_START = "step:start"
    STEP_PROGRESS = "step:progress"
    STEP_LOG = "step:log"
    STEP_RESULT = "step:result"
    STEP_SUCCESS = "step:success"
    STEP_ERROR = "step:error"


@dataclass(frozen=True)
class RunStart:
    kind: ClassVar[EventKind] = EventKind.RUN_START
    total: int


@dataclass(frozen=True)
class RunComplete:
    kind: ClassVar[EventKind] = EventKind.RUN_COMPLETE
    total: int


@dataclass(frozen=True)
class RunError:
    kind: ClassVar[EventKind] = EventKind.RUN_ERROR
    error: BaseException


@dataclass(frozen=True)
class StepStart:
    kind: ClassVar[EventKind] = EventKind.STEP_START
    step: StepConfig
    index: int
    completed_weight: float
    total_weight: float


@dataclass(frozen=True)
class StepProgress:
    kind: ClassVar[EventKind] = EventKind.STEP_PROGRESS
    step: StepConfig
    index: int
    percent: int
    completed_weight: float
    total_weight: float


@dataclass(frozen=True)
class StepLogged:
    kind: ClassVar[EventKind] = EventKind.STEP_LOG
    step: StepConfig
    index: int
    level: LogLevel
    message: str


@dataclass(frozen=True)
class StepResult:
    kind: ClassVar[EventKind] = EventKind.STEP_RESULT
    step: StepConfig
    index: int
    result: str


@dataclass(frozen=True)
class StepSuccess:
    kind: ClassVar[EventKind] = EventKind.STEP_SUCCESS
    step: StepConfig
    index: int
    completed_weight: float
    total_weight: float


@dataclass(frozen=True)
class StepError:
    kind: ClassVar[EventKind] = EventKind.STEP_ERROR
    step: StepConfig
    index: int
    error: BaseException
    completed_weight: float
    total_weight: float


Event = Union[
    RunStart,
    RunComplete,
    RunError,
    StepStart,
    StepProgress,
    StepLogged,
    StepResult,
    StepSuccess,
    StepError,
]
Handler = Callable[[Any], None]


@dataclass(frozen=True)
class Subscription:
    """Token returned by :meth:`EventChannel.subscribe`; pass it back to unsubscribe."""

    kind: EventKind
    token: int


class EventChannel:
    """Synchronous publish/subscribe bus.

    Handlers for a kind are called in subscription order at publish time.
    Nothing is buffered, so a handler subscribed after an event was published
    never sees it. Handler exceptions propagate to the publisher.
    """

    def __init__(self) -> None:
        self._handlers: dict[EventKind, dict[int, Handler]] = {kind: {} for kind in EventKind}
        self._tokens = itertools.count(1)

    def subscribe(self, kind: EventKind | str, handler: Handler) -> Subscription:
        event_kind = EventKind(kind)
        token = next(self._tokens)
        self._handlers[event_kind][token] = handler
        return Subscription(kind=event_kind, token=token)

    def subscribe_all(self, handler: Handler) -> list[Subscription]:
        return [self.subscribe(kind, handler) for kind in EventKind]

    def unsubscribe(self, subscription: Subscription) -> None:
        self._handlers[subscription.kind].pop(subscription.token, None)

    def publish(self, event: Event) -> None:
        for handler in list(self._handlers[event.kind].values()):
            handler(event)


def serialize_event(event: Event) -> dict[str, Any]:
    """Flatten an event into a JSON friendly mapping."""

    payload: dict[str, Any] = {"event": event.kind.value}
    for item in fields(event):
        value = getattr(event, item.name)
        if isinstance(value, StepConfig):
            payload["step_id"] = value.id
            payload["step_title"] = value.title
        elif isinstance(value, BaseException):
            payload[item.name] = str(value) or type(value).__name__
        else:
            payload[item.name] = value
    return payload
