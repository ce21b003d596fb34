"""Between-step choice prompts."""

from __future__ import annotations

import sys
from typing import Literal, Optional, get_args

from rich.console import Console
from rich.prompt import Prompt

Choice = Literal["next", "auto", "back"]
CHOICES: tuple[str, ...] = get_args(Choice)
ENV_VAR_NAME = "CLI_PROMPT_CHOICE"


class PromptCancelledError(RuntimeError):
    """The operator aborted the prompt instead of choosing."""


class StaticPrompt:
    """Always answers with the same choice; used for scripting and tests."""

    def __init__(self, choice: Choice) -> None:
        self.choice = choice

    async def open(self) -> Choice:
        return self.choice


class ChoicePrompt:
    """Asks the operator whether to go to the next step, run the rest automatically, or go back.

    Without an interactive stdin there is nobody to ask, so the prompt answers
    ``auto``. The question blocks the event loop, which is idle between steps.
    """

    def __init__(self, title: str = "Step complete", console: Optional[Console] = None) -> None:
        self.title = title
        self.console = console or Console()

    async def open(self) -> Choice:
        if not sys.stdin.isatty():
            return "auto"
        try:
            answer = Prompt.ask(
                f"[cyan]{self.title}[/] continue",
                choices=list(CHOICES),
                default="next",
                console=self.console,
            )
        except (KeyboardInterrupt, EOFError) as exc:
            raise PromptCancelledError("choice prompt cancelled") from exc
        return answer  # type: ignore[return-value]


def parse_choice(value: str) -> Choice:
    normalized = value.strip().lower()
    if normalized not in CHOICES:
        raise ValueError(f"Invalid prompt choice '{value}': expected one of {', '.join(CHOICES)}")
    return normalized  # type: ignore[return-value]


def create_prompt(env_choice: Optional[str] = None, title: str = "Step complete") -> StaticPrompt | ChoicePrompt:
    """Static prompt when a choice is forced from the environment, interactive otherwise."""

    if env_choice:
        return StaticPrompt(parse_choice(env_choice))
    return ChoicePrompt(title=title)
