from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .steps.base import StepOutcome


class CheckgateError(Exception):
    """Base class for checkgate errors."""


class ConfigError(CheckgateError):
    """The pipeline could not be built from the given configuration."""


class UnknownStepError(ConfigError):
    def __init__(self, names: list[str], known: list[str]) -> None:
        self.names = names
        self.known = known
        super().__init__(
            f"unknown step(s): {', '.join(names)} "
            f"(known: {', '.join(known) or '<none>'})"
        )


class StepCancelled(CheckgateError):
    """Raised by the runner when an operator abort interrupted a step."""

    def __init__(self, outcome: "StepOutcome") -> None:
        self.outcome = outcome
        super().__init__(f"step cancelled: {outcome.name}")
