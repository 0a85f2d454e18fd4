from __future__ import annotations

import dataclasses
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Mapping, Sequence

from .errors import ConfigError, StepCancelled, UnknownStepError
from .steps.base import ERROR, FAIL, PASS, Runner, Status, StepOutcome, StepSpec


class FailurePolicy(str, Enum):
    FAIL_FAST = "fail-fast"
    RUN_ALL = "run-all"

    def __str__(self) -> str:
        return self.value


@dataclass
class PipelineResult:
    """Outcomes of one run, in declaration order.

    The outcome list only grows while the run is in progress; ``seal()``
    freezes it into a tuple.
    """

    pipeline: str
    policy: FailurePolicy
    outcomes: Sequence[StepOutcome] = field(default_factory=list)
    cancelled: bool = False
    stopped: bool = False
    seconds: float = 0.0
    sealed: bool = False

    def add(self, outcome: StepOutcome) -> None:
        if self.sealed:
            raise RuntimeError("cannot add outcomes to a sealed result")
        self.outcomes.append(outcome)

    def seal(self) -> "PipelineResult":
        self.outcomes = tuple(self.outcomes)
        self.sealed = True
        return self

    @property
    def any_blocking(self) -> bool:
        return any(o.blocking for o in self.outcomes)

    @property
    def overall_status(self) -> Status:
        # an abort between steps leaves only skips, which must still fail the gate
        return FAIL if self.any_blocking or self.cancelled else PASS

    def count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)


@dataclass(frozen=True)
class Pipeline:
    name: str
    steps: tuple[StepSpec, ...] = ()

    def __post_init__(self) -> None:
        steps = tuple(self.steps)
        seen: set[str] = set()
        for s in steps:
            if s.name in seen:
                raise ValueError(f"{self.name}: duplicate step name {s.name!r}")
            seen.add(s.name)
        object.__setattr__(self, "steps", steps)

    @property
    def step_names(self) -> list[str]:
        return [s.name for s in self.steps]

    def select(self, names: Iterable[str]) -> "Pipeline":
        wanted = list(dict.fromkeys(names))
        unknown = [n for n in wanted if n not in self.step_names]
        if unknown:
            raise UnknownStepError(unknown, self.step_names)
        return Pipeline(self.name, tuple(s for s in self.steps if s.name in wanted))

    def up_to(self, last: str | int) -> "Pipeline":
        """Steps up to and including ``last`` (a name, or a 1-based count)."""
        if isinstance(last, int):
            if not 1 <= last <= len(self.steps):
                raise ConfigError(
                    f"{self.name}: step count must be between 1 and {len(self.steps)}, got {last}"
                )
            n = last
        else:
            if last not in self.step_names:
                raise UnknownStepError([last], self.step_names)
            n = self.step_names.index(last) + 1
        return Pipeline(self.name, self.steps[:n])

    def with_timeout(self, seconds: float) -> "Pipeline":
        return Pipeline(
            self.name,
            tuple(dataclasses.replace(s, timeout=seconds) for s in self.steps),
        )

    def with_env(self, overrides: Mapping[str, str]) -> "Pipeline":
        """Overlay run-time variables on every step's environment."""
        return Pipeline(
            self.name,
            tuple(
                dataclasses.replace(s, required_env={**s.required_env, **overrides})
                for s in self.steps
            ),
        )

    def run(
        self,
        policy: FailurePolicy = FailurePolicy.FAIL_FAST,
        runner: Runner | None = None,
        on_outcome: Callable[[StepOutcome], None] | None = None,
        pre_step: Callable[[StepSpec], bool] | None = None,
        post_step: Callable[[StepOutcome], bool] | None = None,
    ) -> PipelineResult:
        """Run every step in order.

        ``pre_step`` and ``post_step`` return True to stop the run; steps not
        yet run are then recorded as skipped. An operator abort (Ctrl-C or
        the runner's ``StepCancelled``) keeps what already finished.
        """
        if runner is None:
            from .steps.shell import StepRunner

            runner = StepRunner()

        policy = FailurePolicy(policy)
        result = PipelineResult(self.name, policy)
        start = time.monotonic()

        def record(outcome: StepOutcome) -> None:
            result.add(outcome)
            if on_outcome is not None:
                on_outcome(outcome)

        def skip_rest(note: str) -> None:
            for rest in self.steps[len(result.outcomes) :]:
                record(StepOutcome.skipped(rest.name, note))

        in_flight: str | None = None
        try:
            for spec in self.steps:
                if policy == FailurePolicy.FAIL_FAST and result.any_blocking:
                    skip_rest("not run (fail-fast)")
                    break
                if pre_step is not None and pre_step(spec):
                    result.stopped = True
                    skip_rest("stopped")
                    break
                in_flight = spec.name
                try:
                    outcome = runner.execute(spec)
                except StepCancelled as e:
                    outcome = e.outcome
                    result.cancelled = True
                in_flight = None
                record(outcome)
                if result.cancelled:
                    skip_rest("cancelled")
                    break
                if post_step is not None and post_step(outcome):
                    result.stopped = True
                    skip_rest("stopped")
                    break
        except KeyboardInterrupt:
            result.cancelled = True
            if in_flight is not None:
                record(StepOutcome(in_flight, ERROR, note="cancelled"))
            skip_rest("cancelled")

        result.seconds = round(time.monotonic() - start, 3)
        return result.seal()
