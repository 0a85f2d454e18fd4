from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Literal, Mapping, Protocol

Status = Literal["PASS", "FAIL", "SKIP", "ERROR"]

PASS: Status = "PASS"
FAIL: Status = "FAIL"
SKIP: Status = "SKIP"
ERROR: Status = "ERROR"

# Statuses that make the gate fail
BLOCKING: frozenset[str] = frozenset({FAIL, ERROR})


@dataclass(frozen=True)
class StepSpec:
    """One check: a command run in a directory with extra environment."""

    name: str
    command: tuple[str, ...]
    working_dir: Path = Path(".")
    required_env: Mapping[str, str] = field(default_factory=dict)
    timeout: float | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("step name must not be empty")
        if isinstance(self.command, str):
            raise TypeError(f"{self.name}: command must be an argv sequence")
        if not self.command:
            raise ValueError(f"{self.name}: command must not be empty")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"{self.name}: timeout must be positive")
        # copy into immutable containers; callers keep their own lists and dicts
        object.__setattr__(self, "command", tuple(str(c) for c in self.command))
        object.__setattr__(self, "working_dir", Path(self.working_dir))
        object.__setattr__(
            self,
            "required_env",
            MappingProxyType({str(k): str(v) for k, v in self.required_env.items()}),
        )

    @property
    def display_cmd(self) -> str:
        return " ".join(self.command)


@dataclass(frozen=True)
class StepOutcome:
    name: str
    status: Status
    exit_code: int | None = None
    stdout: bytes = b""
    stderr: bytes = b""
    seconds: float = 0.0
    note: str = ""

    @property
    def blocking(self) -> bool:
        return self.status in BLOCKING

    @classmethod
    def skipped(cls, name: str, note: str = "") -> "StepOutcome":
        return cls(name, SKIP, note=note)


class Runner(Protocol):
    def execute(self, spec: StepSpec) -> StepOutcome: ...
