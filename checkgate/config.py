"""Pipeline files.

A pipeline file is TOML with an optional ``[pipeline]`` table and an
ordered ``[[steps]]`` array::

    [pipeline]
    name = "check"
    policy = "fail-fast"
    timeout = 600
    env = { CARGO_TERM_COLOR = "always" }

    [[steps]]
    name = "Rustfmt"
    run = "bin/check/rustfmt.sh"

Each step needs ``name`` and exactly one of ``run`` (a string, split with
shlex, never passed to a shell) or ``command`` (an argv list). ``cwd`` is
relative to the project root. Step ``env`` overrides pipeline ``env``.
"""

from __future__ import annotations

import shlex
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import ConfigError
from .pipeline import FailurePolicy, Pipeline
from .steps.base import StepSpec

DEFAULT_FILENAME = "checkgate.toml"

_PIPELINE_KEYS = {"name", "policy", "timeout", "env"}
_STEP_KEYS = {"name", "run", "command", "cwd", "env", "timeout"}


@dataclass(frozen=True)
class PipelineFile:
    path: Path
    pipeline: Pipeline
    policy: FailurePolicy | None = None


def _env(value: Any, where: str) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{where}: env must be a table of strings")
    out: dict[str, str] = {}
    for k, v in value.items():
        if not isinstance(v, (str, int, float, bool)):
            raise ConfigError(f"{where}: env value for {k!r} must be a scalar")
        out[str(k)] = str(v).lower() if isinstance(v, bool) else str(v)
    return out


def _timeout(value: Any, where: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"{where}: timeout must be a positive number of seconds")
    return float(value)


def _command(raw: dict[str, Any], where: str) -> tuple[str, ...]:
    run, command = raw.get("run"), raw.get("command")
    if (run is None) == (command is None):
        raise ConfigError(f"{where}: give exactly one of 'run' or 'command'")
    if run is not None:
        if not isinstance(run, str):
            raise ConfigError(f"{where}: 'run' must be a string")
        try:
            argv = shlex.split(run)
        except ValueError as e:
            raise ConfigError(f"{where}: cannot parse 'run': {e}") from e
    else:
        if not isinstance(command, list) or not all(
            isinstance(c, str) for c in command
        ):
            raise ConfigError(f"{where}: 'command' must be a list of strings")
        argv = list(command)
    if not argv:
        raise ConfigError(f"{where}: command is empty")
    return tuple(argv)


def parse_pipeline(data: dict[str, Any], *, root: Path, source: str) -> PipelineFile:
    head = data.get("pipeline", {})
    if not isinstance(head, dict):
        raise ConfigError(f"{source}: [pipeline] must be a table")
    extra = set(head) - _PIPELINE_KEYS
    if extra:
        raise ConfigError(f"{source}: unknown [pipeline] keys: {', '.join(sorted(extra))}")

    name = head.get("name") or Path(source).stem
    policy = None
    if "policy" in head:
        try:
            policy = FailurePolicy(head["policy"])
        except ValueError:
            choices = ", ".join(p.value for p in FailurePolicy)
            raise ConfigError(
                f"{source}: policy must be one of {choices}, got {head['policy']!r}"
            ) from None
    default_timeout = _timeout(head.get("timeout"), f"{source} [pipeline]")
    base_env = _env(head.get("env"), f"{source} [pipeline]")

    raw_steps = data.get("steps", [])
    if not isinstance(raw_steps, list):
        raise ConfigError(f"{source}: steps must be an array of tables ([[steps]])")

    steps: list[StepSpec] = []
    for i, raw in enumerate(raw_steps):
        where = f"{source} steps[{i}]"
        if not isinstance(raw, dict):
            raise ConfigError(f"{where}: must be a table")
        extra = set(raw) - _STEP_KEYS
        if extra:
            raise ConfigError(f"{where}: unknown keys: {', '.join(sorted(extra))}")
        step_name = raw.get("name")
        if not isinstance(step_name, str) or not step_name.strip():
            raise ConfigError(f"{where}: 'name' is required")

        cwd = raw.get("cwd", ".")
        if not isinstance(cwd, str):
            raise ConfigError(f"{where}: 'cwd' must be a string")
        timeout = _timeout(raw.get("timeout"), where)

        steps.append(
            StepSpec(
                step_name.strip(),
                _command(raw, where),
                working_dir=root / cwd,
                required_env={**base_env, **_env(raw.get("env"), where)},
                timeout=timeout if timeout is not None else default_timeout,
            )
        )

    try:
        pipeline = Pipeline(name=str(name), steps=tuple(steps))
    except ValueError as e:
        raise ConfigError(f"{source}: {e}") from e
    return PipelineFile(path=Path(source), pipeline=pipeline, policy=policy)


def load_pipeline_file(path: Path, *, root: Path) -> PipelineFile:
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"cannot read pipeline file {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"invalid TOML in {path}: {e}") from e
    return parse_pipeline(data, root=root, source=str(path))


def find_pipeline_file(root: Path) -> Path | None:
    p = root / DEFAULT_FILENAME
    return p if p.is_file() else None
