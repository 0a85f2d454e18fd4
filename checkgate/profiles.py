from __future__ import annotations

from pathlib import Path

from .pipeline import Pipeline
from .steps.base import StepSpec

PROFILES: dict[str, str] = {
    "check": "repository checks from bin/check (rust, shell, python, xml)",
    "python": "ruff lint + format check, mypy, pytest",
}


def _check_steps(root: Path) -> list[StepSpec]:
    env = {"CARGO_TERM_COLOR": "always"}

    def script(name: str, script_name: str) -> StepSpec:
        return StepSpec(
            name,
            (f"bin/check/{script_name}.sh",),
            working_dir=root,
            required_env=env,
        )

    # install must stay first: every other script relies on its tools
    return [
        script("install prerequisites", "install_prerequisites"),
        script("rustfmt", "rustfmt"),
        script("clippy", "clippy"),
        script("shellcheck", "shellcheck"),
        script("black", "black"),
        script("xmllint", "xmllint"),
        script("crates", "crates"),
    ]


def _python_steps(root: Path) -> list[StepSpec]:
    return [
        StepSpec("ruff check", ("ruff", "check", "."), working_dir=root),
        StepSpec(
            "ruff format --check", ("ruff", "format", "--check", "."), working_dir=root
        ),
        StepSpec("mypy", ("mypy", "."), working_dir=root),
        StepSpec("pytest", ("pytest", "-q"), working_dir=root),
    ]


def get_profile(name: str, root: Path) -> Pipeline:
    if name == "check":
        return Pipeline(name="check", steps=tuple(_check_steps(root)))

    if name == "python":
        return Pipeline(name="python", steps=tuple(_python_steps(root)))

    raise ValueError(f"unknown profile: {name}")
