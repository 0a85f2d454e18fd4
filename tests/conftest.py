# tests/conftest.py
"""
Shared pytest fixtures for checkgate tests.
"""

import sys

import pytest

from checkgate.steps.base import StepSpec


def py_cmd(code: str) -> tuple[str, ...]:
    """Command that runs a snippet with the current interpreter."""
    return (sys.executable, "-c", code)


@pytest.fixture
def make_step(tmp_path):
    """Build a StepSpec that runs a Python snippet in tmp_path."""

    def _make(name, code="pass", **kwargs):
        kwargs.setdefault("working_dir", tmp_path)
        return StepSpec(name, py_cmd(code), **kwargs)

    return _make


@pytest.fixture
def exit_step(make_step):
    """Build a StepSpec that exits with the given code."""

    def _make(name, code=0, **kwargs):
        return make_step(name, f"import sys; sys.exit({code})", **kwargs)

    return _make
