from __future__ import annotations

import re
from typing import Any, Iterable

from .pipeline import PipelineResult
from .steps.base import ERROR, FAIL, PASS, SKIP, StepOutcome

DEFAULT_TAIL_LINES = 20

# Minimal default redaction rules
_REDACT_RULES: Iterable[tuple[str, str]] = [
    (
        r"(?i)(api[_-]?key)\s*[:=]\s*['\"]?([A-Za-z0-9_\-]{10,})",
        r"\1=<REDACTED>",
    ),
    (r"(?i)(token)\s*[:=]\s*['\"]?([A-Za-z0-9_\-\.]{10,})", r"\1=<REDACTED>"),
    (r"(?i)(password|passwd|pwd)\s*[:=]\s*['\"]?([^'\"\s]+)", r"\1=<REDACTED>"),
    (r"(?i)(dsn)\s*[:=]\s*['\"]?([^'\"\s]+)", r"\1=<REDACTED>"),
]

_ICON = {PASS: "✅", FAIL: "❌", ERROR: "💥", SKIP: "⏭️"}


def redact_text(text: str) -> str:
    out = text
    for pat, repl in _REDACT_RULES:
        out = re.sub(pat, repl, out)
    return out


def tail(outcome: StepOutcome, lines: int, redact: bool = True) -> list[str]:
    """Last ``lines`` lines of the step's diagnostics.

    Linters often report on stdout, so stdout is used when stderr is empty.
    """
    raw = outcome.stderr if outcome.stderr.strip() else outcome.stdout
    text = raw.decode("utf-8", errors="replace")
    if redact:
        text = redact_text(text)
    out = [ln.rstrip() for ln in text.rstrip().splitlines()]
    if lines <= 0:
        return []
    return out[-lines:]


def exit_code_for(result: PipelineResult) -> int:
    return 0 if result.overall_status == PASS else 1


def _verdict(result: PipelineResult) -> str:
    failed = result.count(FAIL)
    errored = result.count(ERROR)
    skipped = result.count(SKIP)

    parts: list[str] = []
    if result.cancelled:
        parts.append("run cancelled by operator")
    if result.stopped:
        parts.append("run stopped early")
    if failed:
        parts.append(f"{failed} step(s) failed: fix your change")
    if errored:
        parts.append(f"{errored} step(s) errored: the check infrastructure is broken")
    if skipped:
        parts.append(f"{skipped} skipped")

    if result.overall_status == PASS:
        n = result.count(PASS)
        head = f"✅ {result.pipeline}: all {n} step(s) passed"
        return head if not parts else f"{head} ({', '.join(parts)})"
    return f"❌ {result.pipeline}: " + "; ".join(parts)


def summarize(
    result: PipelineResult,
    *,
    tail_lines: int = DEFAULT_TAIL_LINES,
    redact: bool = True,
) -> tuple[str, int]:
    lines: list[str] = [f"== {result.pipeline} ({result.policy}) =="]
    width = max((len(o.name) for o in result.outcomes), default=0)

    for o in result.outcomes:
        note = f"  {o.note}" if o.note else ""
        lines.append(
            f"{_ICON[o.status]} {o.status:<5} {o.name:<{width}}  {o.seconds:7.2f}s{note}"
        )
        if o.blocking:
            excerpt = tail(o, tail_lines, redact=redact)
            if excerpt:
                lines += [f"      | {ln}" for ln in excerpt]

    lines.append("")
    lines.append(f"{_verdict(result)} [{result.seconds:.2f}s total]")
    return "\n".join(lines) + "\n", exit_code_for(result)


def to_summary(
    result: PipelineResult,
    *,
    tail_lines: int = DEFAULT_TAIL_LINES,
    redact: bool = True,
) -> dict[str, Any]:
    return {
        "pipeline": result.pipeline,
        "policy": str(result.policy),
        "status": result.overall_status,
        "cancelled": result.cancelled,
        "stopped": result.stopped,
        "seconds": result.seconds,
        "exit_code": exit_code_for(result),
        "results": [
            {
                "name": o.name,
                "status": o.status,
                "exit_code": o.exit_code,
                "seconds": o.seconds,
                "note": o.note,
                "output_tail": tail(o, tail_lines, redact=redact) if o.blocking else [],
            }
            for o in result.outcomes
        ],
    }
