from __future__ import annotations

from dataclasses import dataclass

from .context import GateContext
from .pipeline import FailurePolicy, Pipeline
from .report import summarize, to_summary
from .steps.base import SKIP, Runner, StepOutcome, StepSpec
from .steps.shell import StepRunner


@dataclass
class LoggingRunner:
    """Announces each step before delegating to the real runner."""

    ctx: GateContext
    inner: Runner
    total: int
    started: int = 0

    def execute(self, spec: StepSpec) -> StepOutcome:
        self.started += 1
        self.ctx.progress(f"-- [{self.started}/{self.total}] {spec.name}: {spec.display_cmd}")
        self.ctx.write_runlog(f"-- START: {spec.name}")
        self.ctx.write_runlog(f"   CMD:   {spec.display_cmd} (cwd={spec.working_dir})")
        return self.inner.execute(spec)


def run_pipeline(ctx: GateContext, pipeline: Pipeline, policy: FailurePolicy) -> int:
    ctx.write_runlog(f"=== checkgate run {pipeline.name} ({ctx.ts}) ===")
    ctx.write_runlog(f"ROOT:   {ctx.root}")
    ctx.write_runlog(f"POLICY: {policy}")
    ctx.write_runlog(f"STEPS:  {', '.join(pipeline.step_names) or '<none>'}")

    runner = LoggingRunner(
        ctx, StepRunner(timeout=ctx.options.timeout), total=len(pipeline.steps)
    )

    def on_outcome(o: StepOutcome) -> None:
        ctx.write_runlog(f"-- DONE:  {o.name} [{o.status}] ({o.seconds}s) {o.note}".rstrip())
        if o.status != SKIP:
            ctx.progress(f"   {o.status} ({o.seconds:.2f}s) {o.note}".rstrip())

    result = pipeline.run(policy, runner=runner, on_outcome=on_outcome)

    summary = to_summary(
        result, tail_lines=ctx.options.tail_lines, redact=ctx.options.redact
    )
    ctx.write_summary_json(summary)

    text, rc = summarize(
        result, tail_lines=ctx.options.tail_lines, redact=ctx.options.redact
    )
    ctx.write_runlog(f"RESULT: {result.overall_status} (exit={rc}) in {result.seconds}s")

    if ctx.json_mode:
        ctx.emit_json(summary)
    else:
        print(text, end="", file=ctx.out)
    return rc
