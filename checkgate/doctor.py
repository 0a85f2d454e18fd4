from __future__ import annotations

from dataclasses import dataclass

from .pipeline import Pipeline
from .steps.base import StepSpec
from .tools import which


@dataclass(frozen=True)
class PlanItem:
    name: str
    status: str  # "RUN" | "MISSING"
    cmd: str
    reason: str


def eval_step(step: StepSpec) -> PlanItem:
    if not step.working_dir.is_dir():
        return PlanItem(
            step.name, "MISSING", step.display_cmd, f"no such directory: {step.working_dir}"
        )
    exe = step.command[0]
    if which(exe, cwd=step.working_dir) is None:
        return PlanItem(step.name, "MISSING", step.display_cmd, f"missing tool: {exe}")
    return PlanItem(step.name, "RUN", step.display_cmd, "")


def plan_for_pipeline(pipeline: Pipeline) -> list[PlanItem]:
    return [eval_step(step) for step in pipeline.steps]


def print_doctor(pipeline: Pipeline, plan: list[PlanItem], root, file=None) -> None:
    print(f"Root:     {root}", file=file)
    print(f"Pipeline: {pipeline.name}\n", file=file)

    print(f"Plan ({len(plan)} step(s)):", file=file)
    for item in plan:
        if item.status == "RUN":
            print(f"  RUN     {item.name:<28} {item.cmd}", file=file)
        else:
            print(f"  MISSING {item.name:<28} ({item.reason})", file=file)
