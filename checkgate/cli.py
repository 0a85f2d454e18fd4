from __future__ import annotations

import argparse
import signal
import sys
from importlib.metadata import PackageNotFoundError, version as pkg_version
from pathlib import Path

from .config import find_pipeline_file, load_pipeline_file
from .context import GateContext, RunOptions
from .doctor import plan_for_pipeline, print_doctor
from .errors import ConfigError
from .pipeline import FailurePolicy, Pipeline
from .profiles import PROFILES, get_profile
from .report import DEFAULT_TAIL_LINES
from .root_detect import detect_project_root
from .runner import run_pipeline

EXIT_CONFIG = 2


def get_version() -> str:
    # 1) Canonical for installed distributions (including editable)
    try:
        return pkg_version("checkgate")
    except PackageNotFoundError:
        pass

    # 2) Dev fallback: locate pyproject.toml by walking up from this file
    import tomllib

    here = Path(__file__).resolve()
    for parent in [here.parent] + list(here.parents):
        pp = parent / "pyproject.toml"
        if pp.is_file():
            try:
                data = tomllib.loads(pp.read_text(encoding="utf-8"))
            except (OSError, tomllib.TOMLDecodeError):
                return "unknown"
            return data.get("project", {}).get("version", "unknown")

    return "unknown"


def _positive_float(value: str) -> float:
    try:
        f = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from None
    if f <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value!r}")
    return f


def _non_negative_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}") from None
    if n < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {value!r}")
    return n


def _env_pair(value: str) -> tuple[str, str]:
    key, sep, val = value.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {value!r}")
    return key, val


def _step_ref(value: str) -> str | int:
    """A step name, or a 1-based count when the value is all digits."""
    return int(value) if value.isdigit() else value


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="checkgate",
        description="Run an ordered list of check commands and gate on the result.",
    )
    p.add_argument(
        "--policy",
        choices=[fp.value for fp in FailurePolicy],
        default=None,
        help="fail-fast stops at the first failure (default); run-all runs every step",
    )
    p.add_argument(
        "--step",
        dest="steps",
        action="append",
        default=[],
        metavar="NAME",
        help="Only run this step (repeatable); declaration order is kept",
    )
    p.add_argument(
        "--to-step",
        type=_step_ref,
        default=None,
        metavar="NAME|N",
        help="Stop after this step (a name, or the first N steps)",
    )
    p.add_argument(
        "--env",
        dest="env",
        action="append",
        type=_env_pair,
        default=[],
        metavar="KEY=VALUE",
        help="Set a variable for every step (repeatable); wins over the pipeline file",
    )
    p.add_argument(
        "--timeout",
        type=_positive_float,
        default=None,
        metavar="SECONDS",
        help="Per-step timeout; overrides timeouts from the pipeline file",
    )
    p.add_argument(
        "--profile",
        choices=sorted(PROFILES),
        default="check",
        help="Built-in pipeline used when no pipeline file is found",
    )
    p.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Pipeline file (default: <root>/checkgate.toml if present)",
    )
    p.add_argument(
        "--project-root",
        type=Path,
        default=None,
        help="Explicit project root (skip auto-detect)",
    )
    p.add_argument(
        "--json",
        action="store_true",
        help="Emit machine-readable JSON to stdout.",
    )
    p.add_argument(
        "--summary-json", type=Path, default=None, help="Also write the JSON summary here"
    )
    p.add_argument(
        "--log-file", type=Path, default=None, help="Append a run log to this file"
    )
    p.add_argument(
        "--tail-lines",
        type=_non_negative_int,
        default=DEFAULT_TAIL_LINES,
        help="Output lines shown for each failed step",
    )
    p.add_argument(
        "--redact",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Redact secrets in reported output",
    )
    p.add_argument(
        "--quiet", action="store_true", help="No progress lines on stderr (CI-friendly)"
    )
    p.add_argument("--list-steps", action="store_true", help="List steps and exit")
    p.add_argument(
        "--doctor",
        action="store_true",
        help="Show what would run and which tools are missing, without running",
    )
    p.add_argument("--version", action="store_true", help="Show version")
    return p


def load_pipeline(args, root: Path) -> tuple[Pipeline, FailurePolicy]:
    policy = FailurePolicy.FAIL_FAST
    path = args.config or find_pipeline_file(root)
    if path is not None:
        pf = load_pipeline_file(path, root=root)
        pipeline = pf.pipeline
        if pf.policy is not None:
            policy = pf.policy
    else:
        pipeline = get_profile(args.profile, root)

    if args.policy:
        policy = FailurePolicy(args.policy)
    if args.to_step is not None:
        pipeline = pipeline.up_to(args.to_step)
    if args.steps:
        pipeline = pipeline.select(args.steps)
    if args.env:
        pipeline = pipeline.with_env(dict(args.env))
    if args.timeout is not None:
        pipeline = pipeline.with_timeout(args.timeout)
    return pipeline, policy


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.version:
        print(f"checkgate {get_version()}")
        return 0

    root = args.project_root or detect_project_root(Path.cwd())
    if root is None:
        print("❌ Could not detect project root. Use --project-root PATH.", file=sys.stderr)
        return EXIT_CONFIG
    if not root.is_dir():
        print(f"❌ Project root is not a directory: {root}", file=sys.stderr)
        return EXIT_CONFIG
    root = root.resolve()

    try:
        pipeline, policy = load_pipeline(args, root)
    except ConfigError as e:
        print(f"❌ {e}", file=sys.stderr)
        return EXIT_CONFIG

    if args.list_steps:
        for spec in pipeline.steps:
            print(f"{spec.name:<28} {spec.display_cmd}")
        return 0

    if args.doctor:
        print_doctor(pipeline, plan_for_pipeline(pipeline), root)
        return 0

    ctx = GateContext.create(
        root=root,
        options=RunOptions(
            timeout=args.timeout, tail_lines=args.tail_lines, redact=args.redact
        ),
        runlog=args.log_file,
        summary_json=args.summary_json,
        json_mode=args.json,
        quiet=args.quiet,
    )

    # CI runners abort with SIGTERM; treat it like Ctrl-C so the child is killed
    previous = signal.signal(signal.SIGTERM, signal.default_int_handler)
    try:
        return run_pipeline(ctx, pipeline, policy)
    except KeyboardInterrupt:
        # aborted while writing the report; the run itself already ended
        print("❌ cancelled", file=sys.stderr)
        return 1
    finally:
        if previous is not None:
            signal.signal(signal.SIGTERM, previous)


if __name__ == "__main__":
    raise SystemExit(main())
