from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TextIO

from .report import DEFAULT_TAIL_LINES


@dataclass(frozen=True)
class RunOptions:
    timeout: float | None = None
    tail_lines: int = DEFAULT_TAIL_LINES
    redact: bool = True


@dataclass
class GateContext:
    root: Path
    options: RunOptions
    ts: str
    runlog: Path | None
    summary_json: Path | None
    json_mode: bool
    quiet: bool
    out: TextIO
    err: TextIO

    @staticmethod
    def utc_ts() -> str:
        return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")

    @classmethod
    def create(
        cls,
        *,
        root: Path,
        options: RunOptions | None = None,
        runlog: Path | None = None,
        summary_json: Path | None = None,
        json_mode: bool = False,
        quiet: bool = False,
        out: TextIO | None = None,
        err: TextIO | None = None,
    ) -> "GateContext":
        return cls(
            root=root,
            options=options or RunOptions(),
            ts=cls.utc_ts(),
            runlog=runlog,
            summary_json=summary_json,
            json_mode=json_mode,
            quiet=quiet,
            out=out or sys.stdout,
            err=err or sys.stderr,
        )

    def write_runlog(self, line: str) -> None:
        if self.runlog is None:
            return
        self.runlog.parent.mkdir(parents=True, exist_ok=True)
        with self.runlog.open("a", encoding="utf-8") as f:
            f.write(line.rstrip() + "\n")

    def progress(self, line: str) -> None:
        # stdout is reserved for the report / JSON payload
        if self.quiet or self.json_mode:
            return
        print(line, file=self.err, flush=True)

    def emit_json(self, payload: dict[str, Any]) -> None:
        print(json.dumps(payload, indent=2), file=self.out)

    def write_summary_json(self, payload: dict[str, Any]) -> None:
        if self.summary_json is None:
            return
        self.summary_json.parent.mkdir(parents=True, exist_ok=True)
        self.summary_json.write_text(
            json.dumps({**payload, "timestamp_utc": self.ts, "root": str(self.root)}, indent=2),
            encoding="utf-8",
        )
