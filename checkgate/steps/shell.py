from __future__ import annotations

import os
import signal
import subprocess
import time
from dataclasses import dataclass
from typing import Mapping

from .base import ERROR, FAIL, PASS, StepOutcome, StepSpec
from ..errors import StepCancelled

_POSIX = os.name == "posix"


def _fmt_seconds(seconds: float) -> str:
    return f"{seconds:g}s"


def _kill_group(proc: subprocess.Popen) -> None:
    """Kill the child and everything it spawned.

    On POSIX the group is killed even when the leader already exited, since
    a descendant may still hold the output pipes open.
    """
    try:
        if _POSIX:
            # the child leads its own session, so its pid is the group id
            os.killpg(proc.pid, signal.SIGKILL)
        elif proc.poll() is None:
            proc.kill()
    except (ProcessLookupError, PermissionError):
        pass


@dataclass
class StepRunner:
    """Runs a StepSpec as a child process and classifies the result.

    ``env`` is the inherited environment (``os.environ`` when None);
    ``timeout`` is used for steps that do not declare their own.
    """

    env: Mapping[str, str] | None = None
    timeout: float | None = None

    def child_env(self, spec: StepSpec) -> dict[str, str]:
        base = os.environ if self.env is None else self.env
        return {**base, **spec.required_env}

    def execute(self, spec: StepSpec) -> StepOutcome:
        start = time.monotonic()
        timeout = spec.timeout if spec.timeout is not None else self.timeout

        try:
            proc = subprocess.Popen(
                list(spec.command),
                cwd=str(spec.working_dir),
                env=self.child_env(spec),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=_POSIX,
            )
        except OSError as e:
            # missing executable, permission denied, bad working dir...
            return StepOutcome(
                spec.name,
                ERROR,
                stderr=f"{type(e).__name__}: {e}\n".encode(),
                seconds=round(time.monotonic() - start, 3),
                note=f"could not start: {e.strerror or e}",
            )
        except KeyboardInterrupt:
            raise StepCancelled(
                StepOutcome(
                    spec.name,
                    ERROR,
                    stderr=b"cancelled while starting\n",
                    seconds=round(time.monotonic() - start, 3),
                    note="cancelled",
                )
            ) from None

        try:
            out, err = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            _kill_group(proc)
            out, err = proc.communicate()
            msg = f"timed out after {_fmt_seconds(timeout or 0)}"
            return StepOutcome(
                spec.name,
                ERROR,
                stdout=out or b"",
                stderr=(err or b"") + f"\n{msg}\n".encode(),
                seconds=round(time.monotonic() - start, 3),
                note=msg,
            )
        except KeyboardInterrupt:
            _kill_group(proc)
            out, err = proc.communicate()
            raise StepCancelled(
                StepOutcome(
                    spec.name,
                    ERROR,
                    stdout=out or b"",
                    stderr=(err or b"") + b"\ncancelled\n",
                    seconds=round(time.monotonic() - start, 3),
                    note="cancelled",
                )
            ) from None
        except OSError as e:
            _kill_group(proc)
            proc.wait()
            return StepOutcome(
                spec.name,
                ERROR,
                stderr=f"{type(e).__name__}: {e}\n".encode(),
                seconds=round(time.monotonic() - start, 3),
                note=f"supervision failed: {e}",
            )

        rc = proc.returncode
        return StepOutcome(
            spec.name,
            PASS if rc == 0 else FAIL,
            exit_code=rc,
            stdout=out or b"",
            stderr=err or b"",
            seconds=round(time.monotonic() - start, 3),
            note="" if rc == 0 else f"exit={rc}",
        )
