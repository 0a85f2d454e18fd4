from __future__ import annotations

import os
import shutil
from pathlib import Path


def which(cmd: str, cwd: Path | None = None) -> str | None:
    # Relative paths like bin/check/lint.sh are resolved against cwd, not PATH
    if os.sep in cmd or (os.altsep and os.altsep in cmd):
        p = Path(cmd)
        if not p.is_absolute() and cwd is not None:
            p = cwd / p
        return str(p) if p.is_file() and os.access(p, os.X_OK) else None
    return shutil.which(cmd)
