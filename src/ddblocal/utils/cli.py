from __future__ import annotations

import subprocess
from collections.abc import Sequence
from pathlib import Path


def spawn(args: Sequence[str], *, log_file: str | Path | None = None) -> subprocess.Popen:
    """
    Start a command asynchronously and return its Popen handle without waiting.

    Args:
        args (Sequence[str]): Command and arguments to execute.
        log_file (str | Path | None): File that receives stdout and stderr
            (appended). When None, output is discarded.

    Raises:
        OSError: If the executable cannot be found or started.
    """
    if log_file is None:
        return subprocess.Popen(
            list(args),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )

    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    # The child keeps its own descriptor; ours can be closed right away
    with path.open("ab") as out:
        return subprocess.Popen(
            list(args),
            stdin=subprocess.DEVNULL,
            stdout=out,
            stderr=subprocess.STDOUT,
        )
