from __future__ import annotations

import subprocess
import threading
from pathlib import Path
from typing import Protocol

from .errors import EmulatorStartError, EmulatorTerminateError
from .utils.cli import spawn
from .utils.logging import get_logger


class ProcessSupervisor(Protocol):
    """Starts the emulator process and kills it on demand."""

    def execute(self, name: str, *args: str) -> None: ...

    def terminate(self) -> None: ...


class SubprocessSupervisor:
    """
    Tracks at most one child process started with `subprocess.Popen`.

    - execute() starts the process without waiting for it. If a process is
      already tracked, it is terminated first so that no instance is leaked.
    - terminate() kills the tracked process and clears the handle. Calling it
      with nothing tracked is a no-op, so it is safe to call repeatedly.
    """

    KILL_WAIT_SEC = 5.0  # How long to wait for the killed process to be reaped

    def __init__(self, log_file: str | Path | None = None) -> None:
        self.log_file = log_file
        self._proc: subprocess.Popen | None = None
        self._lock = threading.RLock()
        self._log = get_logger(__name__)

    @property
    def pid(self) -> int | None:
        with self._lock:
            return self._proc.pid if self._proc is not None else None

    @property
    def running(self) -> bool:
        with self._lock:
            return self._proc is not None and self._proc.poll() is None

    def execute(self, name: str, *args: str) -> None:
        with self._lock:
            if self._proc is not None:
                self._log.warning(
                    "A process is already tracked - terminating it before starting a new one",
                    pid=self._proc.pid,
                )
                self.terminate()

            cmd = [name, *args]
            try:
                proc = spawn(cmd, log_file=self.log_file)
            except OSError as e:
                self._log.error("Failed to start process", cmd=" ".join(cmd), error=str(e))
                raise EmulatorStartError(f"failed to start {name!r}: {e}") from e

            self._proc = proc
            self._log.info(
                "Process started",
                action="process_start",
                cmd=" ".join(cmd),
                pid=proc.pid,
                log=str(self.log_file) if self.log_file else None,
            )

    def terminate(self) -> None:
        with self._lock:
            proc = self._proc
            if proc is None:
                return

            try:
                proc.kill()
            except OSError as e:
                raise EmulatorTerminateError(f"failed to kill process {proc.pid}: {e}") from e

            try:
                proc.wait(timeout=self.KILL_WAIT_SEC)
            except subprocess.TimeoutExpired:
                self._log.warning("Killed process was not reaped in time", pid=proc.pid)

            self._proc = None
            self._log.info(
                "Process terminated",
                action="process_terminate",
                pid=proc.pid,
                returncode=proc.returncode,
            )


__all__ = ["ProcessSupervisor", "SubprocessSupervisor"]
