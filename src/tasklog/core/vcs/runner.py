"""Subprocess-backed command runner."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from pathlib import Path

from .protocol import CommandResult

logger = logging.getLogger(__name__)


class SubprocessRunner:
    """Runs git as a child process.

    No timeout is applied: a hung git process (for example a pull waiting on
    the network) blocks the caller until it exits.
    """

    def __init__(self, executable: str = "git"):
        self.executable = executable

    def run(self, args: Sequence[str], cwd: Path) -> CommandResult:
        argv = [self.executable, *args]
        try:
            completed = subprocess.run(
                argv,
                cwd=str(cwd),
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
            )
        except FileNotFoundError:
            # Also raised when cwd does not exist.
            if not Path(cwd).is_dir():
                return CommandResult(
                    returncode=128,
                    stderr=f"fatal: cannot change to '{cwd}': No such file or directory",
                )
            return CommandResult(
                returncode=127,
                stderr=f"{self.executable} executable not found on PATH",
            )

        logger.debug("%s (cwd=%s) -> %d", " ".join(argv), cwd, completed.returncode)
        return CommandResult(
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )


__all__ = ["SubprocessRunner"]
