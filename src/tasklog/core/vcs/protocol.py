"""Command runner protocol for the git driver.

The driver never spawns processes itself; it hands argv lists to a
``CommandRunner``. ``SubprocessRunner`` is the real implementation, and
tests supply a fake that returns canned output.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class CommandResult:
    """Normalized outcome of one git invocation."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@runtime_checkable
class CommandRunner(Protocol):
    """Runs ``git <args>`` in ``cwd`` and returns its exit status and output."""

    def run(self, args: Sequence[str], cwd: Path) -> CommandResult:
        ...


__all__ = ["CommandResult", "CommandRunner"]
