"""Helpers shared by test modules."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

GIT_AVAILABLE = shutil.which("git") is not None


def run(cmd: list[str], cwd: Path) -> subprocess.CompletedProcess:
    return subprocess.run(cmd, cwd=cwd, check=True, capture_output=True, text=True)
