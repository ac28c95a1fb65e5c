from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, Iterator

import pytest

from tasklog.core.vcs import CommandResult
from tasklog.tasks.models import Task
from tests.utils import GIT_AVAILABLE, run


class FakeRunner:
    """CommandRunner returning canned results keyed by argv prefix.

    Responses are matched against the start of the git arguments; the
    longest matching prefix wins. Unmatched commands succeed with no
    output. Every call is recorded in ``calls`` as ``(args, cwd)``.
    """

    def __init__(self) -> None:
        self.responses: dict[tuple[str, ...], list[CommandResult]] = {}
        self.calls: list[tuple[list[str], Path]] = []

    def on(self, *prefix: str, returncode: int = 0, stdout: str = "", stderr: str = "") -> FakeRunner:
        """Queue a result for commands starting with ``prefix``.

        Multiple results for the same prefix are returned in order; the
        last one repeats.
        """
        self.responses.setdefault(tuple(prefix), []).append(
            CommandResult(returncode=returncode, stdout=stdout, stderr=stderr)
        )
        return self

    def run(self, args: Sequence[str], cwd: Path) -> CommandResult:
        args = list(args)
        self.calls.append((args, Path(cwd)))
        matches = [p for p in self.responses if tuple(args[: len(p)]) == p]
        if not matches:
            return CommandResult(returncode=0)
        queue = self.responses[max(matches, key=len)]
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def commands(self) -> list[list[str]]:
        return [args for args, _ in self.calls]


@pytest.fixture()
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture()
def make_task() -> Callable[..., Task]:
    """Factory for valid tasks; keyword arguments override fields."""

    def _make(task_id: int = 1, **overrides: Any) -> Task:
        record: dict[str, Any] = {
            "id": task_id,
            "status": "open",
            "title": f"Task {task_id}",
            "description": "",
            "design": "",
            "category": "simple",
            "type": "task",
            "meta": {},
            "relations": [],
        }
        for key, value in overrides.items():
            record["parent-id" if key == "parent_id" else key] = value
        return Task.model_validate(record)

    return _make


@pytest.fixture()
def temp_repo(tmp_path: Path) -> Iterator[Path]:
    """A git repository on ``main`` with one commit."""
    if not GIT_AVAILABLE:
        pytest.skip("git executable not available")
    repo_dir = tmp_path / "repo"
    repo_dir.mkdir()
    run(["git", "init"], cwd=repo_dir)
    run(["git", "symbolic-ref", "HEAD", "refs/heads/main"], cwd=repo_dir)
    run(["git", "config", "user.name", "Tasklog Tests"], cwd=repo_dir)
    run(["git", "config", "user.email", "tasklog@example.com"], cwd=repo_dir)
    run(["git", "config", "commit.gpgsign", "false"], cwd=repo_dir)
    (repo_dir / "README.md").write_text("demo\n", encoding="utf-8")
    run(["git", "add", "."], cwd=repo_dir)
    run(["git", "commit", "-m", "Initial commit"], cwd=repo_dir)
    yield repo_dir
