"""Task mutations with git synchronization and execution-state upkeep."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from tasklog.core.config import TasklogConfig
from tasklog.core.vcs import CommitResult, GitDriver
from tasklog.tasks.execution_state import clear_execution_state
from tasklog.tasks.repository import MutationResult, TaskRepository

from .sync import commit_mutation, sync_before_mutation


@dataclass(frozen=True)
class ServiceResult:
    """A mutation result plus the commit made for it (None outside git mode)."""

    mutation: MutationResult
    commit: CommitResult | None = None

    def to_dict(self) -> dict[str, Any]:
        data = self.mutation.to_dict()
        if self.commit is not None:
            data.update(self.commit.to_dict())
        return data


class TaskService:
    """Runs repository mutations inside the pull/commit cycle when git mode is on."""

    def __init__(
        self,
        config: TasklogConfig,
        *,
        driver: GitDriver | None = None,
        repository: TaskRepository | None = None,
    ):
        self.config = config
        self.driver = driver or GitDriver()
        self.repository = repository or TaskRepository(config.paths)

    def _run(self, mutate: Callable[[], MutationResult]) -> ServiceResult:
        tasks_dir = self.config.resolved_tasks_dir
        if not self.config.use_git:
            return ServiceResult(mutate())

        sync_before_mutation(self.driver, tasks_dir)
        result = mutate()
        return ServiceResult(result, commit_mutation(self.driver, tasks_dir, result))

    def add_task(self, title: str, **fields: Any) -> ServiceResult:
        return self._run(lambda: self.repository.add_task(title, **fields))

    def update_task(self, task_id: int, **changes: Any) -> ServiceResult:
        return self._run(lambda: self.repository.update_task(task_id, **changes))

    def complete_task(
        self, task_id: int, comment: str | None = None, *, category: str | None = None
    ) -> ServiceResult:
        result = self._run(
            lambda: self.repository.complete_task(task_id, comment, category=category)
        )
        clear_execution_state(self.config.base_dir)
        return result

    def delete_task(self, task_id: int) -> ServiceResult:
        return self._run(lambda: self.repository.delete_task(task_id))

    def reopen_task(self, task_id: int) -> ServiceResult:
        return self._run(lambda: self.repository.reopen_task(task_id))


__all__ = ["ServiceResult", "TaskService"]
