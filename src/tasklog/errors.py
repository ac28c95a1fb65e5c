"""Exception hierarchy shared by the store, resolver, config and workflow layers."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tasklog.tasks.schema import FieldError


class TasklogError(Exception):
    """Base class for all tasklog errors."""


class TaskValidationError(TasklogError):
    """Raised when a record fails the task schema.

    Carries the individual field errors so callers can report each one.
    """

    def __init__(self, errors: list[FieldError], message: str = "Invalid task schema"):
        self.errors = list(errors)
        detail = "; ".join(str(e) for e in self.errors)
        super().__init__(f"{message}: {detail}" if detail else message)


class TaskNotFoundError(TasklogError, LookupError):
    """Raised when a task id is not present in the log being mutated."""

    def __init__(self, task_id: int, path: Path | None = None):
        self.task_id = task_id
        self.path = path
        location = f" in {path}" if path is not None else ""
        super().__init__(f"Task not found: {task_id}{location}")


class StoreError(TasklogError):
    """Raised when the task logs are in a state the store cannot reconcile."""


class ConfigError(TasklogError):
    """Raised when .tasklog.yaml cannot be parsed or validated."""

    def __init__(self, message: str, *, key: str | None = None):
        self.key = key
        super().__init__(message)


class WorkflowError(TasklogError):
    """Raised when a task workflow rule or a required git step fails."""


class SyncError(WorkflowError):
    """Raised when pulling the tasks repository before a mutation fails."""

    def __init__(self, message: str, error_type: str, details: str | None = None):
        self.error_type = error_type
        self.details = details
        super().__init__(message)


class CircularDependencyError(WorkflowError):
    """Raised when a blocked-by relation would close a dependency cycle."""

    def __init__(self, cycle: list[int]):
        self.cycle = list(cycle)
        chain = " -> ".join(f"#{task_id}" for task_id in self.cycle)
        super().__init__(f"Circular dependency detected: {chain}")


__all__ = [
    "TasklogError",
    "TaskValidationError",
    "TaskNotFoundError",
    "StoreError",
    "ConfigError",
    "WorkflowError",
    "SyncError",
    "CircularDependencyError",
]
