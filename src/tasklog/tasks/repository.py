"""Query and mutation layer over the active and archive logs.

``TaskRepository`` owns the task lifecycle rules: id assignment, parent
checks, story completion, deletion and reopening. It re-reads both logs
on every call; nothing is cached between operations, so a second process
editing the logs is picked up on the next call (there is no cross-process
locking, the last writer wins).

Archival moves a task by rewriting the active log without it and then
rewriting the archive log with it appended. Each rewrite is atomic on its
own; a crash between the two leaves the task in neither log.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from tasklog.core.paths import TaskPaths
from tasklog.errors import (
    CircularDependencyError,
    StoreError,
    TaskNotFoundError,
    WorkflowError,
)

from .graph import BlockingInfo, find_cycle, why_blocked
from .models import Relation, Task, TaskStatus, TaskType
from .schema import ensure_valid_task
from . import store

logger = logging.getLogger(__name__)

STATUS_ANY = "any"

_UPDATABLE_FIELDS = frozenset(
    {"title", "description", "design", "category", "type", "status", "parent_id", "meta", "relations"}
)


@dataclass(frozen=True)
class TaskSnapshot:
    """Both logs as read at one point in time."""

    active: list[Task]
    archived: list[Task]

    @property
    def by_id(self) -> dict[int, Task]:
        # Active entries win if an id was ever duplicated across logs.
        merged = {task.id: task for task in self.archived}
        merged.update({task.id: task for task in self.active})
        return merged

    @property
    def active_ids(self) -> set[int]:
        return {task.id for task in self.active}

    @property
    def next_id(self) -> int:
        ids = [task.id for task in (*self.active, *self.archived)]
        return max(ids, default=0) + 1

    def children(self, parent_id: int) -> list[Task]:
        """Active-log children of ``parent_id`` in file order."""
        return [task for task in self.active if task.parent_id == parent_id]

    def find_by_title(self, title: str) -> list[Task]:
        return [task for task in (*self.active, *self.archived) if task.title == title]


@dataclass(frozen=True)
class TaskView:
    """A task together with its blocking state."""

    task: Task
    blocking: BlockingInfo

    def to_dict(self) -> dict[str, Any]:
        data = self.task.to_dict()
        data["is-blocked"] = self.blocking.is_blocked
        data["blocking-task-ids"] = list(self.blocking.blocking_ids)
        if self.blocking.circular_dependency is not None:
            data["circular-dependency"] = list(self.blocking.circular_dependency)
        if self.blocking.error is not None:
            data["error"] = self.blocking.error
        return data


@dataclass(frozen=True)
class MutationResult:
    """Outcome of a mutation.

    Attributes:
        task: The task as persisted after the mutation.
        action: ``add``, ``update``, ``complete``, ``delete`` or ``reopen``.
        modified_files: Log file names (relative to the tasks dir) rewritten.
        message: Human-readable summary.
        archived_ids: Ids moved to the archive log, in order.
    """

    task: Task
    action: str
    modified_files: list[str]
    message: str
    archived_ids: list[int] = field(default_factory=list)

    @property
    def child_count(self) -> int:
        return max(len(self.archived_ids) - 1, 0) if self.task.is_story else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "task": self.task.to_dict(),
            "modified-files": list(self.modified_files),
            "message": self.message,
        }


def _title_matcher(pattern: str) -> Callable[[str], bool]:
    """Regex search, or plain substring match when ``pattern`` is not a valid regex."""
    try:
        regex = re.compile(pattern)
    except re.error:
        return lambda title: pattern in title
    return lambda title: regex.search(title) is not None


def _coerce_relations(relations: Iterable[Relation | Mapping[str, Any]]) -> list[dict[str, Any]]:
    return [r.to_dict() if isinstance(r, Relation) else dict(r) for r in relations]


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


class TaskRepository:
    """Task lifecycle operations against one tasks directory."""

    def __init__(self, paths: TaskPaths):
        self.paths = paths

    @classmethod
    def for_tasks_dir(cls, tasks_dir: Path) -> TaskRepository:
        return cls(TaskPaths(tasks_dir))

    # Queries

    def load(self) -> TaskSnapshot:
        return TaskSnapshot(
            active=store.read_tasks(self.paths.tasks_file),
            archived=store.read_tasks(self.paths.complete_file),
        )

    def get_task(self, task_id: int) -> Task:
        """Look a task up in either log.

        Raises:
            TaskNotFoundError: If neither log holds ``task_id``.
        """
        task = self.load().by_id.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id, self.paths.tasks_file)
        return task

    def get_children(self, parent_id: int) -> list[Task]:
        return self.load().children(parent_id)

    def find_by_title(self, title: str) -> list[Task]:
        return self.load().find_by_title(title)

    def why_blocked(self, task_id: int) -> BlockingInfo:
        snapshot = self.load()
        task = snapshot.by_id.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id, self.paths.tasks_file)
        return why_blocked(task, snapshot.by_id)

    def select_tasks(
        self,
        *,
        task_id: int | None = None,
        category: str | None = None,
        parent_id: int | None = None,
        title_pattern: str | None = None,
        type: TaskType | str | None = None,
        status: TaskStatus | str | None = None,
        blocked: bool | None = None,
        limit: int | None = None,
        unique: bool = False,
    ) -> list[TaskView]:
        """Tasks matching every given filter, in file order.

        ``status=None`` selects non-closed tasks in the active log. An
        explicit status, or ``"any"``, also searches the archive.

        Raises:
            WorkflowError: If ``unique`` is set and more than one task matches.
        """
        snapshot = self.load()
        if status is None:
            candidates = [t for t in snapshot.active if t.status != TaskStatus.CLOSED]
        elif status == STATUS_ANY:
            candidates = [*snapshot.active, *snapshot.archived]
        else:
            wanted = TaskStatus(status)
            candidates = [t for t in (*snapshot.active, *snapshot.archived) if t.status == wanted]

        wanted_type = TaskType(type) if type is not None else None
        title_matches = _title_matcher(title_pattern) if title_pattern is not None else None

        selected: list[Task] = []
        for task in candidates:
            if task_id is not None and task.id != task_id:
                continue
            if category is not None and task.category != category:
                continue
            if parent_id is not None and task.parent_id != parent_id:
                continue
            if wanted_type is not None and task.type != wanted_type:
                continue
            if title_matches is not None and not title_matches(task.title):
                continue
            selected.append(task)

        graph = snapshot.by_id
        views = [TaskView(task, why_blocked(task, graph)) for task in selected]
        if blocked is not None:
            views = [v for v in views if v.blocking.is_blocked == blocked]

        if unique and len(views) > 1:
            ids = ", ".join(str(v.task.id) for v in views)
            raise WorkflowError(f"Multiple tasks match ({ids}); expected a unique match")
        if limit is not None:
            views = views[:limit]
        return views

    def next_task(
        self,
        *,
        category: str | None = None,
        parent_id: int | None = None,
        title_pattern: str | None = None,
    ) -> TaskView | None:
        """First incomplete task matching the filters, or None."""
        views = self.select_tasks(
            category=category, parent_id=parent_id, title_pattern=title_pattern, limit=1
        )
        return views[0] if views else None

    # Mutations

    def _check_parent(self, parent_id: int, snapshot: TaskSnapshot) -> None:
        if parent_id not in snapshot.by_id:
            raise WorkflowError(f"Parent story not found: {parent_id}")

    def _check_cycle(self, task: Task, snapshot: TaskSnapshot) -> None:
        graph = snapshot.by_id
        graph[task.id] = task
        cycle = find_cycle(task.id, graph)
        if cycle is not None:
            raise CircularDependencyError(cycle)

    def add_task(
        self,
        title: str,
        *,
        category: str = "simple",
        description: str = "",
        design: str = "",
        type: TaskType | str = TaskType.TASK,
        parent_id: int | None = None,
        relations: Iterable[Relation | Mapping[str, Any]] = (),
        meta: Mapping[str, str] | None = None,
        prepend: bool = False,
    ) -> MutationResult:
        """Create an ``open`` task with the next free id.

        Raises:
            TaskValidationError: If the resulting record fails the schema.
            WorkflowError: If ``parent_id`` does not exist.
            CircularDependencyError: If ``relations`` would close a cycle.
        """
        snapshot = self.load()
        if parent_id is not None:
            self._check_parent(parent_id, snapshot)

        record: dict[str, Any] = {
            "id": snapshot.next_id,
            "status": TaskStatus.OPEN.value,
            "title": title,
            "description": description,
            "design": design,
            "category": category,
            "type": str(type),
            "meta": dict(meta or {}),
            "relations": _coerce_relations(relations),
        }
        if parent_id is not None:
            record["parent-id"] = parent_id
        task = ensure_valid_task(record)
        self._check_cycle(task, snapshot)

        if prepend:
            store.prepend_task(self.paths.tasks_file, task)
        else:
            store.append_task(self.paths.tasks_file, task)
        return MutationResult(
            task=task,
            action="add",
            modified_files=[self.paths.tasks_rel_path],
            message=f"Task {task.id} added to {self.paths.tasks_file}",
        )

    def update_task(self, task_id: int, **changes: Any) -> MutationResult:
        """Replace the given fields of an active task.

        ``meta`` and ``relations`` replace the stored values wholesale.

        Raises:
            TaskNotFoundError: If ``task_id`` is not in the active log.
            TaskValidationError: If the updated record fails the schema.
            WorkflowError: On no or unknown fields, a ``deleted`` status or a
                missing parent.
            CircularDependencyError: If the new relations would close a cycle.
        """
        if not changes:
            raise WorkflowError("No fields to update")
        unknown = sorted(set(changes) - _UPDATABLE_FIELDS)
        if unknown:
            raise WorkflowError(f"Cannot update field(s): {', '.join(unknown)}")

        snapshot = self.load()
        current = next((t for t in snapshot.active if t.id == task_id), None)
        if current is None:
            raise TaskNotFoundError(task_id, self.paths.tasks_file)

        record = current.to_dict()
        for name, value in changes.items():
            if name == "parent_id":
                if value is None:
                    record.pop("parent-id", None)
                    continue
                if value != current.parent_id:
                    self._check_parent(value, snapshot)
                record["parent-id"] = value
            elif name == "relations":
                record["relations"] = _coerce_relations(value)
            elif name == "meta":
                record["meta"] = dict(value)
            elif name in ("status", "type"):
                record[name] = str(value)
            else:
                record[name] = value

        if record["status"] == TaskStatus.DELETED.value:
            raise WorkflowError("Use delete to mark a task deleted")

        task = ensure_valid_task(record)
        if "relations" in changes:
            self._check_cycle(task, snapshot)
        store.replace_task(self.paths.tasks_file, task)
        return MutationResult(
            task=task,
            action="update",
            modified_files=[self.paths.tasks_rel_path],
            message=f"Task {task.id} updated in {self.paths.tasks_file}",
        )

    def _require_active(self, task_id: int, snapshot: TaskSnapshot, verb: str) -> Task:
        for task in snapshot.active:
            if task.id == task_id:
                return task
        archived = next((t for t in snapshot.archived if t.id == task_id), None)
        if archived is not None:
            raise WorkflowError(f"Cannot {verb} task {task_id}: task is already {archived.status}")
        raise TaskNotFoundError(task_id, self.paths.tasks_file)

    def _move_to_archive(self, tasks: list[Task], snapshot: TaskSnapshot) -> None:
        moving = {task.id for task in tasks}
        clashes = sorted(moving & {task.id for task in snapshot.archived})
        if clashes:
            raise StoreError(f"Task id(s) already archived: {', '.join(map(str, clashes))}")

        store.write_tasks(self.paths.tasks_file, [t for t in snapshot.active if t.id not in moving])
        store.write_tasks(self.paths.complete_file, [*snapshot.archived, *tasks])
        logger.info("Archived task(s) %s to %s", sorted(moving), self.paths.complete_file)

    def complete_task(
        self,
        task_id: int,
        comment: str | None = None,
        *,
        category: str | None = None,
    ) -> MutationResult:
        """Close a task.

        A regular task moves to the archive. A story child stays in the
        active log as ``closed`` until its story completes. A story needs
        every child closed and is archived together with them.

        Raises:
            TaskNotFoundError: If the task is in neither log.
            WorkflowError: If the task is already closed, the category does
                not match, the parent is missing or not a story, or a story
                has unclosed children.
        """
        snapshot = self.load()
        task = self._require_active(task_id, snapshot, "complete")
        if category is not None and task.category != category:
            raise WorkflowError(
                f"Task category does not match (task {task_id} is {task.category!r}, not {category!r})"
            )
        if task.status == TaskStatus.CLOSED:
            raise WorkflowError(f"Task {task_id} is already closed")

        description = task.description
        if comment and comment.strip():
            description = f"{description}\n\nCompleted: {comment}"
        closed = task.model_copy(update={"status": TaskStatus.CLOSED, "description": description})
        closed = ensure_valid_task(closed)

        if task.parent_id is not None:
            parent = snapshot.by_id.get(task.parent_id)
            if parent is None:
                raise WorkflowError(f"Parent task not found: {task.parent_id}")
            if not parent.is_story:
                raise WorkflowError(f"Parent task {task.parent_id} is not a story")
            store.replace_task(self.paths.tasks_file, closed)
            return MutationResult(
                task=closed,
                action="complete",
                modified_files=[self.paths.tasks_rel_path],
                message=f"Task {task_id} completed",
            )

        if task.is_story:
            children = snapshot.children(task_id)
            unclosed = [c for c in children if c.status != TaskStatus.CLOSED]
            if unclosed:
                verb = "is" if len(unclosed) == 1 else "are"
                raise WorkflowError(
                    f"Cannot complete story: {_plural(len(unclosed), 'child task')} still {verb} not closed"
                    f" ({', '.join(f'#{c.id}' for c in unclosed)})"
                )
            self._move_to_archive([closed, *children], snapshot)
            message = f"Story {task_id} completed and archived"
            if children:
                message += f" with {_plural(len(children), 'child task')}"
            return MutationResult(
                task=closed,
                action="complete",
                modified_files=[self.paths.tasks_rel_path, self.paths.complete_rel_path],
                message=message,
                archived_ids=[task_id, *(c.id for c in children)],
            )

        self._move_to_archive([closed], snapshot)
        return MutationResult(
            task=closed,
            action="complete",
            modified_files=[self.paths.tasks_rel_path, self.paths.complete_rel_path],
            message=f"Task {task_id} completed and moved to {self.paths.complete_file}",
            archived_ids=[task_id],
        )

    def delete_task(self, task_id: int) -> MutationResult:
        """Mark a task ``deleted`` and move it to the archive.

        Raises:
            TaskNotFoundError: If the task is in neither log.
            WorkflowError: If it is already archived or has unclosed children.
        """
        snapshot = self.load()
        archived = next((t for t in snapshot.archived if t.id == task_id), None)
        if archived is not None and archived.status == TaskStatus.DELETED:
            raise WorkflowError(f"Task {task_id} is already deleted")
        task = self._require_active(task_id, snapshot, "delete")

        open_children = [c for c in snapshot.children(task_id) if c.status != TaskStatus.CLOSED]
        if open_children:
            raise WorkflowError(
                "Cannot delete task with children. Delete or complete all child tasks first."
                f" ({', '.join(f'#{c.id}' for c in open_children)})"
            )

        deleted = ensure_valid_task(task.model_copy(update={"status": TaskStatus.DELETED}))
        self._move_to_archive([deleted], snapshot)
        return MutationResult(
            task=deleted,
            action="delete",
            modified_files=[self.paths.tasks_rel_path, self.paths.complete_rel_path],
            message=f"Task {task_id} deleted successfully",
            archived_ids=[task_id],
        )

    def reopen_task(self, task_id: int) -> MutationResult:
        """Set a ``closed`` task back to ``open``.

        An archived task is moved back to the end of the active log.

        Raises:
            TaskNotFoundError: If the task is in neither log.
            WorkflowError: If the task is not closed.
        """
        snapshot = self.load()
        task = snapshot.by_id.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id, self.paths.tasks_file)
        if task.status != TaskStatus.CLOSED:
            if task.status == TaskStatus.OPEN:
                raise WorkflowError(f"Task {task_id} is already open")
            raise WorkflowError(f"Only closed tasks can be reopened (task {task_id} is {task.status})")

        reopened = ensure_valid_task(task.model_copy(update={"status": TaskStatus.OPEN}))
        if task_id in snapshot.active_ids:
            store.replace_task(self.paths.tasks_file, reopened)
            return MutationResult(
                task=reopened,
                action="reopen",
                modified_files=[self.paths.tasks_rel_path],
                message=f"Task {task_id} reopened in {self.paths.tasks_file}",
            )

        store.delete_task(self.paths.complete_file, task_id)
        store.append_task(self.paths.tasks_file, reopened)
        return MutationResult(
            task=reopened,
            action="reopen",
            modified_files=[self.paths.tasks_rel_path, self.paths.complete_rel_path],
            message=(
                f"Task {task_id} reopened and moved from {self.paths.complete_file}"
                f" to {self.paths.tasks_file}"
            ),
        )


__all__ = ["STATUS_ANY", "TaskSnapshot", "TaskView", "MutationResult", "TaskRepository"]
