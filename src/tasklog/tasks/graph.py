"""Blocking relationships between tasks.

Works on an in-memory snapshot mapping task id to Task. The snapshot
should include archived tasks: they carry ``closed``/``deleted`` status
and so never block, but they must still resolve, otherwise a relation to a
completed task would look like a dangling reference.

Only ``blocked-by`` relations take part. A ``blocked-by`` target that
cannot be found counts as blocking and is reported through
``BlockingInfo.error`` instead of raising.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from .models import RESOLVED_STATUSES, RelationType, Task


@dataclass(frozen=True)
class BlockingInfo:
    """Diagnostic view of why a task is (or is not) blocked."""

    task_id: int
    is_blocked: bool
    blocking_ids: list[int] = field(default_factory=list)
    circular_dependency: list[int] | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "task-id": self.task_id,
            "is-blocked": self.is_blocked,
            "blocking-task-ids": list(self.blocking_ids),
        }
        if self.circular_dependency is not None:
            d["circular-dependency"] = list(self.circular_dependency)
        if self.error is not None:
            d["error"] = self.error
        return d


def _blocked_by_targets(task: Task) -> list[int]:
    return [
        relation.relates_to
        for relation in task.relations
        if relation.as_type == RelationType.BLOCKED_BY
    ]


def _is_active_blocker(target_id: int, tasks: Mapping[int, Task]) -> bool:
    target = tasks.get(target_id)
    return target is None or target.status not in RESOLVED_STATUSES


def blocking_ids(task: Task, tasks: Mapping[int, Task]) -> list[int]:
    """Ids of the ``blocked-by`` targets that are still outstanding.

    Preserves the order of the task's relation list.
    """
    return [
        target_id
        for target_id in _blocked_by_targets(task)
        if _is_active_blocker(target_id, tasks)
    ]


def is_blocked(task: Task, tasks: Mapping[int, Task]) -> bool:
    return any(_is_active_blocker(t, tasks) for t in _blocked_by_targets(task))


def find_cycle(task_id: int, tasks: Mapping[int, Task]) -> list[int] | None:
    """Follow ``blocked-by`` edges from ``task_id`` looking for a cycle.

    Depth-first, tracking the ids on the current path. When an edge leads
    back to an id already on the path, the cycle is returned starting and
    ending with that id (``[42, 10, 42]``). Nodes whose subtrees have been
    fully explored are not walked again, so shared ancestors (diamonds)
    are neither reported nor re-traversed. Dangling targets end a branch.
    """
    if task_id not in tasks:
        return None

    path: list[int] = [task_id]
    on_path: set[int] = {task_id}
    finished: set[int] = set()
    # Explicit stack of pending edges so long chains do not hit the recursion limit.
    stack: list[Iterator[int]] = [iter(_blocked_by_targets(tasks[task_id]))]

    while stack:
        target_id = next(stack[-1], None)
        if target_id is None:
            stack.pop()
            done = path.pop()
            on_path.discard(done)
            finished.add(done)
            continue
        if target_id in on_path:
            start = path.index(target_id)
            return [*path[start:], target_id]
        if target_id in finished or target_id not in tasks:
            continue
        path.append(target_id)
        on_path.add(target_id)
        stack.append(iter(_blocked_by_targets(tasks[target_id])))

    return None


def why_blocked(task: Task, tasks: Mapping[int, Task]) -> BlockingInfo:
    """Explain the blocking state of ``task``.

    ``task`` overrides any entry with the same id in ``tasks``, which lets
    callers check a candidate revision before persisting it.
    """
    graph = dict(tasks)
    graph[task.id] = task

    blockers = blocking_ids(task, graph)
    invalid = [target_id for target_id in blockers if target_id not in graph]
    error = None
    if invalid:
        error = "Blocked by invalid task ID: " + ", ".join(str(i) for i in invalid)

    return BlockingInfo(
        task_id=task.id,
        is_blocked=bool(blockers),
        blocking_ids=blockers,
        circular_dependency=find_cycle(task.id, graph),
        error=error,
    )


def blocking_map(
    tasks: Iterable[Task], snapshot: Mapping[int, Task]
) -> dict[int, BlockingInfo]:
    """Compute BlockingInfo for each task in ``tasks`` against ``snapshot``."""
    return {task.id: why_blocked(task, snapshot) for task in tasks}


__all__ = [
    "BlockingInfo",
    "blocking_ids",
    "is_blocked",
    "find_cycle",
    "why_blocked",
    "blocking_map",
]
