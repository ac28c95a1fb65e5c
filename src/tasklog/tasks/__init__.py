"""Task records, the JSONL log store and the blocking-relation resolver.

Usage:
    from tasklog.tasks import Task, read_tasks, append_task, why_blocked
"""

from __future__ import annotations

from .graph import BlockingInfo, blocking_ids, blocking_map, find_cycle, is_blocked, why_blocked
from .models import (
    BLOCKING_STATUSES,
    RESOLVED_STATUSES,
    Relation,
    RelationType,
    Task,
    TaskStatus,
    TaskType,
)
from .schema import FieldError, ensure_valid_task, is_valid_task, validate_task
from .store import append_task, delete_task, prepend_task, read_tasks, replace_task, write_tasks

__all__ = [
    # Models
    "Task",
    "Relation",
    "TaskStatus",
    "TaskType",
    "RelationType",
    "BLOCKING_STATUSES",
    "RESOLVED_STATUSES",
    # Schema
    "FieldError",
    "validate_task",
    "is_valid_task",
    "ensure_valid_task",
    # Store
    "read_tasks",
    "write_tasks",
    "append_task",
    "prepend_task",
    "replace_task",
    "delete_task",
    # Resolver
    "BlockingInfo",
    "blocking_ids",
    "is_blocked",
    "find_cycle",
    "why_blocked",
    "blocking_map",
]
