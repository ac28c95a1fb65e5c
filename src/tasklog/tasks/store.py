"""JSONL task log store.

Each log (``tasks.jsonl`` for active tasks, ``complete.jsonl`` for the
archive) holds one JSON object per line with sorted keys. There are no
headers or trailers, so every line parses on its own.

Every mutation reads the whole file, computes the new sequence in memory,
writes it to a temporary file in the same directory and renames that over
the target with ``os.replace``. Readers therefore only ever observe the
complete old or the complete new content.

Reads are best effort: a line that is not valid JSON, or that fails the
task schema, is logged and skipped rather than aborting the load.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path

from tasklog.errors import TaskNotFoundError

from .models import Task
from .schema import ensure_valid_task, validate_task

logger = logging.getLogger(__name__)


def _parse_line(path: Path, line_number: int, line: bytes) -> Task | None:
    try:
        text = line.decode("utf-8")
    except UnicodeDecodeError as exc:
        logger.warning("Skipping undecodable line in %s line %d: %s", path, line_number, exc)
        return None
    try:
        record = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.warning("Skipping malformed JSON in %s line %d: %s", path, line_number, exc)
        return None

    errors = validate_task(record)
    if errors:
        detail = "; ".join(str(e) for e in errors)
        logger.warning("Skipping invalid task in %s line %d: %s", path, line_number, detail)
        return None
    return Task.from_dict(record)


def read_tasks(path: Path) -> list[Task]:
    """Read all valid tasks from a JSONL log.

    Returns an empty list when the file does not exist. Lines are decoded
    one at a time. Blank lines are ignored; undecodable, malformed or
    schema-invalid lines are skipped with a warning.
    I/O errors other than a missing file propagate.
    """
    if not path.exists():
        return []

    tasks: list[Task] = []
    content = path.read_bytes()
    for line_number, raw_line in enumerate(content.splitlines(), start=1):
        stripped = raw_line.strip()
        if not stripped:
            continue
        task = _parse_line(path, line_number, stripped)
        if task is not None:
            tasks.append(task)
    return tasks


def _write_tasks_atomic(path: Path, tasks: Iterable[Task]) -> None:
    """Write tasks to ``path`` via a same-directory temp file and rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            for task in tasks:
                fh.write(json.dumps(task.to_dict(), sort_keys=True) + "\n")
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def write_tasks(path: Path, tasks: Iterable[Task]) -> None:
    """Atomically replace the log with ``tasks``, validating each first."""
    validated = [ensure_valid_task(task) for task in tasks]
    _write_tasks_atomic(path, validated)


def append_task(path: Path, task: Task) -> None:
    """Atomically add ``task`` at the end of the log."""
    task = ensure_valid_task(task)
    existing = read_tasks(path)
    _write_tasks_atomic(path, [*existing, task])


def prepend_task(path: Path, task: Task) -> None:
    """Atomically add ``task`` at the start of the log."""
    task = ensure_valid_task(task)
    existing = read_tasks(path)
    _write_tasks_atomic(path, [task, *existing])


def replace_task(path: Path, task: Task) -> None:
    """Atomically replace the record whose id matches ``task.id``.

    Raises:
        TaskValidationError: If ``task`` fails the schema.
        TaskNotFoundError: If no record with that id exists in the log.
    """
    task = ensure_valid_task(task)
    existing = read_tasks(path)
    for index, current in enumerate(existing):
        if current.id == task.id:
            break
    else:
        raise TaskNotFoundError(task.id, path)

    updated = list(existing)
    updated[index] = task
    _write_tasks_atomic(path, updated)


def delete_task(path: Path, task_id: int) -> Task:
    """Atomically remove the record with ``task_id`` and return it.

    Raises:
        TaskNotFoundError: If no record with that id exists in the log.
    """
    existing = read_tasks(path)
    remaining = [t for t in existing if t.id != task_id]
    if len(remaining) == len(existing):
        raise TaskNotFoundError(task_id, path)

    removed = next(t for t in existing if t.id == task_id)
    _write_tasks_atomic(path, remaining)
    return removed


__all__ = [
    "read_tasks",
    "write_tasks",
    "append_task",
    "prepend_task",
    "replace_task",
    "delete_task",
]
