"""Current execution pointer: which story and task an agent is working on.

The state is an explicit value passed between the workflow functions. The
helpers below persist it to ``.tasklog-current.json`` in the base
directory so that other processes (hooks, a second session) can observe
it; nothing in the store or resolver reads it implicitly.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError, model_validator

from tasklog.core.constants import EXECUTION_STATE_FILENAME
from tasklog.errors import TaskValidationError

from .schema import FieldError, format_field_path

logger = logging.getLogger(__name__)


class ExecutionState(BaseModel):
    """Story/task currently being executed and when work started."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    story_id: StrictInt | None = Field(default=None, alias="story-id")
    task_id: StrictInt | None = Field(default=None, alias="task-id")
    started_at: datetime = Field(alias="started-at")

    @model_validator(mode="after")
    def _has_target(self) -> ExecutionState:
        if self.story_id is None and self.task_id is None:
            raise ValueError("execution state needs a story-id or a task-id")
        return self

    @classmethod
    def start(
        cls,
        *,
        task_id: int | None = None,
        story_id: int | None = None,
        now: datetime | None = None,
    ) -> ExecutionState:
        return cls(
            task_id=task_id,
            story_id=story_id,
            started_at=now or datetime.now(timezone.utc),
        )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def execution_state_path(base_dir: Path) -> Path:
    return base_dir / EXECUTION_STATE_FILENAME


def read_execution_state(base_dir: Path) -> ExecutionState | None:
    """Read the execution state, or None when absent or unreadable."""
    path = execution_state_path(base_dir)
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ExecutionState.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as exc:
        logger.warning("Ignoring invalid execution state in %s: %s", path, exc)
        return None


def write_execution_state(base_dir: Path, state: ExecutionState) -> Path:
    """Atomically write ``state`` and return the file path."""
    try:
        state = ExecutionState.model_validate(state.to_dict())
    except ValidationError as exc:
        errors = [
            FieldError(path=format_field_path(err["loc"]), reason=err["msg"])
            for err in exc.errors()
        ]
        raise TaskValidationError(errors, "Invalid execution state") from exc

    path = execution_state_path(base_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f"{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(state.to_dict(), fh, indent=2, sort_keys=True)
        os.replace(tmp_path, path)
    except Exception:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    return path


def clear_execution_state(base_dir: Path) -> bool:
    """Remove the state file. Returns True if a file was removed."""
    path = execution_state_path(base_dir)
    if not path.exists():
        return False
    path.unlink()
    return True


__all__ = [
    "ExecutionState",
    "execution_state_path",
    "read_execution_state",
    "write_execution_state",
    "clear_execution_state",
]
