"""Task record models.

Defines the Task and Relation records persisted one-per-line in the task
logs, along with the status, type and relation-type enumerations. Field
names on disk are kebab-case (``parent-id``, ``relates-to``, ``as-type``);
the Python attributes use snake_case and the models accept either.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator


class TaskStatus(StrEnum):
    """Task lifecycle states. ``deleted`` only appears in the archive log."""

    OPEN = "open"
    CLOSED = "closed"
    IN_PROGRESS = "in-progress"
    BLOCKED = "blocked"
    DELETED = "deleted"


class TaskType(StrEnum):
    TASK = "task"
    BUG = "bug"
    FEATURE = "feature"
    STORY = "story"
    CHORE = "chore"


class RelationType(StrEnum):
    BLOCKED_BY = "blocked-by"
    RELATED = "related"
    DISCOVERED_DURING = "discovered-during"


# Statuses that still represent outstanding work.
BLOCKING_STATUSES = frozenset(
    {TaskStatus.OPEN, TaskStatus.IN_PROGRESS, TaskStatus.BLOCKED}
)
RESOLVED_STATUSES = frozenset({TaskStatus.CLOSED, TaskStatus.DELETED})


class Relation(BaseModel):
    """Directed edge from the owning task to another task.

    ``id`` is only unique within the owning task's relation list.
    ``relates_to`` may reference a task that does not exist.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="allow")

    id: StrictInt
    relates_to: StrictInt = Field(alias="relates-to")
    as_type: RelationType = Field(alias="as-type")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Task(BaseModel):
    """A unit of work with status, category, type and relations.

    Unknown keys are kept and written back unchanged so that records
    produced by newer tools survive a rewrite by older ones.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="allow")

    id: StrictInt = Field(gt=0)
    parent_id: StrictInt | None = Field(default=None, alias="parent-id")
    status: TaskStatus
    title: StrictStr
    description: StrictStr
    design: StrictStr
    category: StrictStr
    type: TaskType
    meta: dict[StrictStr, StrictStr]
    relations: list[Relation]

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be blank")
        return value

    @field_validator("relations")
    @classmethod
    def _relation_ids_unique(cls, value: list[Relation]) -> list[Relation]:
        seen: set[int] = set()
        for relation in value:
            if relation.id in seen:
                raise ValueError(f"duplicate relation id {relation.id}")
            seen.add(relation.id)
        return value

    @property
    def is_story(self) -> bool:
        return self.type == TaskType.STORY

    def to_dict(self) -> dict[str, Any]:
        d = self.model_dump(mode="json", by_alias=True)
        if d.get("parent-id") is None:
            d.pop("parent-id", None)
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        return cls.model_validate(data)


__all__ = [
    "TaskStatus",
    "TaskType",
    "RelationType",
    "BLOCKING_STATUSES",
    "RESOLVED_STATUSES",
    "Relation",
    "Task",
]
