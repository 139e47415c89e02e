"""Task model and the unified task status vocabulary."""

from datetime import datetime
from enum import Enum

from pydantic import field_validator

from models.base import EntityModel


class TaskStatus(str, Enum):
    """
    Canonical task statuses.

    The backend and the kanban board disagree on the terminal status
    ("completed" vs "done"). Both are accepted on input and normalized to
    DONE; outbound payloads always use the canonical values below.
    """

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"


# Inbound spellings that are not canonical values
_STATUS_ALIASES = {
    "completed": TaskStatus.DONE,
    "complete": TaskStatus.DONE,
    "in-progress": TaskStatus.IN_PROGRESS,
    "inprogress": TaskStatus.IN_PROGRESS,
    "in_review": TaskStatus.REVIEW,
}


def normalize_task_status(value: object) -> TaskStatus:
    """
    Map any status spelling onto TaskStatus.

    Args:
        value: Raw status from a payload or caller

    Returns:
        Canonical status; missing or unknown values fall back to TODO,
        matching the board's fallback column.
    """
    if isinstance(value, TaskStatus):
        return value
    if not isinstance(value, str) or not value:
        return TaskStatus.TODO

    key = value.strip().lower()
    if key in _STATUS_ALIASES:
        return _STATUS_ALIASES[key]
    try:
        return TaskStatus(key)
    except ValueError:
        return TaskStatus.TODO


class Task(EntityModel):
    """A project task on the kanban board."""

    id: str
    project_id: str | None = None
    title: str = ""
    description: str | None = None
    status: TaskStatus = TaskStatus.TODO
    priority: str | None = None
    due_date: datetime | None = None
    assigned_to: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    is_optimistic: bool = False

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: object) -> TaskStatus:
        return normalize_task_status(value)
