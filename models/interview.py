"""Interview model."""

from datetime import datetime

from models.base import EntityModel


class Interview(EntityModel):
    """A scheduled interview between client and expert."""

    id: str
    project_id: str | None = None
    expert_id: str | None = None
    scheduled_at: datetime | None = None
    duration_minutes: int | None = None
    meeting_link: str | None = None
    notes: str | None = None
    status: str | None = None
