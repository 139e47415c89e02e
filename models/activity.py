"""Activity model - local-only project feed entry."""

from datetime import datetime

from models.base import EntityModel


class Activity(EntityModel):
    """A project activity entry. There is no backend resource for these."""

    id: str
    user: str | None = None
    action: str
    target: str | None = None
    timestamp: datetime | None = None
