"""Project model - a client engagement and its workspace collections."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from models.activity import Activity
from models.base import EntityModel
from models.file import ProjectFile
from models.message import Message
from models.task import Task

# Fields persisted through the REST API; any other field is local-only state
CORE_PROJECT_FIELDS = frozenset({"title", "description", "budget", "status"})


class ExpertStatus(str, Enum):
    """Invitation state of the selected expert."""

    NONE = "none"
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Project(EntityModel):
    """Project as held in the client's project list."""

    id: str
    title: str = ""
    description: str | None = None
    budget: float | None = None
    status: str = "draft"
    client_id: str | None = None
    selected_expert_id: str | None = None
    # Kept as a plain string: the backend may introduce new states
    expert_status: str = ExpertStatus.NONE.value
    created_at: datetime | None = None
    updated_at: datetime | None = None

    # Workspace collections attached by the project store
    tasks: list[Task] = Field(default_factory=list)
    messages: list[Message] = Field(default_factory=list)
    files: list[ProjectFile] = Field(default_factory=list)
    activities: list[Activity] = Field(default_factory=list)


class ProjectCreate(BaseModel):
    """Schema for creating a project.

    Note: status is always sent as "draft" by the project store.
    """

    title: str
    description: str | None = None
    budget: float | None = None


class ProjectPatch(EntityModel):
    """Partial project payload carried by `project_update` events."""

    id: str

    def changes(self) -> dict:
        """Return every field carried by the patch except the id."""
        return self.model_dump(exclude={"id"})
