"""Real-time channel events and their typed payloads."""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel

from models.base import EntityModel
from models.contract import Contract
from models.file import FileVersion, ProjectFile
from models.interview import Interview
from models.message import Message
from models.project import Project, ProjectPatch
from models.task import Task


class ServerEvent(str, Enum):
    """Events consumed from the server."""

    RECEIVE_MESSAGE = "receive_message"
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_DELETED = "task_deleted"
    FILE_UPLOADED = "file_uploaded"
    FILE_VERSION_ADDED = "file_version_added"
    CONTRACT_UPDATED = "contract_updated"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    PROJECT_UPDATE = "project_update"
    PROJECT_INVITE = "project_invite"
    USER_TYPING = "user_typing"
    USER_STOPPED_TYPING = "user_stopped_typing"
    MESSAGE_READ_UPDATE = "message_read_update"


class ClientEvent(str, Enum):
    """Events emitted to the server."""

    JOIN_PROJECT = "join_project"
    LEAVE_PROJECT = "leave_project"
    JOIN_USER = "join_user"
    TYPING_START = "typing_start"
    TYPING_STOP = "typing_stop"
    MESSAGE_READ = "message_read"


class TaskDeleted(EntityModel):
    """Payload of `task_deleted`; the server sends only the id."""

    id: str
    project_id: str | None = None


class TypingPayload(EntityModel):
    """Payload of `user_typing`."""

    user_id: str
    user_name: str | None = None
    project_id: str | None = None


class StoppedTypingPayload(EntityModel):
    """Payload of `user_stopped_typing`."""

    user_id: str
    project_id: str | None = None


class ReadReceipt(EntityModel):
    """Payload of `message_read_update`."""

    message_id: str
    user_id: str
    project_id: str | None = None


PAYLOAD_MODELS: dict[ServerEvent, type[BaseModel]] = {
    ServerEvent.RECEIVE_MESSAGE: Message,
    ServerEvent.TASK_CREATED: Task,
    ServerEvent.TASK_UPDATED: Task,
    ServerEvent.TASK_DELETED: TaskDeleted,
    ServerEvent.FILE_UPLOADED: ProjectFile,
    ServerEvent.FILE_VERSION_ADDED: FileVersion,
    ServerEvent.CONTRACT_UPDATED: Contract,
    ServerEvent.INTERVIEW_SCHEDULED: Interview,
    ServerEvent.PROJECT_UPDATE: ProjectPatch,
    ServerEvent.PROJECT_INVITE: Project,
    ServerEvent.USER_TYPING: TypingPayload,
    ServerEvent.USER_STOPPED_TYPING: StoppedTypingPayload,
    ServerEvent.MESSAGE_READ_UPDATE: ReadReceipt,
}

# Events whose payload *is* the project, so the project id is the payload id
_PROJECT_PAYLOADS = frozenset({ServerEvent.PROJECT_UPDATE, ServerEvent.PROJECT_INVITE})


@dataclass(frozen=True)
class RealtimeEvent:
    """A decoded server event."""

    kind: ServerEvent
    payload: BaseModel

    @property
    def project_id(self) -> str | None:
        """Project the event belongs to, or None when the payload carries none."""
        if self.kind in _PROJECT_PAYLOADS:
            return self.payload.id
        return getattr(self.payload, "project_id", None)


def parse_event(kind: ServerEvent | str, raw: dict) -> RealtimeEvent:
    """
    Decode a raw event payload into its typed model.

    Args:
        kind: Event name or ServerEvent
        raw: JSON payload as received from the channel

    Returns:
        RealtimeEvent with a typed payload

    Raises:
        ValueError: If the event name is unknown
        pydantic.ValidationError: If the payload does not match the event
    """
    kind = ServerEvent(kind)
    model = PAYLOAD_MODELS[kind]
    return RealtimeEvent(kind=kind, payload=model.model_validate(raw))
