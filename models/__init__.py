"""Workspace entity models."""

from models.activity import Activity
from models.contract import Contract, select_active_contract
from models.events import ClientEvent, RealtimeEvent, ServerEvent, parse_event
from models.file import FileVersion, ProjectFile
from models.interview import Interview
from models.message import Message, MessageSender
from models.presence import TypingIndicator
from models.project import CORE_PROJECT_FIELDS, ExpertStatus, Project, ProjectCreate, ProjectPatch
from models.task import Task, TaskStatus, normalize_task_status

__all__ = [
    "Activity",
    "Contract",
    "select_active_contract",
    "ClientEvent",
    "RealtimeEvent",
    "ServerEvent",
    "parse_event",
    "FileVersion",
    "ProjectFile",
    "Interview",
    "Message",
    "MessageSender",
    "TypingIndicator",
    "CORE_PROJECT_FIELDS",
    "ExpertStatus",
    "Project",
    "ProjectCreate",
    "ProjectPatch",
    "Task",
    "TaskStatus",
    "normalize_task_status",
]
