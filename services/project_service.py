"""App-wide project list and the current-project mirror."""

import asyncio
import logging
from datetime import datetime, timezone
from functools import partial
from typing import Any
from uuid import uuid4

from api.client import ApiError
from api.router import BackendApi
from auth.schemas import Session
from models.activity import Activity
from models.events import ServerEvent, parse_event
from models.message import Message
from models.project import CORE_PROJECT_FIELDS, Project, ProjectCreate, ProjectPatch
from models.task import Task
from realtime.socket_client import SocketClient
from repos import entities_repo

logger = logging.getLogger(__name__)

# Events reconciled at list level
STORE_EVENTS = (
    ServerEvent.RECEIVE_MESSAGE,
    ServerEvent.PROJECT_UPDATE,
    ServerEvent.PROJECT_INVITE,
    ServerEvent.TASK_CREATED,
    ServerEvent.TASK_UPDATED,
    ServerEvent.TASK_DELETED,
)

# Collections attached locally; never part of a server project payload
COLLECTION_FIELDS = frozenset({"tasks", "messages", "files", "activities"})


def _carried_fields(project: Project) -> dict[str, Any]:
    """Fields actually present in a server payload, minus local collections."""
    carried = project.model_fields_set | set(project.model_extra or {})
    return {
        key: value
        for key, value in project.model_dump().items()
        if key in carried and key not in COLLECTION_FIELDS and key != "id"
    }


class ProjectStore:
    """
    The user's project list plus the designated current project.

    Every change goes through `_commit`, which writes the list element and,
    when it is the current project, the standalone mirror, so the two
    never disagree.
    """

    def __init__(self, session: Session | None, api: BackendApi, socket: SocketClient):
        self.session = session
        self.api = api
        self.socket = socket

        self._projects: list[Project] = []
        self._current: Project | None = None
        self.loading = False
        self._active = False

        self._event_handlers = {
            ServerEvent.RECEIVE_MESSAGE: self._on_message,
            ServerEvent.PROJECT_UPDATE: self._on_project_update,
            ServerEvent.PROJECT_INVITE: self._on_project_invite,
            ServerEvent.TASK_CREATED: self._on_task_created,
            ServerEvent.TASK_UPDATED: self._on_task_updated,
            ServerEvent.TASK_DELETED: self._on_task_deleted,
        }
        missing = set(STORE_EVENTS) - set(self._event_handlers)
        if missing:
            raise RuntimeError(f"No handler for events: {sorted(kind.value for kind in missing)}")
        self._listeners = {kind: partial(self._receive, kind) for kind in STORE_EVENTS}

    @property
    def projects(self) -> list[Project]:
        return self._projects

    @property
    def current_project(self) -> Project | None:
        return self._current

    def get(self, project_id: str) -> Project | None:
        return entities_repo.get_by_id(self._projects, entity_id=project_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Subscribe to list-level events, join the user room and load projects."""
        if self._active:
            return
        self._active = True
        for kind, listener in self._listeners.items():
            self.socket.on(kind, listener)
        if self.session is not None:
            await self.socket.join_user(self.session.id)
        await self.load_projects()

    async def stop(self) -> None:
        if not self._active:
            return
        self._active = False
        for kind, listener in self._listeners.items():
            self.socket.off(kind, listener)
        if self._current is not None:
            await self.socket.leave_project(self._current.id)

    # ------------------------------------------------------------------
    # Commit path
    # ------------------------------------------------------------------

    def _commit(self, project: Project) -> None:
        if self.get(project.id) is not None:
            self._projects = entities_repo.upsert(self._projects, project)
        if self._current is not None and self._current.id == project.id:
            self._current = project

    def _require(self, project_id: str) -> Project:
        project = self.get(project_id)
        if project is None:
            raise ValueError(f"Unknown project: {project_id}")
        return project

    def _apply(self, project_id: str, updates: dict[str, Any]) -> Project | None:
        """Merge field updates into a known project; None if it is not known."""
        project = self.get(project_id)
        if project is None:
            return None
        merged = entities_repo.merge_fields(project, updates)
        self._commit(merged)
        return merged

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_projects(self) -> list[Project]:
        """
        Fetch the project list for the session's role.

        Clients see their own projects, everyone else the general list.
        Failures are logged and leave the list as it was.
        """
        self.loading = True
        try:
            if self.session is None:
                fetched: list[Project] = []
            elif self.session.is_client:
                fetched = await self.api.projects.list_for_client(self.session.id)
            else:
                fetched = await self.api.projects.list_all()
        except (ApiError, ValueError) as e:
            logger.error("Error loading projects: %s", e)
            return self._projects
        finally:
            self.loading = False

        if self._current is not None:
            fresh = entities_repo.get_by_id(fetched, entity_id=self._current.id)
            if fresh is None:
                logger.info("Current project %s is no longer listed", self._current.id)
                await self.socket.leave_project(self._current.id)
                self._current = None
            else:
                # Keep the collections already loaded for the current project
                self._current = entities_repo.merge_fields(self._current, _carried_fields(fresh))
                fetched = entities_repo.upsert(fetched, self._current)

        self._projects = fetched
        logger.info("Loaded %d projects", len(fetched))
        return self._projects

    async def load_project_details(self, project_id: str) -> Project | None:
        """
        Attach tasks, files and messages to a listed project.

        Entities that arrived through live events while the fetch was in
        flight are kept. Failures are logged and change nothing.
        """
        self._require(project_id)
        try:
            tasks, files, messages = await asyncio.gather(
                self.api.tasks.list_for_project(project_id),
                self.api.files.list_for_project(project_id),
                self.api.messages.list_for_project(project_id),
            )
        except (ApiError, ValueError) as e:
            logger.error("Error loading details for project %s: %s", project_id, e)
            return None

        project = self.get(project_id)
        if project is None:
            return None
        return self._apply(
            project_id,
            {
                "tasks": entities_repo.merge_snapshot(project.tasks, tasks),
                "files": entities_repo.merge_snapshot(project.files, files),
                "messages": entities_repo.merge_snapshot(project.messages, messages),
            },
        )

    async def set_active_project(self, project_id: str) -> Project:
        """Make a listed project current, join its room and load its details."""
        project = self._require(project_id)
        previous = self._current
        self._current = project
        if previous is None or previous.id != project_id:
            await self.socket.join_project(project_id)
            if previous is not None:
                await self.socket.leave_project(previous.id)

        await self.load_project_details(project_id)
        return self._current

    # ------------------------------------------------------------------
    # Project mutations
    # ------------------------------------------------------------------

    async def create_project(self, data: ProjectCreate | dict[str, Any]) -> Project:
        """Create a draft project and make it current."""
        if isinstance(data, ProjectCreate):
            data = data.model_dump(exclude_none=True)
        project = await self.api.projects.create({**data, "status": "draft"})

        self._projects = entities_repo.prepend(self._projects, project)
        previous = self._current
        self._current = self.get(project.id)
        await self.socket.join_project(project.id)
        if previous is not None and previous.id != project.id:
            await self.socket.leave_project(previous.id)
        logger.info("Created project %s", project.id)
        return self._current

    async def update_project(self, project_id: str, updates: dict[str, Any]) -> Project:
        """
        Update a project.

        If any core field (title, description, budget, status) is present
        the update is persisted and the server's version is merged in;
        otherwise it is a local-only change and nothing is sent.
        """
        self._require(project_id)
        if CORE_PROJECT_FIELDS.isdisjoint(updates):
            return self._apply(project_id, updates)

        updated = await self.api.projects.update(project_id, updates)
        return self._apply(project_id, _carried_fields(updated))

    async def invite_expert(self, project_id: str, expert_id: str) -> Project:
        self._require(project_id)
        updated = await self.api.projects.invite(project_id, expert_id)
        return self._apply(project_id, _carried_fields(updated))

    async def respond_to_invite(self, project_id: str, status: str) -> Project:
        """Accept or reject an invitation as the invited expert."""
        self._require(project_id)
        updated = await self.api.projects.respond(project_id, status)
        return self._apply(project_id, _carried_fields(updated))

    # ------------------------------------------------------------------
    # Workspace collections
    # ------------------------------------------------------------------

    async def add_project_file(
        self,
        project_id: str,
        *,
        name: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> Project:
        self._require(project_id)
        uploaded = await self.api.files.upload_data(
            project_id, name=name, content=content, content_type=content_type
        )
        project = self.get(project_id)
        self._apply(project_id, {"files": entities_repo.create(project.files, uploaded)})
        return self.add_activity(
            project_id,
            user=uploaded.uploaded_by or "You",
            action="uploaded",
            target=uploaded.name,
        )

    async def remove_project_file(self, project_id: str, file_id: str) -> Project:
        self._require(project_id)
        await self.api.files.delete(file_id)
        project = self.get(project_id)
        return self._apply(project_id, {"files": entities_repo.delete(project.files, entity_id=file_id)})

    async def add_message(self, project_id: str, content: str) -> Message:
        self._require(project_id)
        sent = await self.api.messages.send(project_id, content)
        project = self.get(project_id)
        if project is not None:
            self._apply(project_id, {"messages": entities_repo.create(project.messages, sent)})
        return sent

    async def add_task(self, project_id: str, data: dict[str, Any]) -> Task:
        self._require(project_id)
        task = await self.api.tasks.create(project_id, data)
        project = self.get(project_id)
        if project is not None:
            self._apply(project_id, {"tasks": entities_repo.prepend(project.tasks, task)})
            self.add_activity(
                project_id,
                user=(self.session.name or self.session.id) if self.session else None,
                action="created task",
                target=task.title,
            )
        return task

    async def update_task(self, project_id: str, task_id: str, updates: dict[str, Any]) -> Task:
        self._require(project_id)
        task = await self.api.tasks.update(task_id, updates)
        project = self.get(project_id)
        if project is not None:
            self._apply(project_id, {"tasks": entities_repo.upsert(project.tasks, task)})
        return task

    def add_activity(
        self,
        project_id: str,
        *,
        user: str | None,
        action: str,
        target: str | None = None,
    ) -> Project:
        """Append a local-only activity entry; there is no backend resource for these."""
        project = self._require(project_id)
        activity = Activity(
            id=f"activity_{uuid4().hex}",
            user=user,
            action=action,
            target=target,
            timestamp=datetime.now(timezone.utc),
        )
        return self._apply(project_id, {"activities": [*project.activities, activity]})

    # ------------------------------------------------------------------
    # Live events
    # ------------------------------------------------------------------

    def _receive(self, kind: ServerEvent, raw: Any) -> None:
        if not self._active:
            return
        try:
            event = parse_event(kind, raw)
        except ValueError as e:
            logger.warning("Dropping malformed %s event: %s", kind.value, e)
            return
        self._event_handlers[kind](event.payload)

    def _on_message(self, message: Message) -> None:
        project = self.get(message.project_id) if message.project_id else None
        if project is None:
            return
        self._apply(project.id, {"messages": entities_repo.create(project.messages, message)})

    def _on_project_update(self, patch: ProjectPatch) -> None:
        if self._apply(patch.id, patch.changes()) is None:
            logger.debug("Update for unlisted project %s ignored", patch.id)

    def _on_project_invite(self, project: Project) -> None:
        logger.info("Invited to project %s", project.id)
        if self.get(project.id) is not None:
            self._apply(project.id, _carried_fields(project))
            return
        self._projects = entities_repo.prepend(self._projects, project)

    def _on_task_created(self, task: Task) -> None:
        project = self.get(task.project_id) if task.project_id else None
        if project is None:
            return
        self._apply(project.id, {"tasks": entities_repo.prepend(project.tasks, task)})

    def _on_task_updated(self, task: Task) -> None:
        project = self.get(task.project_id) if task.project_id else None
        if project is None:
            return
        self._apply(project.id, {"tasks": entities_repo.upsert(project.tasks, task)})

    def _on_task_deleted(self, payload) -> None:
        # The server usually sends only the task id
        for project in list(self._projects):
            if payload.project_id and project.id != payload.project_id:
                continue
            if entities_repo.get_by_id(project.tasks, entity_id=payload.id) is not None:
                self._apply(project.id, {"tasks": entities_repo.delete(project.tasks, entity_id=payload.id)})
