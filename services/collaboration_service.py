"""Per-project collaboration state kept in sync between REST and live events.

A CollaborationSession owns the in-memory mirror of one project's
messages, files, tasks, contracts and interviews, plus ephemeral typing
indicators. `start()` loads every category concurrently and subscribes
to the project room; `stop()` unsubscribes symmetrically. Actions apply
their effect locally first and reconcile with the server afterwards.

Reconciliation rules, shared by every category:
    create event  - ignored if the id is already present, else appended
    update event  - replaces by id, or appended if the create never arrived
    delete event  - removes by id, idempotent
Events carrying another project's id are ignored.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from enum import Enum
from functools import partial
from typing import Any

from pydantic import BaseModel, ConfigDict

from api.client import ApiError
from api.router import BackendApi
from auth.schemas import Session
from models.contract import Contract, select_active_contract
from models.events import ClientEvent, ServerEvent, parse_event
from models.file import FileVersion, ProjectFile
from models.interview import Interview
from models.message import Message, MessageSender
from models.presence import TypingIndicator
from models.task import Task, TaskStatus, normalize_task_status
from realtime.socket_client import SocketClient
from repos import entities_repo
from services.optimistic import new_temp_id, perform_optimistic
from services.typing_service import TypingTracker

logger = logging.getLogger(__name__)

CATEGORIES = ("messages", "files", "tasks", "contracts", "interviews")

# Project-level events are reconciled by the project store instead
SUBSCRIBED_EVENTS = tuple(
    kind
    for kind in ServerEvent
    if kind not in (ServerEvent.PROJECT_UPDATE, ServerEvent.PROJECT_INVITE)
)


class LoadState(str, Enum):
    """Load state of one data category. There is no error state: a failed
    load leaves the category loaded with whatever it already held."""

    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"


class CollaborationSnapshot(BaseModel):
    """Point-in-time copy of every synchronized category."""

    model_config = ConfigDict(frozen=True)

    messages: list[Message]
    files: list[ProjectFile]
    tasks: list[Task]
    contracts: list[Contract]
    interviews: list[Interview]


class CollaborationSession:
    """
    Live, reconciled view of one project workspace.

    Usage:
        collab = CollaborationSession(project_id, session, api, socket)
        await collab.start()
        await collab.send_message("Hello")
        ...
        await collab.stop()
    """

    def __init__(
        self,
        project_id: str,
        session: Session | None,
        api: BackendApi,
        socket: SocketClient,
        *,
        typing_ttl: float = 3.0,
    ):
        self.project_id = project_id
        self.session = session
        self.api = api
        self.socket = socket

        self._messages: list[Message] = []
        self._files: list[ProjectFile] = []
        self._tasks: list[Task] = []
        self._contracts: list[Contract] = []
        self._interviews: list[Interview] = []
        self._read_receipts: dict[str, frozenset[str]] = {}
        # Task ids whose DELETE is in flight; create/update events for them are skipped
        self._pending_deletes: set[str] = set()
        self.loading: dict[str, LoadState] = {category: LoadState.UNLOADED for category in CATEGORIES}
        self.typing = TypingTracker(session.id if session else None, ttl=typing_ttl)

        self._active = False
        # Bumped on every stop(); work started under an older generation is discarded
        self._generation = 0

        self._event_handlers: dict[ServerEvent, Callable[[Any], None]] = {
            ServerEvent.RECEIVE_MESSAGE: self._on_message,
            ServerEvent.TASK_CREATED: self._on_task_created,
            ServerEvent.TASK_UPDATED: self._on_task_updated,
            ServerEvent.TASK_DELETED: self._on_task_deleted,
            ServerEvent.FILE_UPLOADED: self._on_file_uploaded,
            ServerEvent.FILE_VERSION_ADDED: self._on_file_version_added,
            ServerEvent.CONTRACT_UPDATED: self._on_contract_updated,
            ServerEvent.INTERVIEW_SCHEDULED: self._on_interview_scheduled,
            ServerEvent.USER_TYPING: self._on_user_typing,
            ServerEvent.USER_STOPPED_TYPING: self._on_user_stopped_typing,
            ServerEvent.MESSAGE_READ_UPDATE: self._on_read_receipt,
        }
        missing = set(SUBSCRIBED_EVENTS) - set(self._event_handlers)
        if missing:
            raise RuntimeError(f"No handler for events: {sorted(kind.value for kind in missing)}")

        # Stable callables so off() removes exactly what on() registered
        self._listeners = {kind: partial(self._receive, kind) for kind in SUBSCRIBED_EVENTS}

    # ------------------------------------------------------------------
    # Read model
    # ------------------------------------------------------------------

    @property
    def active(self) -> bool:
        return self._active

    @property
    def messages(self) -> list[Message]:
        return self._messages

    @property
    def files(self) -> list[ProjectFile]:
        return self._files

    @property
    def tasks(self) -> list[Task]:
        return self._tasks

    @property
    def contracts(self) -> list[Contract]:
        return self._contracts

    @property
    def interviews(self) -> list[Interview]:
        return self._interviews

    @property
    def active_contract(self) -> Contract | None:
        return select_active_contract(self._contracts)

    @property
    def typing_users(self) -> list[TypingIndicator]:
        return self.typing.users

    @property
    def read_receipts(self) -> dict[str, frozenset[str]]:
        """Readers per message id."""
        return self._read_receipts

    def read_by(self, message_id: str) -> frozenset[str]:
        """IDs of users known to have read a message."""
        return self._read_receipts.get(message_id, frozenset())

    def tasks_by_status(self) -> dict[TaskStatus, list[Task]]:
        """Tasks grouped into kanban columns."""
        columns: dict[TaskStatus, list[Task]] = {status: [] for status in TaskStatus}
        for task in self._tasks:
            columns[task.status].append(task)
        return columns

    def snapshot(self) -> CollaborationSnapshot:
        return CollaborationSnapshot(
            messages=self._messages,
            files=self._files,
            tasks=self._tasks,
            contracts=self._contracts,
            interviews=self._interviews,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Subscribe to the project room and load every category."""
        if self._active:
            return
        self._active = True

        for kind, listener in self._listeners.items():
            self.socket.on(kind, listener)
        await self.socket.join_project(self.project_id)

        await self.refresh()

    async def stop(self) -> None:
        """Unsubscribe every handler and leave the project room."""
        if not self._active:
            return
        self._active = False
        self._generation += 1

        for kind, listener in self._listeners.items():
            self.socket.off(kind, listener)
        self.typing.clear()
        await self.socket.leave_project(self.project_id)

    async def switch_project(self, project_id: str) -> None:
        """Tear down the current project and start over on another one."""
        await self.stop()
        self.project_id = project_id
        self._messages, self._files, self._tasks = [], [], []
        self._contracts, self._interviews = [], []
        self._read_receipts = {}
        self.loading = {category: LoadState.UNLOADED for category in CATEGORIES}
        await self.start()

    async def refresh(self) -> None:
        """
        Fetch all categories concurrently.

        Each category is handled independently: one failing fetch is
        logged and leaves that category as it was, without blocking the
        others.
        """
        fetchers: dict[str, Callable[[str], Awaitable[list]]] = {
            "messages": self.api.messages.list_for_project,
            "files": self.api.files.list_for_project,
            "tasks": self.api.tasks.list_for_project,
            "contracts": self.api.contracts.list_for_project,
            "interviews": self.api.interviews.list_for_project,
        }
        generation = self._generation
        await asyncio.gather(
            *(self._load(category, fetch, generation) for category, fetch in fetchers.items())
        )

    async def _load(self, category: str, fetch: Callable[[str], Awaitable[list]], generation: int) -> None:
        self.loading[category] = LoadState.LOADING
        try:
            fetched = await fetch(self.project_id)
        except (ApiError, ValueError) as e:
            logger.warning("Failed to load %s for project %s: %s", category, self.project_id, e)
        else:
            if self._is_current(generation):
                attr = f"_{category}"
                setattr(self, attr, entities_repo.merge_snapshot(getattr(self, attr), fetched))
        finally:
            if self._is_current(generation):
                self.loading[category] = LoadState.LOADED

    def _is_current(self, generation: int) -> bool:
        return self._active and generation == self._generation

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

        if event.project_id is not None and event.project_id != self.project_id:
            logger.debug("Ignoring %s for project %s", kind.value, event.project_id)
            return

        self._event_handlers[kind](event.payload)

    def _on_message(self, message: Message) -> None:
        self._messages = entities_repo.create(self._messages, message)

    def _on_task_created(self, task: Task) -> None:
        if task.id in self._pending_deletes:
            return
        self._tasks = entities_repo.create(self._tasks, task)

    def _on_task_updated(self, task: Task) -> None:
        if task.id in self._pending_deletes:
            return
        self._tasks = entities_repo.upsert(self._tasks, task)

    def _on_task_deleted(self, payload) -> None:
        self._tasks = entities_repo.delete(self._tasks, entity_id=payload.id)

    def _on_file_uploaded(self, file: ProjectFile) -> None:
        self._files = entities_repo.create(self._files, file)

    def _on_file_version_added(self, version: FileVersion) -> None:
        self._apply_file_version(version)

    def _on_contract_updated(self, contract: Contract) -> None:
        self._contracts = entities_repo.upsert(self._contracts, contract)

    def _on_interview_scheduled(self, interview: Interview) -> None:
        self._interviews = entities_repo.create(self._interviews, interview)

    def _on_user_typing(self, payload) -> None:
        self.typing.add(payload.user_id, payload.user_name)

    def _on_user_stopped_typing(self, payload) -> None:
        self.typing.remove(payload.user_id)

    def _on_read_receipt(self, receipt) -> None:
        self._record_read(receipt.message_id, receipt.user_id)

    def _apply_file_version(self, version: FileVersion) -> None:
        file = entities_repo.get_by_id(self._files, entity_id=version.file_id)
        if file is None:
            logger.debug("Version %s for unknown file %s ignored", version.id, version.file_id)
            return

        versions = entities_repo.create(file.versions, version)
        if versions is file.versions:
            return
        updates: dict[str, Any] = {"versions": versions}
        if version.created_at is not None:
            updates["updated_at"] = version.created_at
        if version.size is not None:
            updates["size"] = version.size
        self._files = entities_repo.update_by_id(self._files, entity_id=file.id, updates=updates)

    def _record_read(self, message_id: str, user_id: str) -> None:
        readers = self._read_receipts.get(message_id, frozenset())
        self._read_receipts = {**self._read_receipts, message_id: readers | {user_id}}

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _guarded(self, fn: Callable[..., None]) -> Callable[..., None]:
        """Wrap a state update so it is dropped once this session is stopped."""
        generation = self._generation

        def _run(*args) -> None:
            if self._is_current(generation):
                fn(*args)

        return _run

    async def send_message(self, content: str) -> Message:
        """
        Send a chat message, showing it immediately.

        Raises:
            ApiError: If the server rejects the message; the provisional
                entry has been removed by then
        """
        def apply() -> str:
            temp_id = new_temp_id()
            sender = MessageSender(
                id=self.session.id if self.session else None,
                name=(self.session.name if self.session else None) or "You",
                avatar_url=self.session.avatar_url if self.session else None,
            )
            provisional = Message(
                id=temp_id,
                project_id=self.project_id,
                sender_id=sender.id,
                sender=sender,
                content=content,
                created_at=datetime.now(timezone.utc),
                is_optimistic=True,
            )
            self._messages = entities_repo.create(self._messages, provisional)
            return temp_id

        def reconcile(temp_id: str, message: Message) -> None:
            self._messages = entities_repo.replace_id(self._messages, temp_id=temp_id, entity=message)

        def rollback(temp_id: str) -> None:
            self._messages = entities_repo.delete(self._messages, entity_id=temp_id)

        return await perform_optimistic(
            apply=apply,
            remote=lambda: self.api.messages.send(self.project_id, content),
            reconcile=self._guarded(reconcile),
            rollback=self._guarded(rollback),
        )

    async def create_task(self, data: dict[str, Any]) -> Task:
        """Create a task, showing it immediately under a temporary id."""
        payload = dict(data)
        if "status" in payload:
            payload["status"] = normalize_task_status(payload["status"]).value

        def apply() -> str:
            temp_id = new_temp_id()
            provisional = Task.model_validate(
                {
                    **payload,
                    "id": temp_id,
                    "project_id": self.project_id,
                    "created_by": self.session.id if self.session else None,
                    "is_optimistic": True,
                }
            )
            self._tasks = entities_repo.create(self._tasks, provisional)
            return temp_id

        def reconcile(temp_id: str, task: Task) -> None:
            self._tasks = entities_repo.replace_id(self._tasks, temp_id=temp_id, entity=task)

        def rollback(temp_id: str) -> None:
            self._tasks = entities_repo.delete(self._tasks, entity_id=temp_id)

        return await perform_optimistic(
            apply=apply,
            remote=lambda: self.api.tasks.create(self.project_id, payload),
            reconcile=self._guarded(reconcile),
            rollback=self._guarded(rollback),
        )

    async def upload_file(
        self,
        name: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> ProjectFile:
        """Upload a file, listing it immediately under a temporary id."""
        def apply() -> str:
            temp_id = new_temp_id()
            provisional = ProjectFile(
                id=temp_id,
                project_id=self.project_id,
                name=name,
                size=len(content),
                type=content_type,
                uploaded_by=self.session.id if self.session else None,
                created_at=datetime.now(timezone.utc),
                is_optimistic=True,
            )
            self._files = entities_repo.create(self._files, provisional)
            return temp_id

        def reconcile(temp_id: str, file: ProjectFile) -> None:
            self._files = entities_repo.replace_id(self._files, temp_id=temp_id, entity=file)

        def rollback(temp_id: str) -> None:
            self._files = entities_repo.delete(self._files, entity_id=temp_id)

        return await perform_optimistic(
            apply=apply,
            remote=lambda: self.api.files.upload(
                self.project_id, name=name, content=content, content_type=content_type
            ),
            reconcile=self._guarded(reconcile),
            rollback=self._guarded(rollback),
        )

    async def update_task_status(self, task_id: str, status: TaskStatus | str) -> Task:
        """
        Move a task to another status.

        On failure the whole task list is restored to its state before the
        move, and the error propagates.
        """
        status = normalize_task_status(status)
        return await self._mutate_task(task_id, {"status": status}, {"status": status.value})

    async def update_task(self, task_id: str, updates: dict[str, Any]) -> Task:
        """Edit task fields with the same rollback guarantee as status moves."""
        payload = dict(updates)
        if "status" in payload:
            payload["status"] = normalize_task_status(payload["status"]).value
        return await self._mutate_task(task_id, payload, payload)

    async def _mutate_task(self, task_id: str, local: dict[str, Any], payload: dict[str, Any]) -> Task:
        if entities_repo.get_by_id(self._tasks, entity_id=task_id) is None:
            raise ValueError(f"Unknown task: {task_id}")

        def apply() -> list[Task]:
            before = self._tasks
            self._tasks = entities_repo.update_by_id(self._tasks, entity_id=task_id, updates=local)
            return before

        def reconcile(before: list[Task], task: Task) -> None:
            self._tasks = entities_repo.upsert(self._tasks, task)

        def rollback(before: list[Task]) -> None:
            self._tasks = before

        return await perform_optimistic(
            apply=apply,
            remote=lambda: self.api.tasks.update(task_id, payload),
            reconcile=self._guarded(reconcile),
            rollback=self._guarded(rollback),
        )

    async def delete_task(self, task_id: str) -> None:
        """Remove a task immediately; restored if the server refuses."""
        def apply() -> list[Task]:
            before = self._tasks
            self._tasks = entities_repo.delete(self._tasks, entity_id=task_id)
            return before

        def rollback(before: list[Task]) -> None:
            self._tasks = before

        self._pending_deletes.add(task_id)
        try:
            await perform_optimistic(
                apply=apply,
                remote=lambda: self.api.tasks.delete(task_id),
                reconcile=lambda before, result: None,
                rollback=self._guarded(rollback),
            )
        finally:
            self._pending_deletes.discard(task_id)

    async def sign_contract(self, contract_id: str, metadata: dict[str, Any] | None = None) -> Contract:
        """Sign a contract, showing it as signed immediately."""
        if entities_repo.get_by_id(self._contracts, entity_id=contract_id) is None:
            raise ValueError(f"Unknown contract: {contract_id}")

        def apply() -> list[Contract]:
            before = self._contracts
            self._contracts = entities_repo.update_by_id(
                self._contracts, entity_id=contract_id, updates={"status": "signed"}
            )
            return before

        def reconcile(before: list[Contract], contract: Contract) -> None:
            self._contracts = entities_repo.upsert(self._contracts, contract)

        def rollback(before: list[Contract]) -> None:
            self._contracts = before

        return await perform_optimistic(
            apply=apply,
            remote=lambda: self.api.contracts.sign(contract_id, metadata),
            reconcile=self._guarded(reconcile),
            rollback=self._guarded(rollback),
        )

    async def create_contract(self, data: dict[str, Any]) -> Contract:
        generation = self._generation
        contract = await self.api.contracts.create({**data, "projectId": self.project_id})
        if self._is_current(generation):
            self._contracts = entities_repo.create(self._contracts, contract)
        return contract

    async def schedule_interview(self, data: dict[str, Any]) -> Interview:
        generation = self._generation
        interview = await self.api.interviews.schedule({**data, "projectId": self.project_id})
        if self._is_current(generation):
            self._interviews = entities_repo.create(self._interviews, interview)
        return interview

    async def add_file_version(self, file_id: str, data: dict[str, Any]) -> FileVersion:
        generation = self._generation
        version = await self.api.files.add_version(file_id, data)
        if self._is_current(generation):
            self._apply_file_version(version)
        return version

    async def mark_message_read(self, message_id: str) -> None:
        """
        Record a read receipt locally, persist it, then tell the room.

        Raises:
            ApiError: If the server refuses; the local receipt is undone and
                nothing is sent to the room
        """
        user_id = self.session.id if self.session else None
        if user_id is None:
            return

        def apply() -> dict[str, frozenset[str]]:
            before = self._read_receipts
            self._record_read(message_id, user_id)
            return before

        def rollback(before: dict[str, frozenset[str]]) -> None:
            self._read_receipts = before

        await perform_optimistic(
            apply=apply,
            remote=lambda: self.api.messages.mark_read(message_id),
            reconcile=lambda before, result: None,
            rollback=self._guarded(rollback),
        )
        await self.socket.emit(
            ClientEvent.MESSAGE_READ,
            {"messageId": message_id, "roomId": self.project_id, "userId": user_id},
        )

    async def notify_typing(self) -> None:
        if self.session is None:
            return
        await self.socket.emit(
            ClientEvent.TYPING_START,
            {"roomId": self.project_id, "userId": self.session.id, "userName": self.session.name},
        )

    async def stop_typing(self) -> None:
        if self.session is None:
            return
        await self.socket.emit(
            ClientEvent.TYPING_STOP,
            {"roomId": self.project_id, "userId": self.session.id},
        )
