"""Workspace wiring and main entry point."""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

import httpx
import socketio

import config
import logging_config
from api.client import ApiClient
from api.router import BackendApi
from auth.schemas import Session
from auth.session import FileSessionStore, SessionStore
from realtime.socket_client import SocketClient
from services.collaboration_service import CollaborationSession
from services.project_service import ProjectStore

logger = logging.getLogger(__name__)


class Workspace:
    """Everything a signed-in user needs to work on their projects."""

    def __init__(
        self,
        session: Session | None,
        api: BackendApi,
        socket: SocketClient,
        store: ProjectStore,
        typing_ttl: float = 3.0,
    ):
        self.session = session
        self.api = api
        self.socket = socket
        self.store = store
        self.typing_ttl = typing_ttl
        self.sessions: dict[str, CollaborationSession] = {}

    async def open_project(self, project_id: str) -> CollaborationSession:
        """Return the started collaboration session for a project, creating it once."""
        collab = self.sessions.get(project_id)
        if collab is not None:
            return collab

        collab = CollaborationSession(
            project_id,
            self.session,
            self.api,
            self.socket,
            typing_ttl=self.typing_ttl,
        )
        self.sessions[project_id] = collab
        await collab.start()
        return collab

    async def close_project(self, project_id: str) -> None:
        collab = self.sessions.pop(project_id, None)
        if collab is not None:
            await collab.stop()

    async def close(self) -> None:
        for project_id in list(self.sessions):
            await self.close_project(project_id)


@asynccontextmanager
async def workspace(
    *,
    session_store: SessionStore | None = None,
    settings: config.Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    socket_factory: Callable[..., socketio.AsyncClient] | None = None,
) -> AsyncIterator[Workspace]:
    """
    Open a workspace for the persisted session.

    Startup connects the real-time channel (best effort), then loads the
    project list. Shutdown stops open collaboration sessions and the
    project store, disconnects the channel and closes the HTTP client.
    """
    settings = settings or config.settings
    logging_config.setup_logging(settings.LOG_LEVEL)

    session_store = session_store or FileSessionStore(settings.SESSION_FILE)
    session = session_store.load()

    def token_provider() -> str | None:
        current = session_store.load()
        return current.token if current else None

    api = BackendApi(
        ApiClient(
            settings.API_URL,
            session_store=session_store,
            timeout=settings.REQUEST_TIMEOUT,
            transport=transport,
        )
    )
    socket = SocketClient(
        settings.socket_url,
        token_provider=token_provider,
        reconnection_attempts=settings.RECONNECTION_ATTEMPTS,
        reconnection_delay=settings.RECONNECTION_DELAY,
        connect_timeout=settings.CONNECT_TIMEOUT,
        client_factory=socket_factory,
    )
    store = ProjectStore(session, api, socket)
    ws = Workspace(session, api, socket, store, typing_ttl=settings.TYPING_INDICATOR_TTL)

    # Startup
    await socket.connect()
    await store.start()
    logger.info("Workspace ready for user %s", session.id if session else "anonymous")
    try:
        yield ws
    finally:
        # Shutdown
        await ws.close()
        await store.stop()
        await socket.disconnect()
        await api.aclose()
