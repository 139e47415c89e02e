"""Socket.IO transport for live workspace updates.

Wraps a single python-socketio AsyncClient per process. Every operation
is safe to call when real-time is unconfigured or unavailable: callers
treat "no live updates" as a normal steady state and keep working over
REST.
"""

import inspect
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

import socketio

from models.events import ClientEvent

logger = logging.getLogger(__name__)

# Lifecycle events bound on every underlying client
LIFECYCLE_EVENTS = ("connect", "disconnect", "connect_error")

Handler = Callable[..., Any]


def _event_name(event: str | Enum) -> str:
    return event.value if isinstance(event, Enum) else event


class SocketClient:
    """
    Transport client with at most one live connection.

    Usage:
        socket = SocketClient("http://localhost:5000", token_provider=lambda: token)
        await socket.connect()
        socket.on("task_created", handle_task)
        await socket.join_project(project_id)
        ...
        socket.off("task_created", handle_task)
        await socket.disconnect()
    """

    def __init__(
        self,
        url: str | None,
        *,
        token_provider: Callable[[], str | None] | None = None,
        reconnection_attempts: int = 5,
        reconnection_delay: float = 2.0,
        connect_timeout: float = 5.0,
        client_factory: Callable[..., socketio.AsyncClient] | None = None,
    ):
        self.url = url
        self._token_provider = token_provider
        self.reconnection_attempts = reconnection_attempts
        self.reconnection_delay = reconnection_delay
        self.connect_timeout = connect_timeout
        self._client_factory = client_factory or socketio.AsyncClient
        self._sio: socketio.AsyncClient | None = None
        self._handlers: dict[str, list[Handler]] = {}
        self._bound: set[str] = set()
        self._rooms: dict[str, int] = {}
        self._user_id: str | None = None

    @property
    def enabled(self) -> bool:
        """Whether a real-time endpoint is configured at all."""
        return bool(self.url)

    @property
    def connected(self) -> bool:
        return self._sio is not None and self._sio.connected

    async def connect(self) -> socketio.AsyncClient | None:
        """
        Open the connection, or return the existing one.

        Returns:
            The underlying client, or None when real-time is unconfigured
            or the server could not be reached. Never raises.
        """
        if not self.enabled:
            logger.info("Real-time endpoint not configured; live updates disabled")
            return None
        if self._sio is not None:
            return self._sio

        sio = self._client_factory(
            reconnection=True,
            reconnection_attempts=self.reconnection_attempts,
            reconnection_delay=self.reconnection_delay,
            reconnection_delay_max=self.reconnection_delay,
            randomization_factor=0,
            logger=False,
            engineio_logger=False,
        )
        self._sio = sio
        self._bound = set()
        for event in (*LIFECYCLE_EVENTS, *self._handlers):
            self._bind(event)

        token = self._token_provider() if self._token_provider else None
        try:
            await sio.connect(
                self.url,
                auth={"token": token} if token else None,
                wait_timeout=self.connect_timeout,
            )
        except Exception as e:
            logger.warning(
                "Real-time channel unavailable at %s (%s); continuing with REST only",
                self.url,
                e,
            )
            if self._sio is sio:
                self._sio = None
                self._bound = set()
            return None

        return sio

    async def disconnect(self) -> None:
        """Release the connection; a later connect() opens a fresh one."""
        sio, self._sio = self._sio, None
        self._bound = set()
        if sio is None:
            return
        try:
            await sio.disconnect()
        except Exception as e:
            logger.warning("Error while disconnecting real-time channel: %s", e)

    async def emit(self, event: str | Enum, payload: Any = None) -> None:
        """Send an event; dropped with a debug log when not connected."""
        name = _event_name(event)
        if not self.connected:
            logger.debug("Not connected; dropping emit of %s", name)
            return
        try:
            await self._sio.emit(name, payload)
        except Exception as e:
            logger.warning("Failed to emit %s: %s", name, e)

    def on(self, event: str | Enum, handler: Handler) -> None:
        """Register a handler. Plain functions and coroutines are both accepted."""
        name = _event_name(event)
        handlers = self._handlers.setdefault(name, [])
        if handler not in handlers:
            handlers.append(handler)
        self._bind(name)

    def off(self, event: str | Enum, handler: Handler | None = None) -> None:
        """Remove one handler, or every handler for the event when none is given."""
        name = _event_name(event)
        if handler is None:
            self._handlers.pop(name, None)
            return
        handlers = self._handlers.get(name, [])
        if handler in handlers:
            handlers.remove(handler)
        if not handlers:
            self._handlers.pop(name, None)

    def handler_count(self, event: str | Enum) -> int:
        return len(self._handlers.get(_event_name(event), ()))

    @property
    def rooms(self) -> set[str]:
        """Project rooms currently requested by at least one subscriber."""
        return set(self._rooms)

    async def join_project(self, project_id: str) -> None:
        """
        Request membership of a project room.

        Rooms are reference counted: the join is sent on the first request
        only, and the room is re-joined automatically after every
        (re)connect, so joining while offline is fine.
        """
        count = self._rooms.get(project_id, 0)
        self._rooms[project_id] = count + 1
        if count == 0:
            await self.emit(ClientEvent.JOIN_PROJECT, project_id)

    async def leave_project(self, project_id: str) -> None:
        """Release one membership request; the room is left on the last one."""
        count = self._rooms.get(project_id, 0)
        if count > 1:
            self._rooms[project_id] = count - 1
            return
        if self._rooms.pop(project_id, None) is not None:
            await self.emit(ClientEvent.LEAVE_PROJECT, project_id)

    async def join_user(self, user_id: str) -> None:
        self._user_id = user_id
        await self.emit(ClientEvent.JOIN_USER, user_id)

    async def _rejoin(self) -> None:
        # Called from the connect event, before the client reports itself
        # connected, so packets go straight to the underlying client
        joins = [(ClientEvent.JOIN_PROJECT, room) for room in self._rooms]
        if self._user_id:
            joins.append((ClientEvent.JOIN_USER, self._user_id))
        for event, target in joins:
            try:
                await self._sio.emit(event.value, target)
            except Exception as e:
                logger.warning("Failed to re-join %s %s: %s", event.value, target, e)

    def _bind(self, name: str) -> None:
        if self._sio is None or name in self._bound:
            return
        self._sio.on(name, self._make_dispatcher(name))
        self._bound.add(name)

    def _make_dispatcher(self, name: str):
        async def _dispatcher(*args):
            await self._dispatch(name, *args)

        return _dispatcher

    async def _dispatch(self, name: str, *args) -> None:
        if name == "connect":
            logger.info("Real-time channel connected to %s", self.url)
            if self._sio is not None:
                await self._rejoin()
        elif name == "disconnect":
            logger.info("Real-time channel disconnected")
        elif name == "connect_error":
            logger.warning("Real-time connection error: %s", args[0] if args else "unknown")

        for handler in list(self._handlers.get(name, ())):
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Handler for %s failed", name)
