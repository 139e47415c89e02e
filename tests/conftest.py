"""Pytest configuration and fixtures."""

import asyncio
import sys

import httpx
import pytest
import pytest_asyncio

from api.client import ApiClient
from api.router import BackendApi
from auth.schemas import Session
from auth.session import MemorySessionStore
from realtime.socket_client import SocketClient
from tests.fake_backend import FakeBackend, FakeHub

# Fix Windows asyncio event loop
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

BASE_URL = "http://testserver/api"
SOCKET_URL = "http://testserver"


@pytest.fixture
def hub() -> FakeHub:
    return FakeHub()


@pytest.fixture
def backend(hub: FakeHub) -> FakeBackend:
    backend = FakeBackend(hub)
    backend.add_user("100", "Ada Client")
    backend.add_user("200", "Kofi Expert")
    return backend


@pytest.fixture
def client_user() -> Session:
    return Session(id="100", token="token-100", role="client", name="Ada Client")


@pytest.fixture
def expert_user() -> Session:
    return Session(id="200", token="token-200", role="expert", name="Kofi Expert")


@pytest.fixture
def project(backend: FakeBackend, client_user: Session) -> dict:
    """A project owned by the client user, with the expert selected."""
    return backend.add_project(
        title="Logo redesign",
        client_id=client_user.id,
        selected_expert_id="200",
        expert_status="accepted",
    )


@pytest_asyncio.fixture
async def connect_user(backend: FakeBackend, hub: FakeHub):
    """
    Factory connecting a participant to the fake backend.

    Returns (BackendApi, SocketClient) wired to the in-memory REST app and
    hub; everything opened is closed at teardown.
    """
    opened: list[tuple[BackendApi, SocketClient]] = []

    async def _connect(session: Session | None, *, connect_socket: bool = True):
        api = BackendApi(
            ApiClient(
                BASE_URL,
                session_store=MemorySessionStore(session),
                transport=httpx.ASGITransport(app=backend.app),
            )
        )
        socket = SocketClient(
            SOCKET_URL,
            token_provider=lambda: session.token if session else None,
            client_factory=hub.client_factory,
        )
        if connect_socket:
            await socket.connect()
        opened.append((api, socket))
        return api, socket

    yield _connect

    for api, socket in opened:
        await socket.disconnect()
        await api.aclose()
