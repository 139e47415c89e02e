"""In-memory marketplace backend used by the tests.

FakeBackend serves the REST routes the client consumes as a FastAPI app
(reached through httpx.ASGITransport). FakeHub plays the Socket.IO
server: it keeps rooms, fans out events, and can hold deliveries so
tests control whether a REST response or its live event lands first.
"""

from datetime import datetime, timezone
from itertools import count
from typing import Any

import socketio
from fastapi import APIRouter, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class FakeSioClient:
    """Stands in for socketio.AsyncClient, connected to a FakeHub."""

    def __init__(self, hub: "FakeHub", **options):
        self.hub = hub
        self.options = options
        self.connected = False
        self.url = None
        self.auth = None
        self.handlers: dict[str, Any] = {}
        self.emitted: list[tuple[str, Any]] = []

    def on(self, event, handler=None, namespace=None):
        self.handlers[event] = handler

    async def connect(self, url, auth=None, wait_timeout=1, **kwargs):
        if not self.hub.online:
            raise socketio.exceptions.ConnectionError("Connection refused by the server")
        self.url = url
        self.auth = auth
        self.hub.attach(self)
        # python-socketio fires `connect` before reporting itself connected
        await self.trigger("connect")
        self.connected = True

    async def disconnect(self):
        if not self.connected:
            return
        self.connected = False
        self.hub.detach(self)
        await self.trigger("disconnect")

    async def emit(self, event, data=None, **kwargs):
        if not self.hub.is_attached(self):
            raise socketio.exceptions.BadNamespaceError("/ is not a connected namespace.")
        self.emitted.append((event, data))
        await self.hub.receive(self, event, data)

    async def trigger(self, event, *args):
        handler = self.handlers.get(event)
        if handler is not None:
            await handler(*args)

    async def drop_and_reconnect(self):
        """Simulate a dropped connection followed by automatic reconnection."""
        self.connected = False
        self.hub.detach(self)
        await self.trigger("disconnect")
        self.hub.attach(self)
        await self.trigger("connect")
        self.connected = True


class FakeHub:
    """Room-based event fan-out with optional deferred delivery."""

    def __init__(self):
        self.online = True
        self.clients: list[FakeSioClient] = []
        self.rooms: dict[str, list[FakeSioClient]] = {}
        self.broadcasts: list[tuple[str, str, Any]] = []
        self._held: list[tuple[FakeSioClient, str, Any]] | None = None

    def client_factory(self, **options) -> FakeSioClient:
        client = FakeSioClient(self, **options)
        self.clients.append(client)
        return client

    def attach(self, client: FakeSioClient) -> None:
        client._attached = True

    def detach(self, client: FakeSioClient) -> None:
        client._attached = False
        # Server-side room membership does not survive a disconnect
        for members in self.rooms.values():
            if client in members:
                members.remove(client)

    def is_attached(self, client: FakeSioClient) -> bool:
        return getattr(client, "_attached", False)

    def members(self, room: str) -> list[FakeSioClient]:
        return list(self.rooms.get(room, ()))

    async def receive(self, client: FakeSioClient, event: str, data: Any) -> None:
        if event == "join_project":
            self._join(client, f"project_{data}")
        elif event == "leave_project":
            members = self.rooms.get(f"project_{data}", [])
            if client in members:
                members.remove(client)
        elif event == "join_user":
            self._join(client, f"user_{data}")
        elif event == "typing_start":
            await self.broadcast(
                f"project_{data['roomId']}",
                "user_typing",
                {"userId": data["userId"], "userName": data.get("userName")},
                skip=client,
            )
        elif event == "typing_stop":
            await self.broadcast(
                f"project_{data['roomId']}",
                "user_stopped_typing",
                {"userId": data["userId"]},
                skip=client,
            )
        elif event == "message_read":
            await self.broadcast(
                f"project_{data['roomId']}",
                "message_read_update",
                {"messageId": data["messageId"], "userId": data["userId"]},
                skip=client,
            )

    def _join(self, client: FakeSioClient, room: str) -> None:
        members = self.rooms.setdefault(room, [])
        if client not in members:
            members.append(client)

    async def broadcast(self, room: str, event: str, payload: Any, skip: FakeSioClient | None = None) -> None:
        self.broadcasts.append((room, event, payload))
        for client in self.members(room):
            if client is skip:
                continue
            if self._held is not None:
                self._held.append((client, event, payload))
            else:
                await client.trigger(event, payload)

    def hold(self) -> None:
        """Queue deliveries until flush()."""
        self._held = []

    async def flush(self) -> None:
        held, self._held = self._held or [], None
        for client, event, payload in held:
            await client.trigger(event, payload)


class FakeBackend:
    """In-memory REST backend publishing live events through a FakeHub."""

    def __init__(self, hub: FakeHub):
        self.hub = hub
        self._ids = count(1)
        self.projects: dict[str, dict] = {}
        self.messages: dict[str, dict] = {}
        self.tasks: dict[str, dict] = {}
        self.files: dict[str, dict] = {}
        self.versions: dict[str, dict] = {}
        self.contracts: dict[str, dict] = {}
        self.interviews: dict[str, dict] = {}
        self.users: dict[str, dict] = {}
        self.last_ai_request: dict | None = None
        self.ai_lines: list[str] = ['data: {"text": "Hello"}', "data: [DONE]"]

        self.requests: list[tuple[str, str]] = []
        self.authorization: list[str | None] = []
        self._failures: dict[tuple[str, str], tuple[int, Any]] = {}

        self.app = self._build_app()

    # ---- seeding -----------------------------------------------------

    def next_id(self) -> int:
        return next(self._ids)

    def add_user(self, user_id: str, name: str) -> None:
        self.users[user_id] = {"id": user_id, "name": name, "avatar_url": None}

    def add_project(self, **fields) -> dict:
        row = {
            "id": self.next_id(),
            "title": "Untitled",
            "description": None,
            "budget": None,
            "status": "active",
            "client_id": None,
            "selected_expert_id": None,
            "expert_status": "none",
            "created_at": _now(),
            **fields,
        }
        self.projects[str(row["id"])] = row
        return row

    def add_task(self, project_id, **fields) -> dict:
        row = {"id": self.next_id(), "project_id": int(project_id), "title": "Task", "status": "todo", **fields}
        self.tasks[str(row["id"])] = row
        return row

    def add_message(self, project_id, sender_id: str, content: str) -> dict:
        row = {
            "id": self.next_id(),
            "project_id": int(project_id),
            "sender_id": sender_id,
            "content": content,
            "created_at": _now(),
        }
        self.messages[str(row["id"])] = row
        return row

    def add_file(self, project_id, **fields) -> dict:
        row = {"id": self.next_id(), "project_id": int(project_id), "name": "file.txt", "size": 1, **fields}
        self.files[str(row["id"])] = row
        return row

    def add_contract(self, project_id, **fields) -> dict:
        row = {
            "id": self.next_id(),
            "project_id": int(project_id),
            "status": "pending",
            "created_at": _now(),
            **fields,
        }
        self.contracts[str(row["id"])] = row
        return row

    def fail(self, method: str, path: str, status_code: int = 500, body: Any = None) -> None:
        """Make every `method path` request (path without /api) fail."""
        self._failures[(method, path)] = (status_code, body if body is not None else {"message": "Server error"})

    def recover(self, method: str, path: str) -> None:
        self._failures.pop((method, path), None)

    # ---- app ---------------------------------------------------------

    def _sender(self, user_id: str) -> dict:
        user = self.users.get(user_id, {"id": user_id, "name": None, "avatar_url": None})
        return {"id": user["id"], "name": user["name"], "avatar_url": user["avatar_url"]}

    def _user_id(self, request: Request) -> str | None:
        header = request.headers.get("authorization") or ""
        token = header.removeprefix("Bearer ").strip()
        # Test tokens are "token-<user id>"
        return token.removeprefix("token-") if token.startswith("token-") else None

    def _build_app(self) -> FastAPI:
        app = FastAPI(title="Fake marketplace backend")
        backend = self

        @app.middleware("http")
        async def record_and_fail(request: Request, call_next):
            path = request.url.path.removeprefix("/api")
            backend.requests.append((request.method, path))
            backend.authorization.append(request.headers.get("authorization"))
            failure = backend._failures.get((request.method, path))
            if failure is not None:
                status_code, body = failure
                if isinstance(body, str):
                    return PlainTextResponse(body, status_code=status_code)
                return JSONResponse(body, status_code=status_code)
            return await call_next(request)

        router = APIRouter()
        self._project_routes(router)
        self._message_routes(router)
        self._task_routes(router)
        self._file_routes(router)
        self._contract_routes(router)
        self._interview_routes(router)
        self._ai_routes(router)
        app.include_router(router, prefix="/api")
        return app

    def _project_routes(self, router: APIRouter) -> None:
        backend = self

        @router.get("/projects")
        async def list_projects():
            return {"projects": list(backend.projects.values())}

        @router.get("/projects/client/{client_id}")
        async def list_client_projects(client_id: str):
            rows = [row for row in backend.projects.values() if row.get("client_id") == client_id]
            return {"projects": rows}

        @router.get("/projects/expert/invites")
        async def list_invites(request: Request):
            user_id = backend._user_id(request)
            rows = [row for row in backend.projects.values() if row.get("selected_expert_id") == user_id]
            return {"projects": rows}

        @router.get("/projects/{project_id}")
        async def get_project(project_id: str):
            if project_id not in backend.projects:
                raise HTTPException(status_code=404, detail="Project not found")
            return {"project": backend.projects[project_id]}

        @router.post("/projects", status_code=201)
        async def create_project(request: Request):
            body = await request.json()
            return backend.add_project(client_id=backend._user_id(request), **body)

        @router.put("/projects/{project_id}")
        async def update_project(project_id: str, request: Request):
            body = await request.json()
            row = backend.projects[project_id]
            row.update(body, updated_at=_now())
            await backend.hub.broadcast(
                f"project_{project_id}",
                "project_update",
                {"id": row["id"], **body, "updatedAt": row["updated_at"]},
            )
            return row

        @router.delete("/projects/{project_id}")
        async def delete_project(project_id: str):
            backend.projects.pop(project_id)
            return {"message": "Project deleted"}

        @router.post("/projects/{project_id}/invite")
        async def invite(project_id: str, request: Request):
            body = await request.json()
            row = backend.projects[project_id]
            row.update(selected_expert_id=body["expertId"], expert_status="pending")
            await backend.hub.broadcast(f"user_{body['expertId']}", "project_invite", dict(row))
            return row

        @router.put("/projects/{project_id}/invite")
        async def respond(project_id: str, request: Request):
            body = await request.json()
            row = backend.projects[project_id]
            row.update(expert_status=body["status"])
            if body["status"] == "accepted":
                row["status"] = "active"
            return row

    def _message_routes(self, router: APIRouter) -> None:
        backend = self

        @router.get("/messages/project/{project_id}")
        async def list_messages(project_id: str):
            rows = [row for row in backend.messages.values() if str(row["project_id"]) == project_id]
            return {"messages": rows}

        @router.post("/messages", status_code=201)
        async def send_message(request: Request):
            body = await request.json()
            sender_id = backend._user_id(request)
            row = backend.add_message(body["projectId"], sender_id, body["content"])
            await backend.hub.broadcast(
                f"project_{body['projectId']}",
                "receive_message",
                {**row, "sender": backend._sender(sender_id)},
            )
            return row

        @router.put("/messages/{message_id}/read")
        async def mark_read(message_id: str):
            backend.messages[message_id]["is_read"] = True
            return backend.messages[message_id]

        @router.put("/messages/project/{project_id}/read")
        async def mark_project_read(project_id: str):
            return {"success": True}

    def _task_routes(self, router: APIRouter) -> None:
        backend = self

        @router.get("/projects/{project_id}/tasks")
        async def list_tasks(project_id: str):
            return [row for row in backend.tasks.values() if str(row["project_id"]) == project_id]

        @router.post("/projects/{project_id}/tasks", status_code=201)
        async def create_task(project_id: str, request: Request):
            body = await request.json()
            row = backend.add_task(project_id, created_by=backend._user_id(request), **body)
            await backend.hub.broadcast(f"project_{project_id}", "task_created", row)
            return row

        @router.put("/tasks/{task_id}")
        async def update_task(task_id: str, request: Request):
            body = await request.json()
            row = backend.tasks[task_id]
            row.update(body, updated_at=_now())
            await backend.hub.broadcast(f"project_{row['project_id']}", "task_updated", row)
            return row

        @router.delete("/tasks/{task_id}")
        async def delete_task(task_id: str):
            row = backend.tasks.pop(task_id)
            await backend.hub.broadcast(f"project_{row['project_id']}", "task_deleted", {"id": row["id"]})
            return {"message": "Task deleted"}

    def _file_routes(self, router: APIRouter) -> None:
        backend = self

        async def _publish(row: dict) -> dict:
            await backend.hub.broadcast(f"project_{row['project_id']}", "file_uploaded", row)
            return row

        @router.get("/files/project/{project_id}")
        async def list_files(project_id: str):
            return [row for row in backend.files.values() if str(row["project_id"]) == project_id]

        @router.post("/files", status_code=201)
        async def upload_file(request: Request, file: UploadFile = File(...), projectId: str = Form(...)):
            content = await file.read()
            row = backend.add_file(
                projectId,
                name=file.filename,
                size=len(content),
                type=file.content_type,
                uploaded_by=backend._user_id(request),
                created_at=_now(),
            )
            return await _publish(row)

        @router.post("/files/upload", status_code=201)
        async def upload_file_data(request: Request):
            body = await request.json()
            row = backend.add_file(
                body["projectId"],
                name=body["name"],
                size=body["size"],
                type=body["type"],
                uploaded_by=backend._user_id(request),
                created_at=_now(),
            )
            return await _publish(row)

        @router.post("/files/{file_id}/versions", status_code=201)
        async def add_version(file_id: str, request: Request):
            body = await request.json()
            file = backend.files[file_id]
            existing = [v for v in backend.versions.values() if str(v["file_id"]) == file_id]
            version = {
                "id": backend.next_id(),
                "file_id": file["id"],
                "project_id": file["project_id"],
                "version_number": len(existing) + 2,
                "created_at": _now(),
                **body,
            }
            backend.versions[str(version["id"])] = version
            await backend.hub.broadcast(f"project_{file['project_id']}", "file_version_added", version)
            return version

        @router.get("/files/{file_id}/versions")
        async def list_versions(file_id: str):
            return [v for v in backend.versions.values() if str(v["file_id"]) == file_id]

        @router.delete("/files/{file_id}")
        async def delete_file(file_id: str):
            backend.files.pop(file_id)
            return {"message": "File deleted"}

    def _contract_routes(self, router: APIRouter) -> None:
        backend = self

        @router.get("/contracts/project/{project_id}")
        async def list_contracts(project_id: str):
            rows = [row for row in backend.contracts.values() if str(row["project_id"]) == project_id]
            return {"contracts": rows}

        @router.post("/contracts", status_code=201)
        async def create_contract(request: Request):
            body = await request.json()
            project_id = body.pop("projectId")
            row = backend.add_contract(project_id, **body)
            await backend.hub.broadcast(f"project_{project_id}", "contract_updated", row)
            return row

        @router.put("/contracts/{contract_id}")
        async def update_contract(contract_id: str, request: Request):
            body = await request.json()
            row = backend.contracts[contract_id]
            row.update(body)
            await backend.hub.broadcast(f"project_{row['project_id']}", "contract_updated", row)
            return row

        @router.put("/contracts/{contract_id}/sign")
        async def sign_contract(contract_id: str, request: Request):
            body = await request.json()
            row = backend.contracts[contract_id]
            row.update(status="signed", signed_at=_now(), signature=body.get("signatureMetadata"))
            await backend.hub.broadcast(f"project_{row['project_id']}", "contract_updated", row)
            return row

    def _interview_routes(self, router: APIRouter) -> None:
        backend = self

        @router.get("/interviews/project/{project_id}")
        async def list_interviews(project_id: str):
            return [row for row in backend.interviews.values() if str(row["project_id"]) == project_id]

        @router.post("/interviews", status_code=201)
        async def schedule_interview(request: Request):
            body = await request.json()
            project_id = body.pop("projectId")
            row = {"id": backend.next_id(), "project_id": int(project_id), "status": "scheduled", **body}
            backend.interviews[str(row["id"])] = row
            await backend.hub.broadcast(f"project_{project_id}", "interview_scheduled", row)
            return {"interview": row}

    def _ai_routes(self, router: APIRouter) -> None:
        backend = self

        @router.post("/ai/chat/stream")
        async def chat_stream(request: Request):
            backend.last_ai_request = await request.json()
            lines = [f"{line}\n\n" for line in backend.ai_lines]
            return StreamingResponse(iter(lines), media_type="text/event-stream")


def event_payloads(hub: FakeHub, event: str) -> list[Any]:
    """Payloads broadcast for an event, in order."""
    return [payload for _, name, payload in hub.broadcasts if name == event]
