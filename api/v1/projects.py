"""Project endpoints."""

from typing import Any

from api.client import ApiClient, unwrap_list
from models.project import Project


class ProjectsApi:
    """Client for /projects."""

    def __init__(self, client: ApiClient):
        self.client = client

    async def list_all(self, params: dict[str, Any] | None = None) -> list[Project]:
        """
        List projects visible to the current user.

        Returns:
            Projects, from either a bare array or a {"projects": [...]} envelope.
        """
        data = await self.client.get("/projects", params=params or None)
        return [Project.model_validate(item) for item in unwrap_list(data, "projects")]

    async def list_for_client(self, client_id: str) -> list[Project]:
        """List the projects owned by a client."""
        data = await self.client.get(f"/projects/client/{client_id}")
        return [Project.model_validate(item) for item in unwrap_list(data, "projects")]

    async def list_invited(self) -> list[Project]:
        """List projects the current expert has been invited to."""
        data = await self.client.get("/projects/expert/invites")
        return [Project.model_validate(item) for item in unwrap_list(data, "projects")]

    async def get(self, project_id: str) -> Project:
        data = await self.client.get(f"/projects/{project_id}")
        return Project.model_validate(data.get("project", data))

    async def create(self, payload: dict[str, Any]) -> Project:
        data = await self.client.post("/projects", json_body=payload)
        return Project.model_validate(data)

    async def update(self, project_id: str, updates: dict[str, Any]) -> Project:
        data = await self.client.put(f"/projects/{project_id}", json_body=updates)
        return Project.model_validate(data)

    async def delete(self, project_id: str) -> None:
        await self.client.delete(f"/projects/{project_id}")

    async def invite(self, project_id: str, expert_id: str) -> Project:
        """Invite an expert to a project (client only)."""
        data = await self.client.post(
            f"/projects/{project_id}/invite",
            json_body={"expertId": expert_id},
        )
        return Project.model_validate(data)

    async def respond(self, project_id: str, status: str) -> Project:
        """Accept or reject an invitation (expert only)."""
        data = await self.client.put(
            f"/projects/{project_id}/invite",
            json_body={"status": status},
        )
        return Project.model_validate(data)
