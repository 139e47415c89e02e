"""File endpoints."""

import base64
from typing import Any

from api.client import ApiClient, unwrap_list
from models.file import FileVersion, ProjectFile


class FilesApi:
    """Client for /files."""

    def __init__(self, client: ApiClient):
        self.client = client

    async def list_for_project(self, project_id: str) -> list[ProjectFile]:
        data = await self.client.get(f"/files/project/{project_id}")
        return [ProjectFile.model_validate(item) for item in unwrap_list(data, "files")]

    async def upload(
        self,
        project_id: str,
        *,
        name: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> ProjectFile:
        """Upload file bytes as multipart form data."""
        data = await self.client.upload(
            "/files",
            files={"file": (name, content, content_type)},
            data={"projectId": project_id},
        )
        return ProjectFile.model_validate(data)

    async def upload_data(
        self,
        project_id: str,
        *,
        name: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> ProjectFile:
        """Upload a file as JSON metadata with a base64 payload."""
        data = await self.client.post(
            "/files/upload",
            json_body={
                "projectId": project_id,
                "name": name,
                "type": content_type,
                "size": len(content),
                "data": base64.b64encode(content).decode("ascii"),
            },
        )
        return ProjectFile.model_validate(data)

    async def add_version(self, file_id: str, payload: dict[str, Any]) -> FileVersion:
        data = await self.client.post(f"/files/{file_id}/versions", json_body=payload)
        return FileVersion.model_validate(data)

    async def list_versions(self, file_id: str) -> list[FileVersion]:
        data = await self.client.get(f"/files/{file_id}/versions")
        return [FileVersion.model_validate(item) for item in unwrap_list(data, "versions")]

    async def delete(self, file_id: str) -> None:
        await self.client.delete(f"/files/{file_id}")
