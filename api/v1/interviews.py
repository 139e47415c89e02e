"""Interview endpoints."""

from typing import Any

from api.client import ApiClient, unwrap_list
from models.interview import Interview


class InterviewsApi:
    """Client for /interviews."""

    def __init__(self, client: ApiClient):
        self.client = client

    async def list_for_project(self, project_id: str) -> list[Interview]:
        data = await self.client.get(f"/interviews/project/{project_id}")
        return [Interview.model_validate(item) for item in unwrap_list(data, "interviews")]

    async def schedule(self, payload: dict[str, Any]) -> Interview:
        data = await self.client.post("/interviews", json_body=payload)
        return Interview.model_validate(data.get("interview", data))
