"""Task endpoints."""

from typing import Any

from api.client import ApiClient, unwrap_list
from models.task import Task


class TasksApi:
    """Client for project tasks."""

    def __init__(self, client: ApiClient):
        self.client = client

    async def list_for_project(self, project_id: str) -> list[Task]:
        data = await self.client.get(f"/projects/{project_id}/tasks")
        return [Task.model_validate(item) for item in unwrap_list(data, "tasks")]

    async def create(self, project_id: str, payload: dict[str, Any]) -> Task:
        data = await self.client.post(f"/projects/{project_id}/tasks", json_body=payload)
        return Task.model_validate(data)

    async def update(self, task_id: str, updates: dict[str, Any]) -> Task:
        data = await self.client.put(f"/tasks/{task_id}", json_body=updates)
        return Task.model_validate(data)

    async def delete(self, task_id: str) -> None:
        await self.client.delete(f"/tasks/{task_id}")
