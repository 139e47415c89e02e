"""Message endpoints."""

from api.client import ApiClient, unwrap_list
from models.message import Message


class MessagesApi:
    """Client for /messages."""

    def __init__(self, client: ApiClient):
        self.client = client

    async def list_for_project(self, project_id: str) -> list[Message]:
        data = await self.client.get(f"/messages/project/{project_id}")
        return [Message.model_validate(item) for item in unwrap_list(data, "messages")]

    async def send(self, project_id: str, content: str) -> Message:
        data = await self.client.post(
            "/messages",
            json_body={"projectId": project_id, "content": content},
        )
        return Message.model_validate(data)

    async def mark_read(self, message_id: str) -> None:
        await self.client.put(f"/messages/{message_id}/read")

    async def mark_project_read(self, project_id: str) -> None:
        await self.client.put(f"/messages/project/{project_id}/read")
