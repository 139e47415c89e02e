"""Message model - append-only project chat entries."""

from datetime import datetime

from models.base import EntityModel


class MessageSender(EntityModel):
    """Sender details embedded in message payloads."""

    id: str | None = None
    name: str | None = None
    avatar_url: str | None = None


class Message(EntityModel):
    """A project chat message.

    Optimistic entries carry a client-generated temporary id and
    `is_optimistic=True` until the server acknowledges them.
    """

    id: str
    project_id: str | None = None
    sender_id: str | None = None
    sender: MessageSender | str | None = None
    sender_name: str | None = None
    content: str = ""
    created_at: datetime | None = None
    is_optimistic: bool = False

    @property
    def display_name(self) -> str:
        if isinstance(self.sender, MessageSender) and self.sender.name:
            return self.sender.name
        if isinstance(self.sender, str) and self.sender:
            return self.sender
        return self.sender_name or "Unknown"
