"""Typing indicator - ephemeral presence hint, never persisted."""

from models.base import EntityModel


class TypingIndicator(EntityModel):
    """A participant currently typing in the project chat."""

    user_id: str
    user_name: str | None = None
