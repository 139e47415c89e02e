"""AI assistant endpoints."""

from collections.abc import Awaitable, Callable
from typing import Any

from api.client import ApiClient


class AiApi:
    """Client for /ai."""

    def __init__(self, client: ApiClient):
        self.client = client

    async def chat_stream(
        self,
        message: str,
        on_text: Callable[[str], Awaitable[None] | None],
        context: dict[str, Any] | None = None,
    ) -> str:
        """
        Stream an assistant reply.

        Args:
            message: User prompt
            on_text: Called with each text fragment as it arrives
            context: Optional page context forwarded to the assistant

        Returns:
            The full reply text
        """
        parts: list[str] = []

        async def _on_chunk(chunk: dict) -> None:
            text = chunk.get("text")
            if not text:
                return
            parts.append(text)
            result = on_text(text)
            if result is not None:
                await result

        await self.client.stream_events(
            "/ai/chat/stream",
            json_body={"message": message, "context": context or {}},
            on_chunk=_on_chunk,
        )
        return "".join(parts)
