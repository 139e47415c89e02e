"""Typing indicators with client-side expiry."""

import asyncio
import logging

from models.presence import TypingIndicator

logger = logging.getLogger(__name__)


class TypingTracker:
    """
    Volatile set of participants currently typing.

    Each indicator expires `ttl` seconds after the last event that
    mentioned the user. This is a presence hint only; nothing else may
    depend on it for correctness.
    """

    def __init__(self, self_user_id: str | None, ttl: float = 3.0):
        self.self_user_id = self_user_id
        self.ttl = ttl
        self._indicators: dict[str, TypingIndicator] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}

    @property
    def users(self) -> list[TypingIndicator]:
        return list(self._indicators.values())

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._indicators

    def add(self, user_id: str, user_name: str | None = None) -> bool:
        """
        Mark a user as typing and (re)start their expiry timer.

        Returns:
            False if the event was about the current user and was ignored
        """
        if user_id == self.self_user_id:
            return False

        self._indicators[user_id] = TypingIndicator(user_id=user_id, user_name=user_name)
        timer = self._timers.pop(user_id, None)
        if timer is not None:
            timer.cancel()
        loop = asyncio.get_running_loop()
        self._timers[user_id] = loop.call_later(self.ttl, self._expire, user_id)
        return True

    def remove(self, user_id: str) -> None:
        timer = self._timers.pop(user_id, None)
        if timer is not None:
            timer.cancel()
        self._indicators.pop(user_id, None)

    def clear(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._indicators.clear()

    def _expire(self, user_id: str) -> None:
        self._timers.pop(user_id, None)
        if self._indicators.pop(user_id, None) is not None:
            logger.debug("Typing indicator for %s expired", user_id)
