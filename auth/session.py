"""Persisted client session storage."""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import ValidationError

from auth.jwt import is_token_expired
from auth.schemas import Session

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Where the signed-in user's session lives between runs."""

    @abstractmethod
    def load(self) -> Session | None:
        ...

    @abstractmethod
    def save(self, session: Session) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class MemorySessionStore(SessionStore):
    """Session held in memory only."""

    def __init__(self, session: Session | None = None):
        self._session = session

    def load(self) -> Session | None:
        return self._session

    def save(self, session: Session) -> None:
        self._session = session

    def clear(self) -> None:
        self._session = None


class FileSessionStore(SessionStore):
    """
    Session persisted as a JSON file.

    Loading drops sessions whose token has expired, so callers never
    attach a credential the backend is certain to reject.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> Session | None:
        if not self.path.exists():
            return None

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            session = Session.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, e)
            return None

        if session.token and is_token_expired(session.token):
            logger.info("Stored session for user %s has expired", session.id)
            self.clear()
            return None
        return session

    def save(self, session: Session) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            session.model_dump_json(by_alias=False),
            encoding="utf-8",
        )

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
