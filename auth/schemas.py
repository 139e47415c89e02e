"""Session and token payload schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class TokenPayload(BaseModel):
    """Claims the client reads from its access token (unverified)."""

    sub: str | None = None  # user_id (standard JWT claim)
    id: str | None = None  # user_id as issued by the backend
    role: str | None = None
    exp: datetime | None = None  # Expiration time (standard JWT claim)


class Session(BaseModel):
    """
    The signed-in user as persisted on the client.

    Passed explicitly into the project store and collaboration sessions;
    the REST client reads it from a SessionStore on every call.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
        coerce_numbers_to_str=True,
    )

    id: str
    token: str | None = None
    role: str = "client"
    name: str | None = None
    email: str | None = None
    avatar_url: str | None = None

    @property
    def is_client(self) -> bool:
        return self.role == "client"

    @property
    def is_expert(self) -> bool:
        return self.role == "expert"
