"""Shared base for workspace entities as consumed from the backend."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class EntityModel(BaseModel):
    """
    Base schema for backend entities.

    Entities are frozen: local state is always replaced, never mutated in
    place, so a saved list is a faithful snapshot for rollback. The backend
    mixes snake_case and camelCase keys, so both spellings are accepted.
    Unknown fields are kept.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
        alias_generator=to_camel,
        coerce_numbers_to_str=True,
    )
