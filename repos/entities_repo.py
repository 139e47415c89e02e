"""In-memory operations on id-keyed entity lists.

Every function returns a new list and never mutates its input. When an
operation changes nothing, the input list itself is returned, so callers
can detect no-ops by identity.
"""

from typing import Any, TypeVar

from models.base import EntityModel

T = TypeVar("T", bound=EntityModel)


def get_by_id(entities: list[T], *, entity_id: str) -> T | None:
    """
    Get an entity by ID.

    Args:
        entities: Entity list
        entity_id: ID to look up

    Returns:
        Entity if found, None otherwise
    """
    for entity in entities:
        if entity.id == entity_id:
            return entity
    return None


def create(entities: list[T], entity: T) -> list[T]:
    """
    Append an entity unless one with the same ID already exists.

    Args:
        entities: Entity list
        entity: Entity to add

    Returns:
        New list with the entity appended, or the input list if the ID was present
    """
    if get_by_id(entities, entity_id=entity.id) is not None:
        return entities
    return [*entities, entity]


def prepend(entities: list[T], entity: T) -> list[T]:
    """Insert an entity at the front unless its ID already exists."""
    if get_by_id(entities, entity_id=entity.id) is not None:
        return entities
    return [entity, *entities]


def upsert(entities: list[T], entity: T) -> list[T]:
    """
    Replace the entity with the same ID, or append it if absent.

    An update that arrives before its create therefore still lands.
    """
    if get_by_id(entities, entity_id=entity.id) is None:
        return [*entities, entity]
    return [entity if existing.id == entity.id else existing for existing in entities]


def replace_id(entities: list[T], *, temp_id: str, entity: T) -> list[T]:
    """
    Swap a provisional entity for its authoritative version.

    Args:
        entities: Entity list
        temp_id: Client-generated ID of the provisional entity
        entity: Authoritative entity carrying the server-assigned ID

    Returns:
        New list where the provisional entry is replaced in place. If the
        authoritative ID already landed (e.g. through a live event), the
        provisional entry is dropped instead, so the entity appears once.
        If the provisional entry is gone, the entity is appended unless present.
    """
    if get_by_id(entities, entity_id=entity.id) is not None:
        return delete(entities, entity_id=temp_id)
    if get_by_id(entities, entity_id=temp_id) is None:
        return [*entities, entity]
    return [entity if existing.id == temp_id else existing for existing in entities]


def update_by_id(entities: list[T], *, entity_id: str, updates: dict[str, Any]) -> list[T]:
    """Apply field updates to the entity with the given ID; no-op if absent."""
    if get_by_id(entities, entity_id=entity_id) is None:
        return entities
    return [
        merge_fields(existing, updates) if existing.id == entity_id else existing
        for existing in entities
    ]


def delete(entities: list[T], *, entity_id: str) -> list[T]:
    """Remove the entity with the given ID. Idempotent."""
    if get_by_id(entities, entity_id=entity_id) is None:
        return entities
    return [existing for existing in entities if existing.id != entity_id]


def merge_snapshot(existing: list[T], fetched: list[T]) -> list[T]:
    """
    Combine a freshly fetched snapshot with what is already known locally.

    Fetched entities come first in server order; entities that arrived
    locally while the fetch was in flight (live events, optimistic
    inserts) are kept after them if the snapshot does not include them.
    """
    fetched_ids = {entity.id for entity in fetched}
    return [*fetched, *(entity for entity in existing if entity.id not in fetched_ids)]


def merge_fields(entity: T, updates: dict[str, Any]) -> T:
    """
    Return a copy of an entity with fields overridden and re-validated.

    Accepts both snake_case names and camelCase aliases in `updates`.
    """
    return type(entity).model_validate({**entity.model_dump(), **updates})
