"""Optimistic mutation protocol shared by every entity kind."""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar
from uuid import uuid4

logger = logging.getLogger(__name__)

TEMP_ID_PREFIX = "temp-"

S = TypeVar("S")
R = TypeVar("R")


def new_temp_id() -> str:
    """
    Generate a provisional entity ID.

    The prefix keeps temporary IDs disjoint from server-assigned IDs.
    """
    return f"{TEMP_ID_PREFIX}{uuid4().hex}"


def is_temp_id(entity_id: str | None) -> bool:
    return bool(entity_id) and entity_id.startswith(TEMP_ID_PREFIX)


async def perform_optimistic(
    *,
    apply: Callable[[], S],
    remote: Callable[[], Awaitable[R]],
    reconcile: Callable[[S, R], None],
    rollback: Callable[[S], None],
) -> R:
    """
    Apply a mutation locally, confirm it remotely, then reconcile or roll back.

    Args:
        apply: Mutates local state synchronously and returns whatever the
            later steps need (a temporary ID, a pre-mutation snapshot, ...)
        remote: Performs the REST call
        reconcile: Folds the authoritative result into local state
        rollback: Undoes `apply`

    Returns:
        The REST result

    Raises:
        Exception: Whatever `remote` raised, after `rollback` ran
    """
    token = apply()
    try:
        result = await remote()
    except Exception as e:
        logger.warning("Optimistic update rolled back: %s", e)
        rollback(token)
        raise
    reconcile(token, result)
    return result
