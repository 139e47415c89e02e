"""Contract model."""

from datetime import datetime

from models.base import EntityModel


class Contract(EntityModel):
    """An engagement contract between client and expert."""

    id: str
    project_id: str | None = None
    expert_id: str | None = None
    client_id: str | None = None
    terms: str | None = None
    amount: float | None = None
    status: str = "pending"
    created_at: datetime | None = None
    signed_at: datetime | None = None


def select_active_contract(contracts: list[Contract]) -> Contract | None:
    """
    Pick the project's active contract.

    The backend gives no ordering guarantee, so the most recently created
    contract wins. Contracts without a timestamp rank below dated ones;
    ties are broken by list position (later wins).

    Args:
        contracts: Contracts of a single project

    Returns:
        The active contract, or None if there are no contracts
    """
    if not contracts:
        return None

    def _rank(indexed: tuple[int, Contract]):
        index, contract = indexed
        created = contract.created_at
        return (
            created is not None,
            created.timestamp() if created is not None else 0.0,
            index,
        )

    return max(enumerate(contracts), key=_rank)[1]
