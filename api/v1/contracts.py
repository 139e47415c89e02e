"""Contract endpoints."""

from typing import Any

from api.client import ApiClient, unwrap_list
from models.contract import Contract


class ContractsApi:
    """Client for /contracts."""

    def __init__(self, client: ApiClient):
        self.client = client

    async def list_for_project(self, project_id: str) -> list[Contract]:
        data = await self.client.get(f"/contracts/project/{project_id}")
        return [Contract.model_validate(item) for item in unwrap_list(data, "contracts")]

    async def create(self, payload: dict[str, Any]) -> Contract:
        data = await self.client.post("/contracts", json_body=payload)
        return Contract.model_validate(data)

    async def update(self, contract_id: str, updates: dict[str, Any]) -> Contract:
        data = await self.client.put(f"/contracts/{contract_id}", json_body=updates)
        return Contract.model_validate(data)

    async def sign(self, contract_id: str, metadata: dict[str, Any] | None = None) -> Contract:
        data = await self.client.put(
            f"/contracts/{contract_id}/sign",
            json_body={"signatureMetadata": metadata},
        )
        return Contract.model_validate(data)
