"""NEAR JSON-RPC reader for account balances and NEP-141 view calls."""
from __future__ import annotations

import base64
import json
import logging
from typing import Any, Optional

from ..errors import ChainQueryError
from ._jsonrpc import JsonRpcClient

logger = logging.getLogger(__name__)


class NearClient(JsonRpcClient):
    """Async NEAR JSON-RPC client."""

    chain_name = "near"
    finality = "final"

    async def view_account(self, account_id: str) -> dict[str, Any]:
        return await self._rpc(
            "query",
            {
                "request_type": "view_account",
                "finality": self.finality,
                "account_id": account_id,
            },
        )

    async def get_balance(self, account_id: str) -> int:
        """Get account balance in yoctoNEAR."""
        account = await self.view_account(account_id)
        return int(account["amount"])

    async def call_view(
        self,
        contract_id: str,
        method_name: str,
        args: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Call a view method and decode its JSON result."""
        encoded_args = base64.b64encode(json.dumps(args or {}).encode()).decode()
        result = await self._rpc(
            "query",
            {
                "request_type": "call_function",
                "finality": self.finality,
                "account_id": contract_id,
                "method_name": method_name,
                "args_base64": encoded_args,
            },
        )
        # Contract panics come back inside an otherwise successful result
        if result.get("error"):
            raise ChainQueryError(
                f"near view {contract_id}.{method_name} failed: {result['error']}",
                chain=self.chain_name,
                step=method_name,
            )
        raw = bytes(result.get("result", []))
        if not raw:
            return None
        return json.loads(raw.decode("utf-8"))

    async def ft_metadata(self, contract_id: str) -> dict[str, Any]:
        metadata = await self.call_view(contract_id, "ft_metadata")
        if not isinstance(metadata, dict):
            raise ChainQueryError(
                f"near ft_metadata for {contract_id} returned no metadata",
                chain=self.chain_name,
                step="ft_metadata",
            )
        return metadata

    async def ft_total_supply(self, contract_id: str) -> int:
        return int(await self.call_view(contract_id, "ft_total_supply"))

    async def ft_balance_of(self, contract_id: str, account_id: str) -> int:
        return int(await self.call_view(contract_id, "ft_balance_of", {"account_id": account_id}))

    async def get_native_balance(self, address: str) -> int:
        return await self.get_balance(address)

    async def get_token_balance(self, owner: str, token: str) -> int:
        return await self.ft_balance_of(token, owner)


__all__ = ["NearClient"]
