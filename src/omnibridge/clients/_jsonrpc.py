"""Shared JSON-RPC 2.0 transport over httpx."""
from __future__ import annotations

import itertools
import logging
from typing import Any, Optional

import httpx

from ..config import EndpointConfig
from ..errors import ChainQueryError

logger = logging.getLogger(__name__)


class JsonRpcClient:
    """Async JSON-RPC client bound to one chain endpoint.

    An ``httpx.AsyncClient`` may be injected; otherwise one is created and
    owned (closed by ``close()``).
    """

    chain_name = "unknown"

    def __init__(
        self,
        endpoint: EndpointConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.endpoint = endpoint
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(endpoint.timeout_seconds, connect=endpoint.connect_timeout_seconds),
        )
        self._ids = itertools.count(1)

    async def _rpc(self, method: str, params: Any = None) -> Any:
        """Make a JSON-RPC call and return its ``result``."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params if params is not None else [],
        }
        try:
            resp = await self._client.post(self.endpoint.url, json=payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            logger.warning(f"{self.chain_name} RPC {method} failed: {e}")
            raise ChainQueryError(
                f"{self.chain_name} RPC {method} failed: {e}",
                chain=self.chain_name,
                step=method,
            ) from e
        except ValueError as e:
            raise ChainQueryError(
                f"{self.chain_name} RPC {method} returned invalid JSON",
                chain=self.chain_name,
                step=method,
            ) from e

        if data.get("error"):
            error = data["error"]
            message = error.get("message", "Unknown RPC error") if isinstance(error, dict) else str(error)
            raise ChainQueryError(
                f"{self.chain_name} RPC {method} error: {message}",
                chain=self.chain_name,
                step=method,
                rpc_error=error if isinstance(error, dict) else {"message": message},
            )
        return data.get("result")

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
