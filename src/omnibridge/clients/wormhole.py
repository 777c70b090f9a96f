"""Wormholescan client for fetching signed VAAs by source transaction."""
from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional

import httpx

from ..config import EndpointConfig

logger = logging.getLogger(__name__)


class WormholeQueryError(Exception):
    """Raw failure of a Wormholescan request."""


class WormholeClient:
    """Async Wormholescan API client."""

    def __init__(
        self,
        endpoint: EndpointConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.endpoint = endpoint
        self._base_url = endpoint.url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(endpoint.timeout_seconds, connect=endpoint.connect_timeout_seconds),
        )

    async def get_vaa(self, tx_id: str) -> Optional[str]:
        """Hex-encoded VAA emitted by ``tx_id``, or ``None`` if not signed yet."""
        try:
            response = await self._client.get(
                f"{self._base_url}/api/v1/operations",
                params={"txHash": tx_id},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise WormholeQueryError(f"Wormholescan lookup for {tx_id} failed: {e}") from e
        except ValueError as e:
            raise WormholeQueryError(f"Wormholescan returned invalid JSON for {tx_id}") from e

        operations = (data.get("operations") or []) if isinstance(data, dict) else []
        if not operations:
            logger.debug(f"No Wormhole operation indexed for {tx_id}")
            return None
        operation = operations[0] if isinstance(operations, list) else None
        if not isinstance(operation, dict):
            raise WormholeQueryError(f"Unexpected Wormholescan operation for {tx_id}: {operation!r}")
        vaa = operation.get("vaa") or {}
        if not isinstance(vaa, dict):
            raise WormholeQueryError(f"Unexpected Wormholescan VAA for {tx_id}: {vaa!r}")
        raw = vaa.get("raw")
        if not raw:
            return None
        if not isinstance(raw, str):
            raise WormholeQueryError(f"VAA for {tx_id} is not a base64 string")
        try:
            return base64.b64decode(raw, validate=True).hex()
        except (binascii.Error, ValueError) as e:
            raise WormholeQueryError(f"VAA for {tx_id} is not valid base64") from e

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "WormholeClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = ["WormholeClient", "WormholeQueryError"]
