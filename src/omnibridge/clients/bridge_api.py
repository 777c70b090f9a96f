"""
Omni Bridge HTTP API client.

Covers the fee schedule and the transfer indexing endpoints:
- GET /api/v1/transfer-fee
- GET /api/v1/transfers
- GET /api/v1/transfers/transfer
- GET /api/v1/transfers/transfer/status
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..config import EndpointConfig
from ..errors import FeeQueryFailed, IndexerQueryError, MalformedIndexerRequest
from ..models import Address, ChainId, FeeQuote, TransferRecord, TransferStatus

logger = logging.getLogger(__name__)

# Status codes meaning the request itself is wrong; retrying cannot help
MALFORMED_REQUEST_STATUS_CODES = (400, 422)


class OmniBridgeAPI:
    """Async client for the Omni Bridge REST API."""

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
            headers={"Accept": "application/json"},
        )

    async def _get(self, path: str, params: dict[str, Any], step: str) -> Any:
        """GET a JSON document, mapping failures to indexer errors."""
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as e:
            raise IndexerQueryError(f"GET {path} failed: {e}", step=step) from e

        if response.status_code in MALFORMED_REQUEST_STATUS_CODES:
            raise MalformedIndexerRequest(
                f"GET {path} rejected with {response.status_code}: {response.text[:200]}",
                step=step,
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            raise IndexerQueryError(
                f"GET {path} returned {response.status_code}",
                step=step,
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise IndexerQueryError(
                f"GET {path} returned invalid JSON",
                step=step,
                status_code=response.status_code,
            ) from e

    async def get_fee(self, sender: Address, recipient: Address, token: Address) -> FeeQuote:
        """Fee schedule for moving ``token`` from ``sender`` to ``recipient``."""
        params = {
            "sender": sender.omni,
            "recipient": recipient.omni,
            "token": token.omni,
        }
        try:
            data = await self._get("/api/v1/transfer-fee", params, step="fee_quote")
        except IndexerQueryError as e:
            raise FeeQueryFailed(e.message, details={"status_code": e.status_code, **params}) from e

        if not isinstance(data, dict):
            raise FeeQueryFailed("Fee API returned an unexpected payload", details=params)
        try:
            return FeeQuote.model_validate(data)
        except PydanticValidationError as e:
            raise FeeQueryFailed(f"Fee API returned unparsable amounts: {e}", details=params) from e

    async def find_transfers(self, tx_id: str) -> list[TransferRecord]:
        """Transfers created by source transaction ``tx_id`` (possibly empty)."""
        data = await self._get(
            "/api/v1/transfers",
            {"transaction_id": tx_id},
            step="find_transfers",
        )
        if not isinstance(data, list):
            raise IndexerQueryError("Transfer search returned an unexpected payload", step="find_transfers")
        return [self._parse_record(item, "find_transfers") for item in data]

    async def get_transfer(self, origin_chain: ChainId, origin_nonce: int) -> Optional[TransferRecord]:
        """Full transfer record, or ``None`` if the indexer has no such transfer yet."""
        try:
            data = await self._get(
                "/api/v1/transfers/transfer",
                {"origin_chain": origin_chain.api_name, "origin_nonce": origin_nonce},
                step="get_transfer",
            )
        except IndexerQueryError as e:
            if e.status_code == 404:
                return None
            raise

        # Some deployments wrap the record in a single-element list
        if isinstance(data, list):
            data = data[0] if data else None
        if not data:
            return None
        return self._parse_record(data, "get_transfer")

    async def get_transfer_status(self, origin_chain: ChainId, origin_nonce: int) -> TransferStatus:
        """Latest delivery status of a transfer."""
        data = await self._get(
            "/api/v1/transfers/transfer/status",
            {"origin_chain": origin_chain.api_name, "origin_nonce": origin_nonce},
            step="get_transfer_status",
        )
        # The API reports the status history; the last entry is current
        if isinstance(data, list):
            if not data:
                raise IndexerQueryError("Transfer status history is empty", step="get_transfer_status")
            data = data[-1]
        if isinstance(data, dict):
            data = data.get("status")
        if not isinstance(data, str):
            raise IndexerQueryError("Transfer status returned an unexpected payload", step="get_transfer_status")
        return TransferStatus(data)

    def _parse_record(self, data: Any, step: str) -> TransferRecord:
        try:
            return TransferRecord.model_validate(data)
        except PydanticValidationError as e:
            raise IndexerQueryError(f"Unparsable transfer record: {e}", step=step) from e

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "OmniBridgeAPI":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = [
    "OmniBridgeAPI",
    "MALFORMED_REQUEST_STATUS_CODES",
]
