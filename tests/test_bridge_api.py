"""Tests for the Omni Bridge API and Wormholescan clients."""
from __future__ import annotations

import base64

import httpx
import pytest

from conftest import mock_http_client
from omnibridge.clients.bridge_api import OmniBridgeAPI
from omnibridge.clients.wormhole import WormholeClient, WormholeQueryError
from omnibridge.config import EndpointConfig
from omnibridge.errors import FeeQueryFailed, IndexerQueryError, MalformedIndexerRequest
from omnibridge.models import ChainId, TransferStatus

API_ENDPOINT = EndpointConfig(url="https://bridge.test/")
WORMHOLE_ENDPOINT = EndpointConfig(url="https://wormholescan.test")

TRANSFER = {
    "id": {"origin_chain": "Sol", "origin_nonce": 17},
    "initialized": {"SolanaTransaction": {"signature": "sig"}},
    "transfer_message": {"amount": "1000", "fee": {"fee": "100", "native_fee": "0"}},
}


class TestGetFee:
    """Tests for fee quotes."""

    @pytest.mark.asyncio
    async def test_sends_omni_addresses(self, sol_sender, near_recipient, sol_token):
        """Should query the fee endpoint with omni addresses."""
        def handler(request):
            assert request.url.path == "/api/v1/transfer-fee"
            assert request.url.params["sender"] == sol_sender.omni
            assert request.url.params["recipient"] == near_recipient.omni
            assert request.url.params["token"] == sol_token.omni
            return httpx.Response(200, json={"transferred_token_fee": "100", "native_token_fee": None})

        api = OmniBridgeAPI(API_ENDPOINT, mock_http_client(handler))
        quote = await api.get_fee(sol_sender, near_recipient, sol_token)
        assert quote.token_fee == 100
        assert quote.native_fee == 0

    @pytest.mark.asyncio
    async def test_error_becomes_fee_query_failed(self, sol_sender, near_recipient, sol_token):
        """Should raise FeeQueryFailed for any failing status."""
        api = OmniBridgeAPI(API_ENDPOINT, mock_http_client(lambda r: httpx.Response(400, text="unknown token")))
        with pytest.raises(FeeQueryFailed) as exc_info:
            await api.get_fee(sol_sender, near_recipient, sol_token)
        assert exc_info.value.step == "fee_quote"

    @pytest.mark.asyncio
    async def test_bad_payload(self, sol_sender, near_recipient, sol_token):
        """Should raise FeeQueryFailed for unparsable amounts."""
        api = OmniBridgeAPI(
            API_ENDPOINT,
            mock_http_client(lambda r: httpx.Response(200, json={"transferred_token_fee": "lots"})),
        )
        with pytest.raises(FeeQueryFailed):
            await api.get_fee(sol_sender, near_recipient, sol_token)


class TestIndexer:
    """Tests for transfer lookups."""

    @pytest.mark.asyncio
    async def test_find_transfers(self):
        """Should parse every transfer of a transaction."""
        def handler(request):
            assert request.url.path == "/api/v1/transfers"
            assert request.url.params["transaction_id"] == "sig"
            return httpx.Response(200, json=[TRANSFER])

        api = OmniBridgeAPI(API_ENDPOINT, mock_http_client(handler))
        records = await api.find_transfers("sig")
        assert len(records) == 1
        assert records[0].origin_chain is ChainId.SOL
        assert records[0].origin_nonce == 17

    @pytest.mark.asyncio
    async def test_find_transfers_empty(self):
        """Should return an empty list when nothing is indexed."""
        api = OmniBridgeAPI(API_ENDPOINT, mock_http_client(lambda r: httpx.Response(200, json=[])))
        assert await api.find_transfers("sig") == []

    @pytest.mark.asyncio
    async def test_get_transfer(self):
        """Should query by API chain name and nonce."""
        def handler(request):
            assert request.url.path == "/api/v1/transfers/transfer"
            assert request.url.params["origin_chain"] == "Sol"
            assert request.url.params["origin_nonce"] == "17"
            return httpx.Response(200, json=TRANSFER)

        api = OmniBridgeAPI(API_ENDPOINT, mock_http_client(handler))
        record = await api.get_transfer(ChainId.SOL, 17)
        assert record.raw == TRANSFER

    @pytest.mark.asyncio
    async def test_get_transfer_not_found(self):
        """Should return None on 404."""
        api = OmniBridgeAPI(API_ENDPOINT, mock_http_client(lambda r: httpx.Response(404)))
        assert await api.get_transfer(ChainId.SOL, 17) is None

    @pytest.mark.asyncio
    async def test_transient_error(self):
        """Should raise IndexerQueryError for server errors."""
        api = OmniBridgeAPI(API_ENDPOINT, mock_http_client(lambda r: httpx.Response(502)))
        with pytest.raises(IndexerQueryError) as exc_info:
            await api.find_transfers("sig")
        assert not isinstance(exc_info.value, MalformedIndexerRequest)
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_network_error(self):
        """Should raise IndexerQueryError when the request cannot be sent."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        api = OmniBridgeAPI(API_ENDPOINT, mock_http_client(handler))
        with pytest.raises(IndexerQueryError):
            await api.find_transfers("sig")

    @pytest.mark.asyncio
    async def test_malformed_request(self):
        """Should raise MalformedIndexerRequest for 422."""
        api = OmniBridgeAPI(API_ENDPOINT, mock_http_client(lambda r: httpx.Response(422, json={"detail": "bad"})))
        with pytest.raises(MalformedIndexerRequest) as exc_info:
            await api.find_transfers("not-a-tx")
        assert exc_info.value.status_code == 422


class TestTransferStatus:
    """Tests for status lookups."""

    @pytest.mark.asyncio
    async def test_status_history_takes_latest(self):
        """Should use the last entry of a status history."""
        api = OmniBridgeAPI(
            API_ENDPOINT,
            mock_http_client(lambda r: httpx.Response(200, json=["Initialized", "Signed", "Finalised"])),
        )
        assert await api.get_transfer_status(ChainId.SOL, 17) is TransferStatus.FINALISED

    @pytest.mark.asyncio
    async def test_status_string(self):
        """Should accept a bare status string."""
        api = OmniBridgeAPI(API_ENDPOINT, mock_http_client(lambda r: httpx.Response(200, json="Signed")))
        assert await api.get_transfer_status(ChainId.SOL, 17) is TransferStatus.SIGNED

    @pytest.mark.asyncio
    async def test_status_idempotent(self):
        """Should return the same status for repeated lookups."""
        api = OmniBridgeAPI(
            API_ENDPOINT,
            mock_http_client(lambda r: httpx.Response(200, json={"status": "Claimed"})),
        )
        first = await api.get_transfer_status(ChainId.SOL, 17)
        second = await api.get_transfer_status(ChainId.SOL, 17)
        assert first is second is TransferStatus.CLAIMED


class TestWormholeClient:
    """Tests for VAA lookups."""

    @pytest.mark.asyncio
    async def test_returns_hex(self):
        """Should hex-encode the base64 VAA."""
        def handler(request):
            assert request.url.path == "/api/v1/operations"
            assert request.url.params["txHash"] == "sig"
            raw = base64.b64encode(b"\x01\x00\xff").decode()
            return httpx.Response(200, json={"operations": [{"vaa": {"raw": raw}}]})

        client = WormholeClient(WORMHOLE_ENDPOINT, mock_http_client(handler))
        assert await client.get_vaa("sig") == "0100ff"

    @pytest.mark.asyncio
    async def test_not_signed_yet(self):
        """Should return None when no operation carries a VAA."""
        client = WormholeClient(
            WORMHOLE_ENDPOINT,
            mock_http_client(lambda r: httpx.Response(200, json={"operations": [{"id": "x"}]})),
        )
        assert await client.get_vaa("sig") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"operations": [{"vaa": "abc"}]},
            {"operations": ["op"]},
            {"operations": {"vaa": {"raw": "AQ=="}}},
            {"operations": [{"vaa": {"raw": 12}}]},
        ],
    )
    async def test_unexpected_shape(self, payload):
        """Should raise WormholeQueryError when operations are not shaped as expected."""
        client = WormholeClient(
            WORMHOLE_ENDPOINT,
            mock_http_client(lambda r: httpx.Response(200, json=payload)),
        )
        with pytest.raises(WormholeQueryError):
            await client.get_vaa("sig")

    @pytest.mark.asyncio
    async def test_http_error(self):
        """Should raise WormholeQueryError on failures."""
        client = WormholeClient(WORMHOLE_ENDPOINT, mock_http_client(lambda r: httpx.Response(500)))
        with pytest.raises(WormholeQueryError):
            await client.get_vaa("sig")
