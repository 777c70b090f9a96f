"""
Pytest configuration for omnibridge tests.
"""
from __future__ import annotations

import json
from typing import Any, Callable, List
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from omnibridge.config import NetworkMode, build_default_config
from omnibridge.models import Address, ChainId, SignerContext, TxSubmission
from omnibridge.signer import BridgeSignerPort

SOL_MINT = "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU"
SOL_WALLET = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
ETH_TOKEN = "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238"
ETH_WALLET = "0x1234567890123456789012345678901234567890"
NEAR_ACCOUNT = "alice.testnet"


class FakeClock:
    """Monotonic clock advanced only by ``sleep``."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def mock_http_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def rpc_body(request: httpx.Request) -> dict[str, Any]:
    return json.loads(request.content)


def rpc_result(request: httpx.Request, result: Any) -> httpx.Response:
    body = rpc_body(request)
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return build_default_config(NetworkMode.TESTNET)


@pytest.fixture
def sol_token():
    return Address(ChainId.SOL, SOL_MINT)


@pytest.fixture
def sol_sender():
    return Address(ChainId.SOL, SOL_WALLET)


@pytest.fixture
def near_recipient():
    return Address(ChainId.NEAR, NEAR_ACCOUNT)


@pytest.fixture
def signer():
    """Mock signer counting every submission."""
    mock = MagicMock(spec=BridgeSignerPort)
    mock.log_metadata = AsyncMock(return_value="metadata_tx")
    mock.deploy_token = AsyncMock(return_value="deploy_tx")
    mock.submit_transfer = AsyncMock(return_value=TxSubmission(chain=ChainId.SOL, tx_id="transfer_tx"))
    return mock


@pytest.fixture
def signer_context(signer, sol_sender, near_recipient):
    return SignerContext(signer=signer, source_address=sol_sender, destination_address=near_recipient)
