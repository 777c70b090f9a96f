"""EVM JSON-RPC reader for native and ERC-20 balances and metadata."""
from __future__ import annotations

import logging
from typing import Any, Sequence

from eth_abi import decode as abi_decode
from eth_abi import encode
from eth_abi.exceptions import DecodingError, EncodingError

from ._jsonrpc import JsonRpcClient

logger = logging.getLogger(__name__)

# ERC-20 function selectors
NAME_SELECTOR = "0x06fdde03"
SYMBOL_SELECTOR = "0x95d89b41"
DECIMALS_SELECTOR = "0x313ce567"
TOTAL_SUPPLY_SELECTOR = "0x18160ddd"
BALANCE_OF_SELECTOR = "0x70a08231"


def decode(types: Sequence[str], data: bytes) -> tuple[Any, ...]:
    """ABI-decode return data. Malformed or empty data raises ValueError."""
    try:
        return abi_decode(list(types), data)
    except DecodingError as e:
        raise ValueError(f"Undecodable return data for {list(types)}: {e}") from e


def _hex_to_bytes(value: str) -> bytes:
    return bytes.fromhex((value or "0x").removeprefix("0x"))


def decode_string_result(data: bytes) -> str:
    """Decode a ``string`` return value, falling back to ``bytes32``.

    Some older tokens (MKR, SAI) return ``bytes32`` for name and symbol.
    """
    if not data:
        raise ValueError("Empty return data")
    if len(data) == 32:
        return data.rstrip(b"\x00").decode("utf-8").strip()
    (value,) = decode(["string"], data)
    return value.replace("\x00", "").strip()


class EvmClient(JsonRpcClient):
    """Async EVM JSON-RPC client."""

    chain_name = "eth"

    async def get_balance(self, address: str) -> int:
        """Get native balance in wei."""
        result = await self._rpc("eth_getBalance", [address, "latest"])
        return int(result, 16)

    async def get_code(self, address: str) -> bytes:
        result = await self._rpc("eth_getCode", [address, "latest"])
        return _hex_to_bytes(result)

    async def call(self, to: str, data: str) -> bytes:
        """``eth_call`` against the latest block."""
        result = await self._rpc("eth_call", [{"to": to, "data": data}, "latest"])
        return _hex_to_bytes(result)

    async def erc20_decimals(self, token: str) -> int:
        (value,) = decode(["uint8"], await self.call(token, DECIMALS_SELECTOR))
        return int(value)

    async def erc20_total_supply(self, token: str) -> int:
        (value,) = decode(["uint256"], await self.call(token, TOTAL_SUPPLY_SELECTOR))
        return int(value)

    async def erc20_name(self, token: str) -> str:
        return decode_string_result(await self.call(token, NAME_SELECTOR))

    async def erc20_symbol(self, token: str) -> str:
        return decode_string_result(await self.call(token, SYMBOL_SELECTOR))

    async def erc20_balance_of(self, token: str, owner: str) -> int:
        try:
            data = BALANCE_OF_SELECTOR + encode(["address"], [owner]).hex()
        except EncodingError as e:
            raise ValueError(f"Not an EVM address: {owner!r}") from e
        (value,) = decode(["uint256"], await self.call(token, data))
        return int(value)

    async def get_native_balance(self, address: str) -> int:
        return await self.get_balance(address)

    async def get_token_balance(self, owner: str, token: str) -> int:
        return await self.erc20_balance_of(token, owner)


__all__ = [
    "EvmClient",
    "decode_string_result",
]
