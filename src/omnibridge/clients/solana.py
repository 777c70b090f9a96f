"""Solana RPC client wrapper and Metaplex metadata helpers."""
from __future__ import annotations

import base64
import hashlib
import logging
import struct
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple

import base58

from ._jsonrpc import JsonRpcClient

logger = logging.getLogger(__name__)

# Solana program IDs
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_METADATA_PROGRAM_ID = "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"

_PDA_MARKER = b"ProgramDerivedAddress"
_MAX_SEED_LENGTH = 32

# ed25519 curve parameters
_P = 2**255 - 19
_D = (-121665 * pow(121666, _P - 2, _P)) % _P


def _is_on_ed25519_curve(point: bytes) -> bool:
    """True if ``point`` decompresses to a point on the ed25519 curve."""
    y = int.from_bytes(point, "little") & ((1 << 255) - 1)
    y %= _P
    y2 = y * y % _P
    u = (y2 - 1) % _P
    v = (_D * y2 + 1) % _P
    x2 = u * pow(v, _P - 2, _P) % _P
    return x2 == 0 or pow(x2, (_P - 1) // 2, _P) == 1


def find_program_address(seeds: Sequence[bytes], program_id: str) -> Tuple[str, int]:
    """Derive a program address (PDA) and its bump seed.

    Tries bump seeds from 255 down to 0 and returns the first hash that is
    not a valid ed25519 public key.
    """
    for seed in seeds:
        if len(seed) > _MAX_SEED_LENGTH:
            raise ValueError(f"Seed exceeds {_MAX_SEED_LENGTH} bytes")
    program_bytes = base58.b58decode(program_id)
    prefix = b"".join(seeds)
    for bump in range(255, -1, -1):
        digest = hashlib.sha256(prefix + bytes([bump]) + program_bytes + _PDA_MARKER).digest()
        if not _is_on_ed25519_curve(digest):
            return base58.b58encode(digest).decode(), bump
    raise ValueError("Unable to find a viable program address bump seed")


def metadata_account_address(mint: str) -> str:
    """Metaplex metadata PDA for a mint."""
    program = base58.b58decode(TOKEN_METADATA_PROGRAM_ID)
    address, _ = find_program_address(
        [b"metadata", program, base58.b58decode(mint)],
        TOKEN_METADATA_PROGRAM_ID,
    )
    return address


@dataclass(frozen=True)
class MetaplexMetadata:
    """Descriptive fields of a Metaplex metadata account."""
    mint: str
    name: str
    symbol: str
    uri: str


def parse_metaplex_metadata(data: bytes) -> MetaplexMetadata:
    """Parse the Borsh-encoded head of a Metaplex metadata account.

    Layout: key (u8), update authority (32), mint (32), then the
    length-prefixed name, symbol and uri strings, each NUL padded.
    """
    if len(data) < 1 + 32 + 32 + 4:
        raise ValueError("Buffer too small for metadata")
    offset = 1 + 32
    mint = base58.b58encode(data[offset:offset + 32]).decode()
    offset += 32

    fields = []
    for _ in range(3):
        if offset + 4 > len(data):
            raise ValueError("Truncated metadata account")
        (length,) = struct.unpack_from("<I", data, offset)
        offset += 4
        if offset + length > len(data):
            raise ValueError("Truncated metadata string")
        raw = data[offset:offset + length]
        offset += length
        fields.append(raw.decode("utf-8").replace("\x00", "").strip())

    name, symbol, uri = fields
    return MetaplexMetadata(mint=mint, name=name, symbol=symbol, uri=uri)


class SolanaClient(JsonRpcClient):
    """Async Solana JSON-RPC client.

    Uses raw httpx instead of solana-py to minimize dependencies.
    All Solana RPC methods are called via JSON-RPC 2.0.
    """

    chain_name = "sol"
    commitment = "confirmed"

    async def get_balance(self, pubkey: str) -> int:
        """Get SOL balance in lamports."""
        result = await self._rpc("getBalance", [pubkey, {"commitment": self.commitment}])
        return int(result["value"])

    async def get_parsed_account_info(self, pubkey: str) -> Optional[dict[str, Any]]:
        """Get account info with the ``jsonParsed`` encoding. ``None`` if absent."""
        result = await self._rpc(
            "getAccountInfo",
            [pubkey, {"encoding": "jsonParsed", "commitment": self.commitment}],
        )
        return result.get("value") if result else None

    async def get_account_data(self, pubkey: str) -> Optional[bytes]:
        """Get raw account data. ``None`` if the account does not exist."""
        result = await self._rpc(
            "getAccountInfo",
            [pubkey, {"encoding": "base64", "commitment": self.commitment}],
        )
        value = result.get("value") if result else None
        if not value:
            return None
        encoded, _encoding = value["data"]
        return base64.b64decode(encoded)

    async def get_token_accounts_by_owner(
        self,
        owner: str,
        mint: Optional[str] = None,
        program_id: str = TOKEN_PROGRAM_ID,
    ) -> list[dict[str, Any]]:
        """Get token accounts for an owner, filtered by mint or token program."""
        account_filter = {"mint": mint} if mint else {"programId": program_id}
        result = await self._rpc(
            "getTokenAccountsByOwner",
            [
                owner,
                account_filter,
                {"encoding": "jsonParsed", "commitment": self.commitment},
            ],
        )
        return result.get("value", [])

    async def get_token_balance(self, owner: str, mint: str) -> int:
        """Total amount of ``mint`` held across the owner's token accounts."""
        accounts = await self.get_token_accounts_by_owner(owner, mint=mint)
        total = 0
        for account in accounts:
            info = account["account"]["data"]["parsed"]["info"]
            total += int(info["tokenAmount"]["amount"])
        return total

    async def get_native_balance(self, address: str) -> int:
        return await self.get_balance(address)


__all__ = [
    "TOKEN_PROGRAM_ID",
    "TOKEN_METADATA_PROGRAM_ID",
    "MetaplexMetadata",
    "SolanaClient",
    "find_program_address",
    "metadata_account_address",
    "parse_metaplex_metadata",
]
