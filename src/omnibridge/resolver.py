"""
Token metadata resolution.

Turns a chain-scoped token address into a ``TokenDescriptor``. On-chain
mint/contract state (decimals, supply) is authoritative: an address that
does not resolve to a token raises ``UnknownTokenError``. Descriptive
metadata (name, symbol, image) is cosmetic, so any failure to find or
parse it falls back to placeholder values. Balance lookups fall back to 0.
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx

from .clients.evm import EvmClient
from .clients.near import NearClient
from .clients.solana import (
    SolanaClient,
    TOKEN_PROGRAM_ID,
    metadata_account_address,
    parse_metaplex_metadata,
)
from .config import BridgeConfig
from .errors import BridgeError, UnknownTokenError, ValidationError
from .logging_utils import OperationType, WorkflowLogger
from .models import PLACEHOLDER_NAME, PLACEHOLDER_SYMBOL, Address, ChainId, TokenDescriptor

logger = logging.getLogger(__name__)

# Failures treated as "metadata unavailable"
_METADATA_ERRORS = (
    BridgeError,
    httpx.HTTPError,
    httpx.InvalidURL,  # token creators control the Metaplex uri
    ValueError,
    KeyError,
    TypeError,
    UnicodeDecodeError,
)


class TokenMetadataResolver:
    """Resolves token descriptors on Solana, Ethereum and NEAR."""

    def __init__(
        self,
        config: BridgeConfig,
        solana: SolanaClient,
        evm: EvmClient,
        near: NearClient,
        http_client: Optional[httpx.AsyncClient] = None,
        workflow_logger: Optional[WorkflowLogger] = None,
    ):
        self._config = config
        self._solana = solana
        self._evm = evm
        self._near = near
        self._owns_http = http_client is None
        # Off-chain metadata documents (Metaplex ``uri``)
        self._http = http_client or httpx.AsyncClient(timeout=10.0, follow_redirects=True)
        self._wlog = workflow_logger or WorkflowLogger(config=config.logging)

    async def resolve(self, address: Address, owner: Optional[Address] = None) -> TokenDescriptor:
        """Resolve ``address`` to a descriptor, with ``owner``'s balance if given."""
        if owner is not None and owner.chain is not address.chain:
            raise ValidationError(
                f"Owner {owner.omni} is not on the token's chain {address.chain.value}",
                field="owner",
            )
        async with self._wlog.operation_context(
            OperationType.TOKEN_RESOLUTION,
            address.chain.value,
            token=self._wlog.address(address.value),
        ) as ctx:
            if address.chain is ChainId.SOL:
                descriptor = await self._resolve_solana(address, owner)
            elif address.chain is ChainId.ETH:
                descriptor = await self._resolve_evm(address, owner)
            else:
                descriptor = await self._resolve_near(address, owner)
            ctx.metadata["symbol"] = descriptor.symbol
            ctx.metadata["has_metadata"] = descriptor.has_metadata
            return descriptor

    # ------------------------------------------------------------------
    # Solana
    # ------------------------------------------------------------------

    async def _resolve_solana(self, address: Address, owner: Optional[Address]) -> TokenDescriptor:
        mint = address.value
        account = await self._solana.get_parsed_account_info(mint)
        mint_info = _parsed_mint_info(account)
        if mint_info is None:
            raise UnknownTokenError(address.chain.value, mint)

        name, symbol, image = await self._solana_metadata(mint)
        balance = 0
        if owner is not None:
            balance = await self._safe_balance(self._solana.get_token_balance(owner.value, mint), address)

        return TokenDescriptor(
            address=address,
            symbol=symbol,
            name=name,
            decimals=int(mint_info["decimals"]),
            balance=balance,
            total_supply=int(mint_info.get("supply", 0)),
            image=image,
        )

    async def _solana_metadata(self, mint: str) -> tuple[str, str, Optional[str]]:
        """Name, symbol and image from the Metaplex metadata account."""
        try:
            pda = metadata_account_address(mint)
            data = await self._solana.get_account_data(pda)
            if not data:
                raise ValueError("No metadata account")
            metadata = parse_metaplex_metadata(data)
        except _METADATA_ERRORS as e:
            logger.debug(f"No Metaplex metadata for {mint}: {e}")
            return PLACEHOLDER_NAME, PLACEHOLDER_SYMBOL, None

        image = await self._fetch_image(metadata.uri) if metadata.uri else None
        return (
            metadata.name or PLACEHOLDER_NAME,
            metadata.symbol or PLACEHOLDER_SYMBOL,
            image,
        )

    async def _fetch_image(self, uri: str) -> Optional[str]:
        try:
            response = await self._http.get(uri)
            response.raise_for_status()
            document = response.json()
        except _METADATA_ERRORS as e:
            logger.debug(f"Metadata document at {uri} unavailable: {e}")
            return None
        image = document.get("image") if isinstance(document, dict) else None
        return image if isinstance(image, str) and image else None

    async def list_tokens(self, owner: Address) -> List[TokenDescriptor]:
        """Non-empty SPL token holdings of ``owner``, largest balance first."""
        if owner.chain is not ChainId.SOL:
            raise ValidationError("Token listing is only supported for Solana wallets", field="owner")

        accounts = await self._solana.get_token_accounts_by_owner(owner.value, program_id=TOKEN_PROGRAM_ID)
        tokens: List[TokenDescriptor] = []
        for account in accounts[: self._config.max_listed_token_accounts]:
            info = account["account"]["data"]["parsed"]["info"]
            amount = info["tokenAmount"]
            balance = int(amount["amount"])
            if balance == 0:
                continue
            mint = info["mint"]
            name, symbol, image = await self._solana_metadata(mint)
            tokens.append(
                TokenDescriptor(
                    address=Address(ChainId.SOL, mint),
                    symbol=symbol,
                    name=name,
                    decimals=int(amount["decimals"]),
                    balance=balance,
                    image=image,
                )
            )

        tokens.sort(key=lambda t: t.ui_balance, reverse=True)
        return tokens

    # ------------------------------------------------------------------
    # Ethereum
    # ------------------------------------------------------------------

    async def _resolve_evm(self, address: Address, owner: Optional[Address]) -> TokenDescriptor:
        token = address.value
        code = await self._evm.get_code(token)
        if not code:
            raise UnknownTokenError(address.chain.value, token)

        try:
            decimals = await self._evm.erc20_decimals(token)
        except (ValueError, TypeError) as e:
            raise UnknownTokenError(address.chain.value, token) from e

        try:
            total_supply: Optional[int] = await self._evm.erc20_total_supply(token)
        except _METADATA_ERRORS:
            total_supply = None

        name = await self._evm_text(self._evm.erc20_name(token), PLACEHOLDER_NAME)
        symbol = await self._evm_text(self._evm.erc20_symbol(token), PLACEHOLDER_SYMBOL)

        balance = 0
        if owner is not None:
            balance = await self._safe_balance(self._evm.get_token_balance(owner.value, token), address)

        return TokenDescriptor(
            address=address,
            symbol=symbol,
            name=name,
            decimals=decimals,
            balance=balance,
            total_supply=total_supply,
        )

    async def _evm_text(self, call, placeholder: str) -> str:
        try:
            value = await call
        except _METADATA_ERRORS as e:
            logger.debug(f"ERC-20 text field unavailable: {e}")
            return placeholder
        return value or placeholder

    # ------------------------------------------------------------------
    # NEAR
    # ------------------------------------------------------------------

    async def _resolve_near(self, address: Address, owner: Optional[Address]) -> TokenDescriptor:
        contract = address.value
        try:
            metadata = await self._near.ft_metadata(contract)
        except BridgeError as e:
            raise UnknownTokenError(address.chain.value, contract) from e

        try:
            total_supply: Optional[int] = await self._near.ft_total_supply(contract)
        except _METADATA_ERRORS:
            total_supply = None

        balance = 0
        if owner is not None:
            balance = await self._safe_balance(self._near.get_token_balance(owner.value, contract), address)

        return TokenDescriptor(
            address=address,
            symbol=metadata.get("symbol") or PLACEHOLDER_SYMBOL,
            name=metadata.get("name") or PLACEHOLDER_NAME,
            decimals=int(metadata.get("decimals", 0)),
            balance=balance,
            total_supply=total_supply,
            image=metadata.get("icon"),
        )

    # ------------------------------------------------------------------

    async def _safe_balance(self, call, token: Address) -> int:
        try:
            return int(await call)
        except _METADATA_ERRORS as e:
            logger.warning(f"Balance lookup for {token.omni} failed, using 0: {e}")
            return 0

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()


def _parsed_mint_info(account: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """Mint fields of a ``jsonParsed`` account, or None if it is not a mint."""
    if not account:
        return None
    data = account.get("data")
    if not isinstance(data, dict):
        return None
    parsed = data.get("parsed") or {}
    if parsed.get("type") != "mint":
        return None
    return parsed.get("info")


__all__ = ["TokenMetadataResolver"]
