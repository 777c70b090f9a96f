"""
omnibridge CLI.

Usage:
    omnibridge [OPTIONS] COMMAND [ARGS]...

Addresses are given in Omni form, ``<chain>:<address>``, e.g.
``sol:So11111111111111111111111111111111111111112`` or ``near:alice.testnet``.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import NetworkMode, load_config
from .errors import BridgeError
from .models import Address, ChainId, TokenDescriptor, TransferStatus
from .orchestrator import BridgeOrchestrator
from .units import format_units

console = Console()


def _parse_address(ctx, param, value: Optional[str]) -> Optional[Address]:
    if value is None:
        return None
    try:
        return Address.parse(value)
    except BridgeError as e:
        raise click.BadParameter(e.message, ctx=ctx, param=param) from e


def _run(ctx: click.Context, operation: Callable[[BridgeOrchestrator], Awaitable[Any]]) -> Any:
    """Run ``operation`` against a fresh orchestrator, exiting 1 on bridge errors."""
    factory = ctx.obj.get("orchestrator_factory", BridgeOrchestrator)

    async def main():
        async with factory(ctx.obj["config"]) as bridge:
            return await operation(bridge)

    try:
        return asyncio.run(main())
    except BridgeError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        if ctx.obj.get("verbose"):
            console.print(e.to_dict())
        ctx.exit(1)


def _token_table(title: str, tokens: list[TokenDescriptor]) -> Table:
    table = Table(title=title)
    table.add_column("Symbol", style="cyan")
    table.add_column("Name")
    table.add_column("Address")
    table.add_column("Decimals", justify="right")
    table.add_column("Balance", justify="right")
    for token in tokens:
        table.add_row(
            token.symbol,
            token.name,
            token.address.value,
            str(token.decimals),
            format_units(token.balance, token.decimals),
        )
    return table


@click.group()
@click.version_option(package_name="omnibridge", message="%(prog)s %(version)s")
@click.option(
    "--network",
    type=click.Choice([m.value for m in NetworkMode]),
    envvar="OMNIBRIDGE_NETWORK",
    default=NetworkMode.TESTNET.value,
    show_default=True,
    help="Bridge deployment",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx, network: str, verbose: bool):
    """omnibridge - move tokens from Solana and Ethereum to NEAR."""
    ctx.ensure_object(dict)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    ctx.obj["config"] = load_config(network)
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("address", callback=_parse_address)
@click.option("--owner", callback=_parse_address, help="Show this account's balance")
@click.pass_context
def token(ctx, address: Address, owner: Optional[Address]):
    """Show metadata of a token."""
    descriptor = _run(ctx, lambda bridge: bridge.resolve_token(address, owner))

    console.print(f"\n[bold blue]{descriptor.name}[/bold blue] ([cyan]{descriptor.symbol}[/cyan])\n")
    console.print(f"Address: {descriptor.address.omni}")
    console.print(f"Decimals: {descriptor.decimals}")
    if descriptor.total_supply is not None:
        console.print(f"Total supply: {format_units(descriptor.total_supply, descriptor.decimals)}")
    if owner is not None:
        console.print(f"Balance of {owner.value}: {format_units(descriptor.balance, descriptor.decimals)}")
    if descriptor.image:
        console.print(f"Image: {descriptor.image}")
    if not descriptor.has_metadata:
        console.print("[yellow]No metadata found for this token[/yellow]")
    console.print()


@cli.command()
@click.argument("owner", callback=_parse_address)
@click.pass_context
def tokens(ctx, owner: Address):
    """List the SPL tokens held by a Solana wallet."""
    held = _run(ctx, lambda bridge: bridge.list_tokens(owner))
    if not held:
        console.print("[yellow]No tokens found[/yellow]")
        return
    console.print(_token_table(f"Tokens of {owner.value}", held))


@cli.command()
@click.argument("address", callback=_parse_address)
@click.pass_context
def balance(ctx, address: Address):
    """Show the native balance of an account."""
    raw = _run(ctx, lambda bridge: bridge.get_native_balance(address))
    settings = ctx.obj["config"].get_chain(address.chain)
    console.print(f"{format_units(raw, settings.native_decimals)} {settings.native_symbol}")


@cli.command()
@click.argument("sender", callback=_parse_address)
@click.argument("recipient", callback=_parse_address)
@click.argument("token_address", metavar="TOKEN", callback=_parse_address)
@click.pass_context
def fee(ctx, sender: Address, recipient: Address, token_address: Address):
    """Quote the bridge fee for a route."""
    quote = _run(ctx, lambda bridge: bridge.estimate_fee(sender, recipient, token_address))
    native = ctx.obj["config"].get_chain(sender.chain)

    console.print("\n[bold blue]Fee Estimate[/bold blue]\n")
    console.print(f"Token fee: {quote.token_fee} (smallest units)")
    console.print(f"Native fee: {format_units(quote.native_fee, native.native_decimals)} {native.native_symbol}")
    if quote.usd_fee is not None:
        console.print(f"USD fee: ${quote.usd_fee}")
    console.print()


@cli.command("check-registration")
@click.argument("sender", callback=_parse_address)
@click.argument("token_address", metavar="TOKEN", callback=_parse_address)
@click.argument("recipient", callback=_parse_address)
@click.pass_context
def check_registration(ctx, sender: Address, token_address: Address, recipient: Address):
    """Check whether a token is registered on NEAR."""
    status = _run(ctx, lambda bridge: bridge.check_registration(sender, token_address, recipient))
    if status.is_registered:
        console.print(f"[green]✓ {token_address.omni} is registered[/green]")
    else:
        console.print(f"[yellow]{token_address.omni} is not registered[/yellow]")


@cli.command()
@click.argument("tx_id")
@click.pass_context
def vaa(ctx, tx_id: str):
    """Fetch the Wormhole VAA of a source transaction."""
    attestation = _run(ctx, lambda bridge: bridge.get_attestation(tx_id))
    console.print(f"[bold]VAA ({attestation.network})[/bold]")
    console.print(attestation.payload_hex, soft_wrap=True)


@cli.command()
@click.argument("origin_chain", type=click.Choice([c.value for c in ChainId if c.is_source]))
@click.argument("origin_nonce", type=int)
@click.pass_context
def status(ctx, origin_chain: str, origin_nonce: int):
    """Show the delivery status of a transfer."""
    chain = ChainId(origin_chain)
    transfer_status = _run(ctx, lambda bridge: bridge.get_transfer_status(chain, origin_nonce))
    if transfer_status is TransferStatus.FAILED:
        style = "red"
    else:
        style = "green" if transfer_status.is_terminal else "cyan"
    console.print(f"Transfer {chain.api_name}:{origin_nonce}: [{style}]{transfer_status.value}[/{style}]")


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
