"""`nescrow` command line interface."""

import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import click
import yaml
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .client import EscrowClient, lamports_from_sol
from .codec_adapter import account_to_json, escrow_to_json, instruction_to_json
from .config import ClientConfig
from .encoding import decode_instruction
from .errors import NescrowError
from .pda import derive_escrow_address
from .rpc import RpcClient
from .state_digest import compute_snapshot_digest
from .types import Commitment, EscrowStatus

logger = logging.getLogger("nescrow")

COMMITMENTS = [c.value for c in Commitment]
STATUSES = [s.name.lower() for s in EscrowStatus]


def load_keypair(path: str) -> Keypair:
    """Load a keypair file (JSON array of 64 secret key bytes)."""
    raw = json.loads(Path(path).expanduser().read_text())
    return Keypair.from_bytes(bytes(raw))


def _pubkey(value: str) -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except ValueError as e:
        raise click.BadParameter(f"not a base58 public key: {value}") from e


def _emit(data: Any) -> None:
    click.echo(yaml.safe_dump(data, sort_keys=False).rstrip())


def _program_id(config: ClientConfig) -> Pubkey:
    if not config.program_id:
        raise click.UsageError("program id required (--program-id or NESCROW_PROGRAM_ID)")
    return _pubkey(config.program_id)


def _run(config: ClientConfig, action: Callable[[EscrowClient], Awaitable[Any]]) -> Any:
    async def run() -> Any:
        async with RpcClient(config.rpc_url, config.request_timeout) as rpc:
            async with EscrowClient(rpc, _program_id(config), config) as client:
                return await action(client)

    try:
        return asyncio.run(run())
    except NescrowError as e:
        logger.error(f"{e.category.name.lower()} error: {e}")
        sys.exit(1)


@click.group()
@click.option("--rpc-url", default=None, help="Ledger JSON-RPC endpoint URL")
@click.option("--program-id", default=None, help="Escrow program id (base58)")
@click.option("--commitment", type=click.Choice(COMMITMENTS), default=None,
              help="Commitment level for reads and confirmation")
@click.option("--preload-counters", is_flag=True, help="Warm the counter cache at startup")
@click.option("--verbose", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(
    ctx: click.Context,
    rpc_url: Optional[str],
    program_id: Optional[str],
    commitment: Optional[str],
    preload_counters: bool,
    verbose: bool,
) -> None:
    """Build, submit and read escrow program requests."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    # Load config from environment, then override with CLI args
    config = ClientConfig.from_env()
    if rpc_url:
        config.rpc_url = rpc_url
    if program_id:
        config.program_id = program_id
    if commitment:
        config.commitment = Commitment.parse(commitment)
    if preload_counters:
        config.preload_counters = True
    ctx.obj = config


@main.command()
@click.argument("creator")
@click.argument("counter", type=int)
@click.pass_obj
def derive(config: ClientConfig, creator: str, counter: int) -> None:
    """Print the escrow address for CREATOR and COUNTER."""
    try:
        address, bump = derive_escrow_address(_program_id(config), _pubkey(creator), counter)
    except NescrowError as e:
        raise click.BadParameter(str(e)) from e
    _emit({"address": str(address), "bump": bump})


@main.command()
@click.argument("data_hex")
def inspect(data_hex: str) -> None:
    """Decode hex instruction data."""
    try:
        payload = decode_instruction(bytes.fromhex(data_hex))
    except ValueError as e:
        raise click.BadParameter(f"not hex: {e}") from e
    except NescrowError as e:
        raise click.ClickException(str(e)) from e
    _emit(instruction_to_json(payload))


@main.command()
@click.option("--address", default=None, help="Escrow account address")
@click.option("--creator", default=None, help="Creator public key")
@click.option("--counter", type=int, default=None, help="Escrow counter")
@click.pass_obj
def show(
    config: ClientConfig,
    address: Optional[str],
    creator: Optional[str],
    counter: Optional[int],
) -> None:
    """Show one escrow by address or by creator and counter."""
    if address is None and (creator is None or counter is None):
        raise click.UsageError("give --address, or --creator and --counter")

    async def action(client: EscrowClient):
        if address is not None:
            return await client.get_escrow(_pubkey(address))
        return await client.get_escrow_by_creator_and_counter(_pubkey(creator), counter)

    escrow = _run(config, action)
    if escrow is None:
        click.echo("escrow not found")
        sys.exit(2)
    _emit(escrow_to_json(escrow))


@main.command()
@click.option("--creator", default=None, help="Only escrows created by this key")
@click.option("--status", type=click.Choice(STATUSES), default=None,
              help="Only escrows in this status")
@click.pass_obj
def scan(config: ClientConfig, creator: Optional[str], status: Optional[str]) -> None:
    """List escrows, with a digest of the result."""

    async def action(client: EscrowClient):
        if creator is not None:
            accounts = await client.get_escrows_by_creator(_pubkey(creator))
        elif status is not None:
            return await client.get_escrows_by_status(EscrowStatus.parse(status))
        else:
            accounts = await client.reader.scan_all()
        if status is not None:
            accounts = [a for a in accounts if a.escrow.status == EscrowStatus.parse(status)]
        return accounts

    accounts = _run(config, action)
    _emit({
        "count": len(accounts),
        "digest": compute_snapshot_digest(accounts),
        "escrows": [account_to_json(a) for a in accounts],
    })


@main.command()
@click.option("--keypair", "keypair_path", required=True, help="Creator keypair file")
@click.option("--fee-payer", "fee_payer_path", default=None, help="Fee payer keypair file")
@click.option("--amount", required=True, help="Amount in SOL")
@click.option("--description", required=True, help="What the escrow is about")
@click.option("--expires-in", type=int, default=None, help="Seconds from now until expiry")
@click.option("--expiry", type=int, default=None, help="Expiry as Unix time")
@click.pass_obj
def create(
    config: ClientConfig,
    keypair_path: str,
    fee_payer_path: Optional[str],
    amount: str,
    description: str,
    expires_in: Optional[int],
    expiry: Optional[int],
) -> None:
    """Create an escrow."""
    if (expires_in is None) == (expiry is None):
        raise click.UsageError("give exactly one of --expires-in or --expiry")
    if expiry is None:
        expiry = int(time.time()) + expires_in
    creator = load_keypair(keypair_path)
    fee_payer = load_keypair(fee_payer_path) if fee_payer_path else None

    async def action(client: EscrowClient):
        lamports = lamports_from_sol(amount)
        return await client.create_escrow(creator, lamports, description, expiry, fee_payer)

    result = _run(config, action)
    _emit({
        "address": str(result.address),
        "counter": result.counter,
        "signature": result.signature,
    })


@main.command()
@click.option("--keypair", "keypair_path", required=True, help="Taker keypair file")
@click.option("--fee-payer", "fee_payer_path", default=None, help="Fee payer keypair file")
@click.argument("creator")
@click.argument("counter", type=int)
@click.pass_obj
def accept(
    config: ClientConfig,
    keypair_path: str,
    fee_payer_path: Optional[str],
    creator: str,
    counter: int,
) -> None:
    """Accept the escrow of CREATOR at COUNTER."""
    taker = load_keypair(keypair_path)
    fee_payer = load_keypair(fee_payer_path) if fee_payer_path else None
    handle = _run(
        config,
        lambda client: client.accept_escrow(_pubkey(creator), counter, taker, fee_payer),
    )
    _emit({"address": str(handle.address), "signature": handle.signature})


@main.command()
@click.option("--keypair", "keypair_path", required=True, help="Authority keypair file")
@click.option("--fee-payer", "fee_payer_path", default=None, help="Fee payer keypair file")
@click.option("--winner", required=True, help="Winner public key")
@click.argument("creator")
@click.argument("counter", type=int)
@click.pass_obj
def complete(
    config: ClientConfig,
    keypair_path: str,
    fee_payer_path: Optional[str],
    winner: str,
    creator: str,
    counter: int,
) -> None:
    """Pay out the escrow of CREATOR at COUNTER to --winner."""
    authority = load_keypair(keypair_path)
    fee_payer = load_keypair(fee_payer_path) if fee_payer_path else None
    handle = _run(
        config,
        lambda client: client.complete_escrow(
            _pubkey(creator), counter, authority, _pubkey(winner), fee_payer
        ),
    )
    _emit({"address": str(handle.address), "signature": handle.signature})


@main.command()
@click.option("--keypair", "keypair_path", required=True, help="Creator keypair file")
@click.option("--fee-payer", "fee_payer_path", default=None, help="Fee payer keypair file")
@click.argument("counter", type=int)
@click.pass_obj
def cancel(
    config: ClientConfig, keypair_path: str, fee_payer_path: Optional[str], counter: int
) -> None:
    """Cancel your open escrow at COUNTER."""
    creator = load_keypair(keypair_path)
    fee_payer = load_keypair(fee_payer_path) if fee_payer_path else None
    handle = _run(config, lambda client: client.cancel_escrow(creator, counter, fee_payer))
    _emit({"address": str(handle.address), "signature": handle.signature})


@main.command()
@click.option("--keypair", "keypair_path", required=True, help="Creator keypair file")
@click.option("--fee-payer", "fee_payer_path", default=None, help="Fee payer keypair file")
@click.option("--expiry", type=int, required=True, help="New expiry as Unix time")
@click.argument("counter", type=int)
@click.pass_obj
def extend(
    config: ClientConfig,
    keypair_path: str,
    fee_payer_path: Optional[str],
    expiry: int,
    counter: int,
) -> None:
    """Move the expiry of your escrow at COUNTER."""
    creator = load_keypair(keypair_path)
    fee_payer = load_keypair(fee_payer_path) if fee_payer_path else None
    handle = _run(
        config, lambda client: client.extend_escrow(creator, counter, expiry, fee_payer)
    )
    _emit({"address": str(handle.address), "signature": handle.signature})


if __name__ == "__main__":
    main()
