"""High-level escrow client.

`EscrowClient` owns the counter cache and wires the builder, submitter and
reader to one RPC transport:

    async with EscrowClient(rpc, program_id, config) as client:
        result = await client.create_escrow(creator, 500_000_000, "A vs B", expiry)
        escrow = await client.get_escrow(result.address)
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal, InvalidOperation
from typing import Callable, List, Optional, Sequence, Union

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .config import LAMPORTS_PER_SOL, ClientConfig
from .errors import ErrorCode, RpcError, ValidationError
from .instructions import EscrowRequestBuilder
from .reader import EscrowReader
from .sequence import SequenceCache
from .submission import Submitter
from .types import (
    Commitment,
    ConfirmationHandle,
    CreateEscrowResult,
    Escrow,
    EscrowStatus,
    ProgramAccount,
)

logger = logging.getLogger(__name__)


def lamports_from_sol(value: Union[int, str, Decimal]) -> int:
    """Convert a SOL amount to lamports, rejecting fractional lamports."""
    try:
        lamports = Decimal(str(value)) * LAMPORTS_PER_SOL
    except InvalidOperation as e:
        raise ValidationError(ErrorCode.INVALID_AMOUNT, f"not a number: {value!r}") from e
    if lamports != lamports.to_integral_value():
        raise ValidationError(ErrorCode.INVALID_AMOUNT, f"{value} SOL is not whole lamports")
    return int(lamports)


class EscrowClient:
    def __init__(
        self,
        rpc,
        program_id: Pubkey,
        config: Optional[ClientConfig] = None,
        cache: Optional[SequenceCache] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.rpc = rpc
        self.program_id = program_id
        self.config = config or ClientConfig()
        self.cache = cache or SequenceCache()
        self.builder = EscrowRequestBuilder(program_id, clock=clock)
        self.submitter = Submitter(rpc, self.config)
        self.reader = EscrowReader(rpc, program_id, self.config)
        self._preload: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "EscrowClient":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    def start(self) -> None:
        """Schedule the counter preload if configured."""
        if self.config.preload_counters and self._preload is None:
            self._preload = asyncio.ensure_future(self.preload_counters())

    async def stop(self) -> None:
        if self._preload is not None and not self._preload.done():
            self._preload.cancel()
            try:
                await self._preload
            except asyncio.CancelledError:
                pass

    async def preload_counters(self) -> int:
        """Warm the counter cache from every escrow visible on the network.

        Returns the number of escrows seen. Failures are logged; the cache
        then simply starts from what it already holds.
        """
        try:
            accounts = await self.reader.scan_all()
        except RpcError as e:
            logger.error(f"Failed to preload counters: {e}")
            return 0
        for account in accounts:
            self.cache.warm(account.escrow.creator, account.escrow.counter)
        logger.info(f"Preloaded counters from {len(accounts)} escrows")
        return len(accounts)

    async def _reserve(self, creator: Pubkey) -> int:
        if self._preload is not None and not self._preload.done():
            await asyncio.shield(self._preload)
        return await self.cache.reserve_next(creator)

    # --- Operations ---

    async def create_escrow(
        self,
        creator: Keypair,
        amount: int,
        description: str,
        expiry_time: int,
        fee_payer: Optional[Keypair] = None,
        remaining_accounts: Sequence[Pubkey] = (),
    ) -> CreateEscrowResult:
        fee_payer = fee_payer or creator
        self.builder.validate_create(amount, description, expiry_time)
        counter = await self._reserve(creator.pubkey())
        request = self.builder.build_create(
            fee_payer.pubkey(),
            creator.pubkey(),
            counter,
            amount,
            description,
            expiry_time,
            remaining_accounts,
        )
        handle = await self.submitter.submit(request, [fee_payer, creator])
        return CreateEscrowResult(address=request.address, counter=counter, handle=handle)

    async def accept_escrow(
        self,
        creator: Pubkey,
        counter: int,
        taker: Keypair,
        fee_payer: Optional[Keypair] = None,
        remaining_accounts: Sequence[Pubkey] = (),
    ) -> ConfirmationHandle:
        fee_payer = fee_payer or taker
        request = self.builder.build_accept(
            fee_payer.pubkey(), taker.pubkey(), creator, counter, remaining_accounts
        )
        return await self.submitter.submit(request, [fee_payer, taker])

    async def complete_escrow(
        self,
        creator: Pubkey,
        counter: int,
        authority: Keypair,
        winner: Pubkey,
        fee_payer: Optional[Keypair] = None,
        remaining_accounts: Sequence[Pubkey] = (),
    ) -> ConfirmationHandle:
        fee_payer = fee_payer or authority
        request = self.builder.build_complete(
            fee_payer.pubkey(), authority.pubkey(), winner, creator, counter, remaining_accounts
        )
        return await self.submitter.submit(request, [fee_payer, authority])

    async def cancel_escrow(
        self,
        creator: Keypair,
        counter: int,
        fee_payer: Optional[Keypair] = None,
        remaining_accounts: Sequence[Pubkey] = (),
    ) -> ConfirmationHandle:
        fee_payer = fee_payer or creator
        request = self.builder.build_cancel(
            fee_payer.pubkey(), creator.pubkey(), counter, remaining_accounts
        )
        return await self.submitter.submit(request, [fee_payer, creator])

    async def extend_escrow(
        self,
        creator: Keypair,
        counter: int,
        new_expiry_time: int,
        fee_payer: Optional[Keypair] = None,
        remaining_accounts: Sequence[Pubkey] = (),
    ) -> ConfirmationHandle:
        fee_payer = fee_payer or creator
        request = self.builder.build_extend(
            fee_payer.pubkey(), creator.pubkey(), counter, new_expiry_time, remaining_accounts
        )
        return await self.submitter.submit(request, [fee_payer, creator])

    # --- Getters ---

    async def get_escrow(
        self, address: Pubkey, commitment: Optional[Commitment] = None
    ) -> Optional[Escrow]:
        return await self.reader.get_by_address(address, commitment)

    async def get_escrow_by_creator_and_counter(
        self, creator: Pubkey, counter: int, commitment: Optional[Commitment] = None
    ) -> Optional[Escrow]:
        return await self.reader.get_by_creator_and_counter(creator, counter, commitment)

    async def get_escrows_by_creator(self, creator: Pubkey) -> List[ProgramAccount]:
        return await self.reader.scan_by_creator(creator)

    async def get_escrows_by_status(self, status: EscrowStatus) -> List[ProgramAccount]:
        return await self.reader.scan_by_status(status)

    async def get_open_escrows(self) -> List[ProgramAccount]:
        return await self.reader.scan_by_status(EscrowStatus.OPEN)
