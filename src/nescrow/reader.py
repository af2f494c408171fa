"""Fetch and decode escrow accounts."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from solders.pubkey import Pubkey

from .config import (
    CREATOR_OFFSET,
    STATUS_OFFSET_NO_TAKER,
    STATUS_OFFSET_WITH_TAKER,
    TAKER_FLAG_OFFSET,
    ClientConfig,
)
from .encoding import decode_escrow
from .errors import ErrorCode, MalformedRecord
from .pda import derive_escrow_address
from .types import Commitment, Escrow, EscrowStatus, MemcmpFilter, ProgramAccount

logger = logging.getLogger(__name__)


def status_filters(status: EscrowStatus) -> List[MemcmpFilter]:
    """Memcmp filters selecting accounts in `status`.

    The taker option precedes the status byte, so the status offset depends
    on whether a taker is present, which the status itself determines.
    """
    if status.has_taker:
        return [
            MemcmpFilter(TAKER_FLAG_OFFSET, b"\x01"),
            MemcmpFilter(STATUS_OFFSET_WITH_TAKER, bytes([status])),
        ]
    return [
        MemcmpFilter(TAKER_FLAG_OFFSET, b"\x00"),
        MemcmpFilter(STATUS_OFFSET_NO_TAKER, bytes([status])),
    ]


def _decode_accounts(raw: Iterable[Tuple[Pubkey, bytes]]) -> List[ProgramAccount]:
    accounts = []
    for address, data in raw:
        try:
            escrow = decode_escrow(data)
        except MalformedRecord as e:
            logger.debug(f"Skipping undecodable account {address}: {e}")
            continue
        if escrow is None:
            continue
        accounts.append(ProgramAccount(address=address, escrow=escrow))
    return accounts


class EscrowReader:
    def __init__(self, rpc, program_id: Pubkey, config: Optional[ClientConfig] = None):
        self.rpc = rpc
        self.program_id = program_id
        self.config = config or ClientConfig()

    def _commitment(self, commitment: Optional[Commitment]) -> Commitment:
        return commitment or self.config.commitment

    async def get_by_address(
        self, address: Pubkey, commitment: Optional[Commitment] = None
    ) -> Optional[Escrow]:
        data = await self.rpc.get_account_info(address, self._commitment(commitment))
        if not data:
            return None
        return decode_escrow(data)

    async def get_by_creator_and_counter(
        self, creator: Pubkey, counter: int, commitment: Optional[Commitment] = None
    ) -> Optional[Escrow]:
        address, _ = derive_escrow_address(self.program_id, creator, counter)
        return await self.get_by_address(address, commitment)

    async def _scan(
        self, filters: Sequence[MemcmpFilter], commitment: Optional[Commitment]
    ) -> List[ProgramAccount]:
        raw = await self.rpc.get_program_accounts(
            self.program_id, filters, self._commitment(commitment)
        )
        return _decode_accounts(raw)

    async def scan_all(self, commitment: Optional[Commitment] = None) -> List[ProgramAccount]:
        return await self._scan([], commitment)

    async def scan_by_creator(
        self, creator: Pubkey, commitment: Optional[Commitment] = None
    ) -> List[ProgramAccount]:
        accounts = await self._scan([MemcmpFilter(CREATOR_OFFSET, bytes(creator))], commitment)
        return [a for a in accounts if a.escrow.creator == creator]

    async def scan_by_status(
        self, status: EscrowStatus, commitment: Optional[Commitment] = None
    ) -> List[ProgramAccount]:
        status = EscrowStatus(status)
        accounts = await self._scan(status_filters(status), commitment)
        return [a for a in accounts if a.escrow.status == status]

    async def refresh(
        self, previous: ProgramAccount, commitment: Optional[Commitment] = None
    ) -> Optional[ProgramAccount]:
        """Re-read `previous.address`, rejecting a backward status change."""
        escrow = await self.get_by_address(previous.address, commitment)
        if escrow is None:
            return None
        if not previous.escrow.status.can_transition_to(escrow.status):
            raise MalformedRecord(
                ErrorCode.STATUS_REGRESSION,
                f"escrow {previous.address} went from {previous.escrow.status.name} "
                f"to {escrow.status.name}",
            )
        return ProgramAccount(address=previous.address, escrow=escrow)
