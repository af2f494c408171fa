"""Escrow instruction builders.

Each builder validates caller input, derives the escrow PDA from the same
counter it encodes, and lists accounts in the order the program reads them.
Nothing here touches the network.
"""

from __future__ import annotations

import time
from typing import Callable, Optional, Sequence

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from .config import I64_MAX, MAX_DESCRIPTION_LEN, SYSTEM_PROGRAM_ID, U64_MAX
from .encoding import (
    encode_accept_escrow,
    encode_cancel_escrow,
    encode_complete_escrow,
    encode_create_escrow,
    encode_extend_escrow,
)
from .errors import ErrorCode, InvalidPayload, ValidationError
from .pda import derive_escrow_address
from .types import EscrowInstruction, EscrowRequest

SYSTEM_PROGRAM = Pubkey.from_string(SYSTEM_PROGRAM_ID)


def _check_description(description: str) -> None:
    if not description:
        raise ValidationError(ErrorCode.INVALID_DESCRIPTION, "description cannot be empty")
    size = len(description.encode("utf-8"))
    if size > MAX_DESCRIPTION_LEN:
        raise ValidationError(
            ErrorCode.DESCRIPTION_TOO_LONG,
            f"description is {size} bytes, max {MAX_DESCRIPTION_LEN}",
        )


def _extra_metas(remaining_accounts: Sequence[Pubkey]) -> list[AccountMeta]:
    return [AccountMeta(pubkey=a, is_signer=False, is_writable=False) for a in remaining_accounts]


class EscrowRequestBuilder:
    def __init__(self, program_id: Pubkey, clock: Optional[Callable[[], float]] = None):
        self.program_id = program_id
        self.clock = clock or time.time

    def _now(self) -> int:
        return int(self.clock())

    def _check_future(self, name: str, value: int) -> None:
        now = self._now()
        if int(value) <= now:
            raise ValidationError(
                ErrorCode.INVALID_EXPIRY, f"{name} {value} must be after current time {now}"
            )

    def _request(
        self,
        operation: EscrowInstruction,
        data: bytes,
        metas: list[AccountMeta],
        address: Pubkey,
        bump: int,
        creator: Pubkey,
        counter: int,
        fee_payer: Pubkey,
        remaining_accounts: Sequence[Pubkey],
    ) -> EscrowRequest:
        metas = metas + _extra_metas(remaining_accounts)
        signers = []
        for meta in metas:
            if meta.is_signer and meta.pubkey not in signers:
                signers.append(meta.pubkey)
        return EscrowRequest(
            operation=operation,
            instruction=Instruction(self.program_id, data, metas),
            address=address,
            bump=bump,
            creator=creator,
            counter=counter,
            fee_payer=fee_payer,
            signers=tuple(signers),
        )

    def validate_create(self, amount: int, description: str, expiry_time: int) -> None:
        """Check create arguments that do not depend on the counter."""
        _check_description(description)
        if amount <= 0:
            raise ValidationError(ErrorCode.INVALID_AMOUNT, "amount must be > 0")
        if amount > U64_MAX:
            raise InvalidPayload(
                ErrorCode.INTEGER_OUT_OF_RANGE, f"amount {amount} exceeds u64"
            )
        if expiry_time > I64_MAX:
            raise InvalidPayload(
                ErrorCode.INTEGER_OUT_OF_RANGE, f"expiry {expiry_time} exceeds i64"
            )
        self._check_future("expiry_time", expiry_time)

    def build_create(
        self,
        fee_payer: Pubkey,
        creator: Pubkey,
        counter: int,
        amount: int,
        description: str,
        expiry_time: int,
        remaining_accounts: Sequence[Pubkey] = (),
    ) -> EscrowRequest:
        self.validate_create(amount, description, expiry_time)

        address, bump = derive_escrow_address(self.program_id, creator, counter)
        data = encode_create_escrow(counter, amount, description, expiry_time)
        metas = [
            AccountMeta(pubkey=fee_payer, is_signer=True, is_writable=True),
            AccountMeta(pubkey=address, is_signer=False, is_writable=True),
            AccountMeta(pubkey=creator, is_signer=True, is_writable=True),
            AccountMeta(pubkey=SYSTEM_PROGRAM, is_signer=False, is_writable=False),
        ]
        return self._request(
            EscrowInstruction.CREATE_ESCROW, data, metas, address, bump,
            creator, counter, fee_payer, remaining_accounts,
        )

    def build_accept(
        self,
        fee_payer: Pubkey,
        taker: Pubkey,
        creator: Pubkey,
        counter: int,
        remaining_accounts: Sequence[Pubkey] = (),
    ) -> EscrowRequest:
        address, bump = derive_escrow_address(self.program_id, creator, counter)
        data = encode_accept_escrow(creator, counter)
        metas = [
            AccountMeta(pubkey=fee_payer, is_signer=True, is_writable=True),
            AccountMeta(pubkey=address, is_signer=False, is_writable=True),
            AccountMeta(pubkey=taker, is_signer=True, is_writable=True),
        ]
        return self._request(
            EscrowInstruction.ACCEPT_ESCROW, data, metas, address, bump,
            creator, counter, fee_payer, remaining_accounts,
        )

    def build_complete(
        self,
        fee_payer: Pubkey,
        authority: Pubkey,
        winner: Pubkey,
        creator: Pubkey,
        counter: int,
        remaining_accounts: Sequence[Pubkey] = (),
    ) -> EscrowRequest:
        # Winner eligibility (creator or taker) is enforced by the program.
        address, bump = derive_escrow_address(self.program_id, creator, counter)
        data = encode_complete_escrow(creator, counter)
        metas = [
            AccountMeta(pubkey=fee_payer, is_signer=True, is_writable=True),
            AccountMeta(pubkey=address, is_signer=False, is_writable=True),
            AccountMeta(pubkey=authority, is_signer=True, is_writable=False),
            AccountMeta(pubkey=winner, is_signer=False, is_writable=True),
        ]
        return self._request(
            EscrowInstruction.COMPLETE_ESCROW, data, metas, address, bump,
            creator, counter, fee_payer, remaining_accounts,
        )

    def build_cancel(
        self,
        fee_payer: Pubkey,
        creator: Pubkey,
        counter: int,
        remaining_accounts: Sequence[Pubkey] = (),
    ) -> EscrowRequest:
        address, bump = derive_escrow_address(self.program_id, creator, counter)
        data = encode_cancel_escrow(counter)
        metas = [
            AccountMeta(pubkey=fee_payer, is_signer=True, is_writable=True),
            AccountMeta(pubkey=address, is_signer=False, is_writable=True),
            AccountMeta(pubkey=creator, is_signer=True, is_writable=True),
        ]
        return self._request(
            EscrowInstruction.CANCEL_ESCROW, data, metas, address, bump,
            creator, counter, fee_payer, remaining_accounts,
        )

    def build_extend(
        self,
        fee_payer: Pubkey,
        creator: Pubkey,
        counter: int,
        new_expiry_time: int,
        remaining_accounts: Sequence[Pubkey] = (),
    ) -> EscrowRequest:
        self._check_future("new_expiry_time", new_expiry_time)
        address, bump = derive_escrow_address(self.program_id, creator, counter)
        data = encode_extend_escrow(counter, new_expiry_time)
        metas = [
            AccountMeta(pubkey=fee_payer, is_signer=True, is_writable=True),
            AccountMeta(pubkey=address, is_signer=False, is_writable=True),
            AccountMeta(pubkey=creator, is_signer=True, is_writable=False),
        ]
        return self._request(
            EscrowInstruction.EXTEND_ESCROW, data, metas, address, bump,
            creator, counter, fee_payer, remaining_accounts,
        )
