"""Core types for the nescrow client.

Identities are `solders.pubkey.Pubkey`; amounts are lamports (u64); times
are Unix seconds (i64).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional, Tuple, Union

from solders.instruction import Instruction
from solders.pubkey import Pubkey


class EscrowStatus(IntEnum):
    OPEN = 0
    ACCEPTED = 1
    COMPLETED = 2
    CANCELLED = 3

    def can_transition_to(self, other: "EscrowStatus") -> bool:
        """True if `other` is this status or reachable from it."""
        return other == self or other in _STATUS_SUCCESSORS[self]

    @property
    def is_terminal(self) -> bool:
        return not _NEXT_STATUS[self]

    @property
    def has_taker(self) -> bool:
        return self in (EscrowStatus.ACCEPTED, EscrowStatus.COMPLETED)

    @classmethod
    def parse(cls, value: str) -> "EscrowStatus":
        return cls[value.strip().upper()]


_NEXT_STATUS = {
    EscrowStatus.OPEN: frozenset({EscrowStatus.ACCEPTED, EscrowStatus.CANCELLED}),
    EscrowStatus.ACCEPTED: frozenset({EscrowStatus.COMPLETED}),
    EscrowStatus.COMPLETED: frozenset(),
    EscrowStatus.CANCELLED: frozenset(),
}

_STATUS_SUCCESSORS = {
    EscrowStatus.OPEN: frozenset({
        EscrowStatus.ACCEPTED,
        EscrowStatus.CANCELLED,
        EscrowStatus.COMPLETED,
    }),
    EscrowStatus.ACCEPTED: frozenset({EscrowStatus.COMPLETED}),
    EscrowStatus.COMPLETED: frozenset(),
    EscrowStatus.CANCELLED: frozenset(),
}


class EscrowInstruction(IntEnum):
    CREATE_ESCROW = 0
    ACCEPT_ESCROW = 1
    COMPLETE_ESCROW = 2
    CANCEL_ESCROW = 3
    EXTEND_ESCROW = 4

    @property
    def label(self) -> str:
        return self.name.lower()


class Commitment(Enum):
    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"

    @property
    def rank(self) -> int:
        return _COMMITMENT_RANK[self]

    def satisfied_by(self, reported: Optional[str]) -> bool:
        """True if a node-reported confirmation status meets this level."""
        if reported is None:
            return False
        try:
            return Commitment(reported).rank >= self.rank
        except ValueError:
            return False

    @classmethod
    def parse(cls, value: str) -> "Commitment":
        return cls(value.strip().lower())


_COMMITMENT_RANK = {
    Commitment.PROCESSED: 0,
    Commitment.CONFIRMED: 1,
    Commitment.FINALIZED: 2,
}


# --- Account state ---


@dataclass(frozen=True)
class Escrow:
    creator: Pubkey
    taker: Optional[Pubkey]
    amount: int
    status: EscrowStatus
    winner: Optional[Pubkey]
    description: str
    expiry_time: int
    escrow_bump: int
    counter: int


@dataclass(frozen=True)
class ProgramAccount:
    address: Pubkey
    escrow: Escrow


@dataclass(frozen=True)
class MemcmpFilter:
    offset: int
    data: bytes


# --- Instruction payloads ---


@dataclass(frozen=True)
class CreateEscrowArgs:
    counter: int
    amount: int
    description: str
    expiry_time: int


@dataclass(frozen=True)
class AcceptEscrowArgs:
    creator: Pubkey
    counter: int


@dataclass(frozen=True)
class CompleteEscrowArgs:
    creator: Pubkey
    counter: int


@dataclass(frozen=True)
class CancelEscrowArgs:
    counter: int


@dataclass(frozen=True)
class ExtendEscrowArgs:
    counter: int
    new_expiry_time: int


InstructionArgs = Union[
    CreateEscrowArgs,
    AcceptEscrowArgs,
    CompleteEscrowArgs,
    CancelEscrowArgs,
    ExtendEscrowArgs,
]


@dataclass(frozen=True)
class InstructionPayload:
    kind: EscrowInstruction
    args: InstructionArgs


# --- Requests and results ---


@dataclass(frozen=True)
class EscrowRequest:
    """A fully built, unsigned escrow instruction."""
    operation: EscrowInstruction
    instruction: Instruction
    address: Pubkey
    bump: int
    creator: Pubkey
    counter: int
    fee_payer: Pubkey
    signers: Tuple[Pubkey, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ConfirmationHandle:
    signature: str
    operation: EscrowInstruction
    address: Pubkey
    commitment: Commitment
    slot: Optional[int] = None


@dataclass(frozen=True)
class CreateEscrowResult:
    address: Pubkey
    counter: int
    handle: ConfirmationHandle

    @property
    def signature(self) -> str:
        return self.handle.signature
