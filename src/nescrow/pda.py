"""Escrow program-derived addresses.

Seeds, in order: the namespace tag `b"escrow"`, the creator's 32-byte key and
the counter as a little-endian u64. The bump is the first value, counting
down from 255, that puts the derived point off the ed25519 curve.
"""

from __future__ import annotations

from typing import List, Tuple

from solders.pubkey import Pubkey

from .config import ESCROW_SEED, U64_MAX
from .encoding import PubkeyLike, pubkey_bytes
from .errors import ErrorCode, MalformedRecord, ValidationError
from .types import Escrow


def _as_pubkey(name: str, value: PubkeyLike) -> Pubkey:
    if isinstance(value, Pubkey):
        return value
    return Pubkey.from_bytes(pubkey_bytes(name, value))


def escrow_seeds(creator: PubkeyLike, counter: int) -> List[bytes]:
    if counter < 0 or counter > U64_MAX:
        raise ValidationError(ErrorCode.INVALID_COUNTER, f"counter {counter} is not a u64")
    return [
        ESCROW_SEED,
        pubkey_bytes("creator", creator),
        int(counter).to_bytes(8, "little", signed=False),
    ]


def derive_escrow_address(
    program_id: PubkeyLike, creator: PubkeyLike, counter: int
) -> Tuple[Pubkey, int]:
    """Return `(address, bump)` for the escrow of `creator` at `counter`."""
    seeds = escrow_seeds(creator, counter)
    return Pubkey.find_program_address(seeds, _as_pubkey("program_id", program_id))


def verify_escrow_address(program_id: PubkeyLike, escrow: Escrow) -> Pubkey:
    """Re-derive a decoded escrow's address and check its stored bump."""
    address, bump = derive_escrow_address(program_id, escrow.creator, escrow.counter)
    if bump != escrow.escrow_bump:
        raise MalformedRecord(
            ErrorCode.BUMP_MISMATCH,
            f"stored bump {escrow.escrow_bump} does not match derived bump {bump}",
        )
    return address
