"""Canonical digest of a set of escrow accounts (v1)."""
from __future__ import annotations

from typing import Iterable

from blake3 import blake3

from .encoding import encode_escrow
from .types import ProgramAccount


def _u64_le(value: int) -> bytes:
    if value < 0:
        raise ValueError("u64 must be non-negative")
    return int(value).to_bytes(8, "little", signed=False)


def compute_snapshot_digest(accounts: Iterable[ProgramAccount]) -> str:
    """Compute snapshot digest v1 over scanned accounts.

    Accounts are sorted by address bytes; each contributes its address, the
    length of its encoded record and the record bytes (without padding).
    Two scans of the same state yield the same digest regardless of the
    order the node returned them in.
    """
    entries = sorted(((bytes(a.address), a.escrow) for a in accounts), key=lambda x: x[0])
    buf = bytearray()
    buf += _u64_le(len(entries))
    for address, escrow in entries:
        data = encode_escrow(escrow)
        buf += address
        buf += _u64_le(len(data))
        buf += data
    return blake3(buf).hexdigest()
