"""Snapshot digest over scanned accounts."""

from __future__ import annotations

from dataclasses import replace

from fake_ledger import make_escrow
from nescrow.pda import derive_escrow_address
from nescrow.state_digest import compute_snapshot_digest
from nescrow.test_accounts import CREATOR, PROGRAM_ID
from nescrow.types import EscrowStatus, ProgramAccount


def _account(counter: int, status: EscrowStatus = EscrowStatus.OPEN) -> ProgramAccount:
    address, _ = derive_escrow_address(PROGRAM_ID, CREATOR, counter)
    return ProgramAccount(address, make_escrow(counter, status))


def test_empty_snapshot() -> None:
    digest = compute_snapshot_digest([])
    assert len(digest) == 64
    assert digest == compute_snapshot_digest(iter(()))


def test_order_independent() -> None:
    accounts = [_account(1), _account(2, EscrowStatus.ACCEPTED), _account(3)]
    assert compute_snapshot_digest(accounts) == compute_snapshot_digest(accounts[::-1])


def test_sensitive_to_record_contents() -> None:
    base = [_account(1), _account(2)]
    changed = [base[0], replace(base[1], escrow=replace(base[1].escrow, amount=1))]
    assert compute_snapshot_digest(base) != compute_snapshot_digest(changed)


def test_sensitive_to_membership() -> None:
    accounts = [_account(1), _account(2)]
    assert compute_snapshot_digest(accounts) != compute_snapshot_digest(accounts[:1])
