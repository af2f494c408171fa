"""Account reads and program-account scans."""

from __future__ import annotations

from dataclasses import replace

import pytest

from fake_ledger import NOW, FakeLedger
from fake_ledger import make_escrow as _escrow
from nescrow.config import ESCROW_ACCOUNT_SIZE
from nescrow.errors import ErrorCode, MalformedRecord
from nescrow.reader import EscrowReader, status_filters
from nescrow.test_accounts import CREATOR, OUTSIDER, PROGRAM_ID, TAKER
from nescrow.types import EscrowStatus, MemcmpFilter, ProgramAccount


def _seed(ledger: FakeLedger) -> dict:
    escrows = {
        "open": _escrow(1),
        "accepted": _escrow(2, EscrowStatus.ACCEPTED),
        "completed": _escrow(3, EscrowStatus.COMPLETED),
        "cancelled": _escrow(4, EscrowStatus.CANCELLED),
        "other_open": _escrow(1, creator=OUTSIDER),
    }
    return {name: ledger.put_escrow(e) for name, e in escrows.items()}


@pytest.mark.asyncio
async def test_get_by_address(ledger: FakeLedger, config) -> None:
    addresses = _seed(ledger)
    reader = EscrowReader(ledger, PROGRAM_ID, config)
    escrow = await reader.get_by_address(addresses["accepted"])
    assert escrow == _escrow(2, EscrowStatus.ACCEPTED)


@pytest.mark.asyncio
async def test_get_by_creator_and_counter(ledger: FakeLedger, config) -> None:
    _seed(ledger)
    reader = EscrowReader(ledger, PROGRAM_ID, config)
    assert await reader.get_by_creator_and_counter(CREATOR, 3) == _escrow(3, EscrowStatus.COMPLETED)
    assert await reader.get_by_creator_and_counter(CREATOR, 99) is None


@pytest.mark.asyncio
async def test_get_by_address_missing_and_empty(ledger: FakeLedger, config) -> None:
    reader = EscrowReader(ledger, PROGRAM_ID, config)
    assert await reader.get_by_address(OUTSIDER) is None
    ledger.put_raw(OUTSIDER, b"")
    assert await reader.get_by_address(OUTSIDER) is None


@pytest.mark.asyncio
async def test_get_by_address_malformed_raises(ledger: FakeLedger, config) -> None:
    ledger.put_raw(OUTSIDER, bytes(10))
    reader = EscrowReader(ledger, PROGRAM_ID, config)
    with pytest.raises(MalformedRecord):
        await reader.get_by_address(OUTSIDER)


def test_status_filters() -> None:
    assert status_filters(EscrowStatus.OPEN) == [
        MemcmpFilter(32, b"\x00"),
        MemcmpFilter(41, b"\x00"),
    ]
    assert status_filters(EscrowStatus.CANCELLED) == [
        MemcmpFilter(32, b"\x00"),
        MemcmpFilter(41, b"\x03"),
    ]
    assert status_filters(EscrowStatus.ACCEPTED) == [
        MemcmpFilter(32, b"\x01"),
        MemcmpFilter(73, b"\x01"),
    ]
    assert status_filters(EscrowStatus.COMPLETED) == [
        MemcmpFilter(32, b"\x01"),
        MemcmpFilter(73, b"\x02"),
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", list(EscrowStatus), ids=lambda s: s.name.lower())
async def test_scan_by_status(ledger: FakeLedger, config, status: EscrowStatus) -> None:
    _seed(ledger)
    reader = EscrowReader(ledger, PROGRAM_ID, config)
    accounts = await reader.scan_by_status(status)
    assert accounts
    assert all(a.escrow.status == status for a in accounts)
    assert ledger.program_account_filters[-1] == status_filters(status)


@pytest.mark.asyncio
async def test_scan_by_status_open_finds_both_creators(ledger: FakeLedger, config) -> None:
    addresses = _seed(ledger)
    reader = EscrowReader(ledger, PROGRAM_ID, config)
    found = {a.address for a in await reader.scan_by_status(EscrowStatus.OPEN)}
    assert found == {addresses["open"], addresses["other_open"]}


@pytest.mark.asyncio
async def test_scan_by_creator(ledger: FakeLedger, config) -> None:
    addresses = _seed(ledger)
    reader = EscrowReader(ledger, PROGRAM_ID, config)
    accounts = await reader.scan_by_creator(CREATOR)
    assert {a.address for a in accounts} == {
        addresses["open"], addresses["accepted"], addresses["completed"], addresses["cancelled"],
    }
    assert ledger.program_account_filters[-1] == [MemcmpFilter(0, bytes(CREATOR))]


@pytest.mark.asyncio
async def test_scan_results_revalidated(ledger: FakeLedger, config) -> None:
    # A node that ignores filters must not leak other records
    _seed(ledger)
    ledger.apply_filters = False
    reader = EscrowReader(ledger, PROGRAM_ID, config)
    assert all(a.escrow.creator == CREATOR for a in await reader.scan_by_creator(CREATOR))
    accepted = await reader.scan_by_status(EscrowStatus.ACCEPTED)
    assert [a.escrow.counter for a in accepted] == [2]


@pytest.mark.asyncio
async def test_scan_skips_undecodable_accounts(ledger: FakeLedger, config) -> None:
    addresses = _seed(ledger)
    ledger.put_raw(TAKER, bytes(ESCROW_ACCOUNT_SIZE))
    ledger.put_raw(OUTSIDER, bytes(10))
    reader = EscrowReader(ledger, PROGRAM_ID, config)
    accounts = await reader.scan_all()
    assert {a.address for a in accounts} == set(addresses.values())


@pytest.mark.asyncio
async def test_refresh_follows_forward_transition(ledger: FakeLedger, config) -> None:
    address = ledger.put_escrow(_escrow(1))
    reader = EscrowReader(ledger, PROGRAM_ID, config)
    before = ProgramAccount(address, await reader.get_by_address(address))

    ledger.put_escrow(_escrow(1, EscrowStatus.ACCEPTED))
    after = await reader.refresh(before)
    assert after.escrow.status == EscrowStatus.ACCEPTED

    ledger.put_escrow(_escrow(1, EscrowStatus.COMPLETED))
    assert (await reader.refresh(after)).escrow.status == EscrowStatus.COMPLETED


@pytest.mark.asyncio
async def test_refresh_rejects_regression(ledger: FakeLedger, config) -> None:
    address = ledger.put_escrow(_escrow(1, EscrowStatus.ACCEPTED))
    reader = EscrowReader(ledger, PROGRAM_ID, config)
    before = ProgramAccount(address, await reader.get_by_address(address))

    ledger.put_escrow(_escrow(1))
    with pytest.raises(MalformedRecord) as exc:
        await reader.refresh(before)
    assert exc.value.code == ErrorCode.STATUS_REGRESSION


@pytest.mark.asyncio
async def test_refresh_closed_account(ledger: FakeLedger, config) -> None:
    address = ledger.put_escrow(_escrow(1, EscrowStatus.CANCELLED))
    reader = EscrowReader(ledger, PROGRAM_ID, config)
    before = ProgramAccount(address, await reader.get_by_address(address))
    del ledger.accounts[address]
    assert await reader.refresh(before) is None


@pytest.mark.asyncio
async def test_refresh_same_status_other_fields(ledger: FakeLedger, config) -> None:
    address = ledger.put_escrow(_escrow(1))
    reader = EscrowReader(ledger, PROGRAM_ID, config)
    before = ProgramAccount(address, await reader.get_by_address(address))
    ledger.put_escrow(replace(_escrow(1), expiry_time=NOW + 7200))
    after = await reader.refresh(before)
    assert after.escrow.expiry_time == NOW + 7200
