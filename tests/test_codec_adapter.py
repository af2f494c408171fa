"""JSON views of records and instruction payloads."""

from __future__ import annotations

from fake_ledger import make_escrow
from nescrow.codec_adapter import (
    account_to_json,
    escrow_from_json,
    escrow_to_json,
    instruction_from_json,
    instruction_to_json,
)
from nescrow.test_accounts import CREATOR, TAKER
from nescrow.types import (
    AcceptEscrowArgs,
    EscrowInstruction,
    EscrowStatus,
    InstructionPayload,
    ProgramAccount,
)


def test_escrow_json_shape() -> None:
    data = escrow_to_json(make_escrow(2, EscrowStatus.COMPLETED))
    assert data["creator"] == str(CREATOR)
    assert data["taker"] == str(TAKER)
    assert data["winner"] == str(TAKER)
    assert data["status"] == "completed"
    assert data["counter"] == 2


def test_escrow_json_optional_keys_are_null() -> None:
    data = escrow_to_json(make_escrow(1))
    assert data["taker"] is None
    assert data["winner"] is None
    assert escrow_from_json(data) == make_escrow(1)


def test_account_json_includes_address() -> None:
    account = ProgramAccount(TAKER, make_escrow(1))
    data = account_to_json(account)
    assert data["address"] == str(TAKER)
    assert data["description"] == "bet 1"


def test_instruction_json() -> None:
    payload = InstructionPayload(EscrowInstruction.ACCEPT_ESCROW, AcceptEscrowArgs(CREATOR, 4))
    data = instruction_to_json(payload)
    assert data == {"kind": "accept_escrow", "args": {"creator": str(CREATOR), "counter": 4}}
    assert instruction_from_json(data) == payload
