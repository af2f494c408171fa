"""Convert escrow records and instruction payloads to plain JSON values.

Public keys are base58 strings, optional keys are `None`, statuses and
instruction kinds are lower-case names. Used for CLI output and fixtures.
"""

from __future__ import annotations

from dataclasses import fields
from typing import Any, Dict, Optional

from solders.pubkey import Pubkey

from .types import (
    AcceptEscrowArgs,
    CancelEscrowArgs,
    CompleteEscrowArgs,
    CreateEscrowArgs,
    Escrow,
    EscrowInstruction,
    EscrowStatus,
    ExtendEscrowArgs,
    InstructionPayload,
    ProgramAccount,
)

ARGS_TYPES = {
    EscrowInstruction.CREATE_ESCROW: CreateEscrowArgs,
    EscrowInstruction.ACCEPT_ESCROW: AcceptEscrowArgs,
    EscrowInstruction.COMPLETE_ESCROW: CompleteEscrowArgs,
    EscrowInstruction.CANCEL_ESCROW: CancelEscrowArgs,
    EscrowInstruction.EXTEND_ESCROW: ExtendEscrowArgs,
}

PUBKEY_FIELDS = {"creator", "taker", "winner"}


def _key_to_json(value: Optional[Pubkey]) -> Optional[str]:
    return None if value is None else str(value)


def _key_from_json(value: Optional[str]) -> Optional[Pubkey]:
    return None if value is None else Pubkey.from_string(value)


def escrow_to_json(escrow: Escrow) -> Dict[str, Any]:
    return {
        "creator": str(escrow.creator),
        "taker": _key_to_json(escrow.taker),
        "amount": escrow.amount,
        "status": escrow.status.name.lower(),
        "winner": _key_to_json(escrow.winner),
        "description": escrow.description,
        "expiry_time": escrow.expiry_time,
        "escrow_bump": escrow.escrow_bump,
        "counter": escrow.counter,
    }


def escrow_from_json(data: Dict[str, Any]) -> Escrow:
    return Escrow(
        creator=Pubkey.from_string(data["creator"]),
        taker=_key_from_json(data.get("taker")),
        amount=int(data["amount"]),
        status=EscrowStatus.parse(data["status"]),
        winner=_key_from_json(data.get("winner")),
        description=data["description"],
        expiry_time=int(data["expiry_time"]),
        escrow_bump=int(data["escrow_bump"]),
        counter=int(data["counter"]),
    )


def account_to_json(account: ProgramAccount) -> Dict[str, Any]:
    return {"address": str(account.address), **escrow_to_json(account.escrow)}


def instruction_to_json(payload: InstructionPayload) -> Dict[str, Any]:
    args = {}
    for f in fields(payload.args):
        value = getattr(payload.args, f.name)
        args[f.name] = str(value) if isinstance(value, Pubkey) else value
    return {"kind": payload.kind.label, "args": args}


def instruction_from_json(data: Dict[str, Any]) -> InstructionPayload:
    kind = EscrowInstruction[data["kind"].upper()]
    cls = ARGS_TYPES[kind]
    raw = data.get("args", {})
    kwargs = {}
    for f in fields(cls):
        value = raw[f.name]
        kwargs[f.name] = Pubkey.from_string(value) if f.name in PUBKEY_FIELDS else value
    return InstructionPayload(kind=kind, args=cls(**kwargs))
