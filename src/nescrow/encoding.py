"""Wire-format encoding for escrow instructions and accounts.

The program uses Borsh: little-endian fixed-width integers, 32-byte public
keys, `Option<T>` as a presence byte followed by `T`, and strings as a u32
length prefix followed by UTF-8 bytes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Type, Union

from solders.pubkey import Pubkey

from .config import (
    ESCROW_ACCOUNT_SIZE,
    I64_MAX,
    I64_MIN,
    MAX_DESCRIPTION_LEN,
    PUBKEY_LEN,
    U32_MAX,
    U64_MAX,
    U8_MAX,
)
from .errors import ErrorCode, InvalidPayload, MalformedRecord, NescrowError
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
)

PubkeyLike = Union[Pubkey, bytes, bytearray]


@dataclass
class Writer:
    buf: bytearray

    def _write_int(self, v: int, size: int, lo: int, hi: int, signed: bool) -> None:
        v = int(v)
        if v < lo or v > hi:
            raise InvalidPayload(
                ErrorCode.INTEGER_OUT_OF_RANGE, f"{v} does not fit in {size * 8}-bit field"
            )
        self.buf.extend(v.to_bytes(size, "little", signed=signed))

    def write_u8(self, v: int) -> None:
        self._write_int(v, 1, 0, U8_MAX, False)

    def write_u32(self, v: int) -> None:
        self._write_int(v, 4, 0, U32_MAX, False)

    def write_u64(self, v: int) -> None:
        self._write_int(v, 8, 0, U64_MAX, False)

    def write_i64(self, v: int) -> None:
        self._write_int(v, 8, I64_MIN, I64_MAX, True)

    def write_bytes(self, b: bytes) -> None:
        self.buf.extend(b)

    def write_bool(self, v: bool) -> None:
        self.write_u8(1 if v else 0)


class Reader:
    """Cursor over a byte buffer; raises `error` on truncation."""

    def __init__(self, data: bytes, error: Type[NescrowError] = MalformedRecord):
        self.data = bytes(data)
        self.pos = 0
        self.error = error

    @property
    def remaining(self) -> int:
        return len(self.data) - self.pos

    def _take(self, size: int, what: str) -> bytes:
        if size > self.remaining:
            raise self.error(
                ErrorCode.TRUNCATED,
                f"need {size} bytes for {what} at offset {self.pos}, have {self.remaining}",
            )
        chunk = self.data[self.pos:self.pos + size]
        self.pos += size
        return chunk

    def read_u8(self, what: str = "u8") -> int:
        return self._take(1, what)[0]

    def read_u32(self, what: str = "u32") -> int:
        return int.from_bytes(self._take(4, what), "little", signed=False)

    def read_u64(self, what: str = "u64") -> int:
        return int.from_bytes(self._take(8, what), "little", signed=False)

    def read_i64(self, what: str = "i64") -> int:
        return int.from_bytes(self._take(8, what), "little", signed=True)

    def read_pubkey(self, what: str = "pubkey") -> Pubkey:
        return Pubkey.from_bytes(self._take(PUBKEY_LEN, what))

    def read_option_pubkey(self, what: str = "option<pubkey>") -> Optional[Pubkey]:
        flag = self.read_u8(what)
        if flag == 0:
            return None
        if flag != 1:
            raise self.error(ErrorCode.INVALID_OPTION_FLAG, f"{what} has presence flag {flag}")
        return self.read_pubkey(what)

    def read_string(self, what: str = "string", max_len: Optional[int] = None) -> str:
        size = self.read_u32(f"{what} length")
        if max_len is not None and size > max_len:
            raise self.error(
                ErrorCode.INCONSISTENT_RECORD, f"{what} declares {size} bytes, max {max_len}"
            )
        raw = self._take(size, what)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise self.error(ErrorCode.INVALID_UTF8, f"{what} is not valid UTF-8") from e


def pubkey_bytes(name: str, value: PubkeyLike) -> bytes:
    if isinstance(value, Pubkey):
        return bytes(value)
    if isinstance(value, (bytes, bytearray)) and len(value) == PUBKEY_LEN:
        return bytes(value)
    raise InvalidPayload(ErrorCode.INVALID_PUBKEY, f"{name} must be {PUBKEY_LEN} bytes")


def _write_pubkey(w: Writer, name: str, value: PubkeyLike) -> None:
    w.write_bytes(pubkey_bytes(name, value))


def _write_option_pubkey(w: Writer, name: str, value: Optional[PubkeyLike]) -> None:
    if value is None:
        w.write_bool(False)
        return
    w.write_bool(True)
    _write_pubkey(w, name, value)


def _write_description(w: Writer, value: str) -> None:
    if not isinstance(value, str):
        raise InvalidPayload(ErrorCode.INVALID_PAYLOAD, "description must be str")
    data = value.encode("utf-8")
    if len(data) > MAX_DESCRIPTION_LEN:
        raise InvalidPayload(
            ErrorCode.STRING_TOO_LONG,
            f"description is {len(data)} bytes, max {MAX_DESCRIPTION_LEN}",
        )
    w.write_u32(len(data))
    w.write_bytes(data)


# --- Instruction payloads ---


def encode_create_escrow(counter: int, amount: int, description: str, expiry_time: int) -> bytes:
    w = Writer(bytearray())
    w.write_u8(EscrowInstruction.CREATE_ESCROW)
    w.write_u64(counter)
    w.write_u64(amount)
    _write_description(w, description)
    w.write_i64(expiry_time)
    return bytes(w.buf)


def encode_accept_escrow(creator: PubkeyLike, counter: int) -> bytes:
    w = Writer(bytearray())
    w.write_u8(EscrowInstruction.ACCEPT_ESCROW)
    _write_pubkey(w, "creator", creator)
    w.write_u64(counter)
    return bytes(w.buf)


def encode_complete_escrow(creator: PubkeyLike, counter: int) -> bytes:
    w = Writer(bytearray())
    w.write_u8(EscrowInstruction.COMPLETE_ESCROW)
    _write_pubkey(w, "creator", creator)
    w.write_u64(counter)
    return bytes(w.buf)


def encode_cancel_escrow(counter: int) -> bytes:
    # The program takes the creator from the account list, not the payload.
    w = Writer(bytearray())
    w.write_u8(EscrowInstruction.CANCEL_ESCROW)
    w.write_u64(counter)
    return bytes(w.buf)


def encode_extend_escrow(counter: int, new_expiry_time: int) -> bytes:
    w = Writer(bytearray())
    w.write_u8(EscrowInstruction.EXTEND_ESCROW)
    w.write_u64(counter)
    w.write_i64(new_expiry_time)
    return bytes(w.buf)


def encode_instruction(payload: InstructionPayload) -> bytes:
    a = payload.args
    kind = payload.kind
    if kind == EscrowInstruction.CREATE_ESCROW and isinstance(a, CreateEscrowArgs):
        return encode_create_escrow(a.counter, a.amount, a.description, a.expiry_time)
    if kind == EscrowInstruction.ACCEPT_ESCROW and isinstance(a, AcceptEscrowArgs):
        return encode_accept_escrow(a.creator, a.counter)
    if kind == EscrowInstruction.COMPLETE_ESCROW and isinstance(a, CompleteEscrowArgs):
        return encode_complete_escrow(a.creator, a.counter)
    if kind == EscrowInstruction.CANCEL_ESCROW and isinstance(a, CancelEscrowArgs):
        return encode_cancel_escrow(a.counter)
    if kind == EscrowInstruction.EXTEND_ESCROW and isinstance(a, ExtendEscrowArgs):
        return encode_extend_escrow(a.counter, a.new_expiry_time)
    raise InvalidPayload(ErrorCode.UNKNOWN_INSTRUCTION, f"args do not match {kind!r}")


def decode_instruction(data: bytes) -> InstructionPayload:
    """Parse instruction data produced by the encoders above."""
    r = Reader(data, InvalidPayload)
    disc = r.read_u8("discriminant")
    try:
        kind = EscrowInstruction(disc)
    except ValueError as e:
        raise InvalidPayload(ErrorCode.UNKNOWN_INSTRUCTION, f"unknown discriminant {disc}") from e

    if kind == EscrowInstruction.CREATE_ESCROW:
        args = CreateEscrowArgs(
            counter=r.read_u64("counter"),
            amount=r.read_u64("amount"),
            description=r.read_string("description"),
            expiry_time=r.read_i64("expiry_time"),
        )
    elif kind == EscrowInstruction.ACCEPT_ESCROW:
        args = AcceptEscrowArgs(creator=r.read_pubkey("creator"), counter=r.read_u64("counter"))
    elif kind == EscrowInstruction.COMPLETE_ESCROW:
        args = CompleteEscrowArgs(creator=r.read_pubkey("creator"), counter=r.read_u64("counter"))
    elif kind == EscrowInstruction.CANCEL_ESCROW:
        args = CancelEscrowArgs(counter=r.read_u64("counter"))
    else:
        args = ExtendEscrowArgs(
            counter=r.read_u64("counter"),
            new_expiry_time=r.read_i64("new_expiry_time"),
        )

    if r.remaining:
        raise InvalidPayload(
            ErrorCode.INVALID_PAYLOAD, f"{r.remaining} trailing bytes after {kind.label}"
        )
    return InstructionPayload(kind=kind, args=args)


# --- Escrow account ---


def encode_escrow(escrow: Escrow, pad: bool = False) -> bytes:
    """Serialize an escrow record; `pad` fills to the allocated account size."""
    w = Writer(bytearray())
    _write_pubkey(w, "creator", escrow.creator)
    _write_option_pubkey(w, "taker", escrow.taker)
    w.write_u64(escrow.amount)
    try:
        status = EscrowStatus(escrow.status)
    except ValueError as e:
        raise InvalidPayload(ErrorCode.INVALID_PAYLOAD, f"unknown status {escrow.status}") from e
    w.write_u8(status)
    _write_option_pubkey(w, "winner", escrow.winner)
    _write_description(w, escrow.description)
    w.write_i64(escrow.expiry_time)
    w.write_u8(escrow.escrow_bump)
    w.write_u64(escrow.counter)
    if pad:
        w.write_bytes(b"\x00" * (ESCROW_ACCOUNT_SIZE - len(w.buf)))
    return bytes(w.buf)


def _check_escrow(escrow: Escrow) -> None:
    if not escrow.description:
        raise MalformedRecord(ErrorCode.INCONSISTENT_RECORD, "empty description")

    if escrow.status.has_taker and escrow.taker is None:
        raise MalformedRecord(
            ErrorCode.INCONSISTENT_RECORD, f"{escrow.status.name} escrow has no taker"
        )
    if not escrow.status.has_taker and escrow.taker is not None:
        raise MalformedRecord(
            ErrorCode.INCONSISTENT_RECORD, f"{escrow.status.name} escrow has a taker"
        )

    if escrow.status == EscrowStatus.COMPLETED:
        if escrow.winner is None:
            raise MalformedRecord(ErrorCode.INCONSISTENT_RECORD, "completed escrow has no winner")
        if escrow.winner not in (escrow.creator, escrow.taker):
            raise MalformedRecord(
                ErrorCode.INCONSISTENT_RECORD, "winner is neither creator nor taker"
            )
    elif escrow.winner is not None:
        raise MalformedRecord(
            ErrorCode.INCONSISTENT_RECORD, f"{escrow.status.name} escrow has a winner"
        )


def decode_escrow(data: bytes) -> Optional[Escrow]:
    """Decode escrow account data.

    Returns None for an empty buffer (no account). Bytes after the struct are
    the zero padding of the fixed-size allocation and are ignored.
    """
    if len(data) == 0:
        return None

    r = Reader(data, MalformedRecord)
    creator = r.read_pubkey("creator")
    taker = r.read_option_pubkey("taker")
    amount = r.read_u64("amount")
    status_byte = r.read_u8("status")
    try:
        status = EscrowStatus(status_byte)
    except ValueError as e:
        raise MalformedRecord(ErrorCode.INVALID_STATUS, f"unknown status {status_byte}") from e
    winner = r.read_option_pubkey("winner")
    description = r.read_string("description", MAX_DESCRIPTION_LEN)
    expiry_time = r.read_i64("expiry_time")
    escrow_bump = r.read_u8("escrow_bump")
    counter = r.read_u64("counter")

    escrow = Escrow(
        creator=creator,
        taker=taker,
        amount=amount,
        status=status,
        winner=winner,
        description=description,
        expiry_time=expiry_time,
        escrow_bump=escrow_bump,
        counter=counter,
    )
    _check_escrow(escrow)
    return escrow
