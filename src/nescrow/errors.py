"""nescrow error codes and exceptions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Optional


class ErrorCategory(IntEnum):
    SUCCESS = 0x00
    VALIDATION = 0x01
    ENCODING = 0x02
    DECODING = 0x03
    NETWORK = 0x04
    SUBMISSION = 0x05
    INTERNAL = 0xFF


class ErrorCode(IntEnum):
    # Success
    SUCCESS = 0x0000

    # Validation
    INVALID_DESCRIPTION = 0x0100
    DESCRIPTION_TOO_LONG = 0x0101
    INVALID_EXPIRY = 0x0102
    INVALID_AMOUNT = 0x0103
    INVALID_COUNTER = 0x0104
    MISSING_SIGNER = 0x0105
    INVALID_ADDRESS = 0x0106

    # Encoding
    INVALID_PAYLOAD = 0x0200
    INVALID_PUBKEY = 0x0201
    INTEGER_OUT_OF_RANGE = 0x0202
    STRING_TOO_LONG = 0x0203
    UNKNOWN_INSTRUCTION = 0x0204

    # Decoding
    MALFORMED_RECORD = 0x0300
    TRUNCATED = 0x0301
    INVALID_OPTION_FLAG = 0x0302
    INVALID_STATUS = 0x0303
    INVALID_UTF8 = 0x0304
    INCONSISTENT_RECORD = 0x0305
    BUMP_MISMATCH = 0x0306
    STATUS_REGRESSION = 0x0307

    # Network
    RPC_ERROR = 0x0400
    TRANSPORT_ERROR = 0x0401
    INVALID_RESPONSE = 0x0402

    # Submission
    SUBMISSION_FAILED = 0x0500
    SIMULATION_FAILED = 0x0501
    TRANSACTION_FAILED = 0x0502
    CONFIRMATION_TIMEOUT = 0x0503

    # Internal
    INTERNAL_ERROR = 0xFF00
    UNKNOWN = 0xFFFF


class ContractError(IntEnum):
    """Custom error codes returned by the escrow program."""
    INVALID_INSTRUCTION = 0
    INVALID_SIGNER_PERMISSION = 1
    NOT_EXPECTED_ADDRESS = 2
    WRONG_ACCOUNT_OWNER = 3
    INVALID_ACCOUNT_LEN = 4
    EXECUTABLE_ACCOUNT_EXPECTED = 5
    ACCOUNT_ALREADY_CLOSED = 6
    ESCROW_NOT_OPEN = 7
    ESCROW_ALREADY_ACCEPTED = 8
    ESCROW_EXPIRED = 9
    INVALID_AUTHORITY = 10
    INVALID_WINNER = 11
    ESCROW_NOT_ACCEPTED = 12


@dataclass(eq=False)
class NescrowError(Exception):
    code: ErrorCode
    message: str

    @property
    def category(self) -> ErrorCategory:
        return ErrorCategory(int(self.code) >> 8)

    def __str__(self) -> str:
        return f"{self.code.name}({self.code:#06x}): {self.message}"


@dataclass(eq=False)
class ValidationError(NescrowError):
    """Caller input rejected before any network call."""


@dataclass(eq=False)
class InvalidPayload(NescrowError):
    """A value cannot be encoded into the program's wire layout."""


@dataclass(eq=False)
class MalformedRecord(NescrowError):
    """Fetched account bytes do not decode into a consistent escrow."""


@dataclass(eq=False)
class RpcError(NescrowError):
    """JSON-RPC or HTTP failure talking to the ledger node."""
    rpc_code: Optional[int] = None
    data: Any = None


@dataclass(eq=False)
class SubmissionError(NescrowError):
    """A transaction was rejected, failed, or never confirmed."""
    operation: str = ""
    address: Optional[str] = None
    signature: Optional[str] = None
    diagnostic: Any = None
    contract_error: Optional[ContractError] = None

    def __str__(self) -> str:
        text = f"{self.code.name}({self.code:#06x}): {self.operation} failed: {self.message}"
        if self.contract_error is not None:
            text += f" [{self.contract_error.name}]"
        if self.address:
            text += f" (escrow {self.address})"
        return text


def contract_error_from_diagnostic(diagnostic: Any) -> Optional[ContractError]:
    """Extract the program's custom error from a transaction error value.

    Accepts the RPC `err` object (`{"InstructionError": [0, {"Custom": 7}]}`)
    or the `data` member of a preflight failure, which nests it under `err`.
    """
    if isinstance(diagnostic, dict) and "err" in diagnostic:
        diagnostic = diagnostic["err"]
    if not isinstance(diagnostic, dict):
        return None
    inner = diagnostic.get("InstructionError")
    if not isinstance(inner, (list, tuple)) or len(inner) != 2:
        return None
    detail = inner[1]
    if not isinstance(detail, dict) or "Custom" not in detail:
        return None
    try:
        return ContractError(int(detail["Custom"]))
    except ValueError:
        return None
