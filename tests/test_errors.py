"""Error formatting and program error extraction."""

from __future__ import annotations

import pytest

from nescrow.errors import (
    ContractError,
    ErrorCategory,
    ErrorCode,
    MalformedRecord,
    RpcError,
    NescrowError,
    SubmissionError,
    ValidationError,
    contract_error_from_diagnostic,
)


def test_str_includes_code() -> None:
    err = ValidationError(ErrorCode.INVALID_EXPIRY, "expiry must be in the future")
    assert str(err) == "INVALID_EXPIRY(0x0102): expiry must be in the future"
    assert isinstance(err, NescrowError)


@pytest.mark.parametrize(
    "error, category",
    [
        (ValidationError(ErrorCode.MISSING_SIGNER, "x"), ErrorCategory.VALIDATION),
        (MalformedRecord(ErrorCode.STATUS_REGRESSION, "x"), ErrorCategory.DECODING),
        (RpcError(ErrorCode.INVALID_RESPONSE, "x"), ErrorCategory.NETWORK),
        (SubmissionError(ErrorCode.CONFIRMATION_TIMEOUT, "x"), ErrorCategory.SUBMISSION),
        (NescrowError(ErrorCode.UNKNOWN, "x"), ErrorCategory.INTERNAL),
    ],
)
def test_category_follows_code_band(error, category) -> None:
    assert error.category == category


def test_errors_are_raisable() -> None:
    with pytest.raises(NescrowError) as exc:
        raise MalformedRecord(ErrorCode.TRUNCATED, "short")
    assert exc.value.code == ErrorCode.TRUNCATED
    assert exc.value.message == "short"


def test_submission_error_str() -> None:
    err = SubmissionError(
        ErrorCode.SIMULATION_FAILED,
        "custom program error: 0x7",
        operation="accept_escrow",
        address="Esc1",
        contract_error=ContractError.ESCROW_NOT_OPEN,
    )
    assert str(err) == (
        "SIMULATION_FAILED(0x0501): accept_escrow failed: custom program error: 0x7 "
        "[ESCROW_NOT_OPEN] (escrow Esc1)"
    )


@pytest.mark.parametrize(
    "diagnostic, expected",
    [
        ({"InstructionError": [0, {"Custom": 7}]}, ContractError.ESCROW_NOT_OPEN),
        ({"err": {"InstructionError": [0, {"Custom": 12}]}, "logs": []},
         ContractError.ESCROW_NOT_ACCEPTED),
        ({"InstructionError": [1, {"Custom": 0}]}, ContractError.INVALID_INSTRUCTION),
        ({"InstructionError": [0, {"Custom": 99}]}, None),
        ({"InstructionError": [0, "InvalidAccountData"]}, None),
        ("AccountNotFound", None),
        ({"err": None}, None),
        (None, None),
    ],
)
def test_contract_error_from_diagnostic(diagnostic, expected) -> None:
    assert contract_error_from_diagnostic(diagnostic) == expected
