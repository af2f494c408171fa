"""Client configuration and layout constants."""

from __future__ import annotations

from nescrow.config import (
    DEFAULT_RPC_URL,
    ESCROW_ACCOUNT_SIZE,
    ESCROW_FIXED_SIZE,
    MAX_DESCRIPTION_LEN,
    STATUS_OFFSET_NO_TAKER,
    STATUS_OFFSET_WITH_TAKER,
    ClientConfig,
)
from nescrow.types import Commitment


def test_layout_constants() -> None:
    assert ESCROW_FIXED_SIZE == 128
    assert MAX_DESCRIPTION_LEN == 255
    assert ESCROW_FIXED_SIZE + MAX_DESCRIPTION_LEN == ESCROW_ACCOUNT_SIZE
    assert (STATUS_OFFSET_NO_TAKER, STATUS_OFFSET_WITH_TAKER) == (41, 73)


def test_from_env_defaults(monkeypatch) -> None:
    for name in ("NESCROW_RPC_URL", "NESCROW_PROGRAM_ID", "NESCROW_COMMITMENT",
                 "NESCROW_PRELOAD_COUNTERS", "NESCROW_SKIP_PREFLIGHT",
                 "NESCROW_REQUEST_TIMEOUT", "NESCROW_CONFIRM_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    config = ClientConfig.from_env()
    assert config == ClientConfig()
    assert config.rpc_url == DEFAULT_RPC_URL
    assert config.commitment == Commitment.CONFIRMED


def test_from_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("NESCROW_RPC_URL", "http://node:8899")
    monkeypatch.setenv("NESCROW_PROGRAM_ID", "Prog1111")
    monkeypatch.setenv("NESCROW_COMMITMENT", "Finalized")
    monkeypatch.setenv("NESCROW_PRELOAD_COUNTERS", "yes")
    monkeypatch.setenv("NESCROW_SKIP_PREFLIGHT", "1")
    monkeypatch.setenv("NESCROW_REQUEST_TIMEOUT", "5")
    monkeypatch.setenv("NESCROW_CONFIRM_TIMEOUT", "90.5")
    config = ClientConfig.from_env()
    assert config.rpc_url == "http://node:8899"
    assert config.program_id == "Prog1111"
    assert config.commitment == Commitment.FINALIZED
    assert config.preload_counters is True
    assert config.skip_preflight is True
    assert config.request_timeout == 5.0
    assert config.confirm_timeout == 90.5


def test_commitment_ordering() -> None:
    assert Commitment.CONFIRMED.satisfied_by("finalized")
    assert Commitment.CONFIRMED.satisfied_by("confirmed")
    assert not Commitment.CONFIRMED.satisfied_by("processed")
    assert not Commitment.PROCESSED.satisfied_by(None)
    assert not Commitment.PROCESSED.satisfied_by("rooted")
