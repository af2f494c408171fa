"""Pytest hooks and shared fixtures.

`--output DIR` writes the collected wire vectors to `DIR/wire_format.json`,
which `tools/consume.py` replays against the encoders.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest

from fake_ledger import NOW, FakeLedger
from nescrow.client import EscrowClient
from nescrow.config import ClientConfig
from nescrow.test_accounts import PROGRAM_ID

_WIRE_VECTORS: list[dict[str, Any]] = []


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--output",
        action="store",
        default=None,
        help="Output directory for generated fixtures",
    )


@pytest.fixture
def wire_vector() -> Callable[[str, dict[str, Any]], None]:
    """Collect a wire-format vector case."""

    def _wire_vector(name: str, vector: dict[str, Any]) -> None:
        payload = {"name": name}
        payload.update(vector)
        _WIRE_VECTORS.append(payload)

    return _wire_vector


@pytest.fixture
def clock() -> Callable[[], float]:
    return lambda: float(NOW)


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(
        program_id=str(PROGRAM_ID),
        confirm_timeout=0.2,
        poll_interval=0.01,
    )


@pytest.fixture
def ledger(clock) -> FakeLedger:
    return FakeLedger(PROGRAM_ID, clock=clock)


@pytest.fixture
def client(ledger, config, clock) -> EscrowClient:
    return EscrowClient(ledger, PROGRAM_ID, config, clock=clock)


def pytest_sessionfinish(session: pytest.Session, exitstatus: int) -> None:
    output_dir = session.config.getoption("--output")
    if not output_dir:
        return

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    if _WIRE_VECTORS:
        (out / "wire_format.json").write_text(
            json.dumps({"vectors": _WIRE_VECTORS}, indent=2)
        )
