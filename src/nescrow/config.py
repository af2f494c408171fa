"""nescrow client configuration constants.

Keep the layout constants aligned with the on-chain program's `Escrow` struct
and the account size it allocates in `create_escrow`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .types import Commitment

# PDA seeds
ESCROW_SEED = b"escrow"

# Units
LAMPORTS_PER_SOL = 1_000_000_000

# Integer widths
U8_MAX = 0xFF
U32_MAX = 0xFFFF_FFFF
U64_MAX = 0xFFFF_FFFF_FFFF_FFFF
I64_MIN = -(1 << 63)
I64_MAX = (1 << 63) - 1

# Account layout
PUBKEY_LEN = 32
ESCROW_ACCOUNT_SIZE = 383
# creator + taker(1+32) + amount + status + winner(1+32) + len prefix + expiry + bump + counter
ESCROW_FIXED_SIZE = 32 + 33 + 8 + 1 + 33 + 4 + 8 + 1 + 8
MAX_DESCRIPTION_LEN = ESCROW_ACCOUNT_SIZE - ESCROW_FIXED_SIZE  # 255 bytes

# getProgramAccounts memcmp offsets
CREATOR_OFFSET = 0
TAKER_FLAG_OFFSET = 32
STATUS_OFFSET_NO_TAKER = 32 + 1 + 8
STATUS_OFFSET_WITH_TAKER = 32 + 1 + 32 + 8

# Well-known accounts
SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"

# Client defaults
DEFAULT_RPC_URL = "http://localhost:8899"
DEFAULT_COMMITMENT = Commitment.CONFIRMED
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_CONFIRM_TIMEOUT = 60.0
DEFAULT_POLL_INTERVAL = 0.5


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("true", "1", "yes")


@dataclass
class ClientConfig:
    """Settings for an `EscrowClient` and its RPC transport."""
    rpc_url: str = DEFAULT_RPC_URL
    program_id: Optional[str] = None

    # Confirmation
    commitment: Commitment = DEFAULT_COMMITMENT
    skip_preflight: bool = False

    # Counter cache
    preload_counters: bool = False

    # Timeouts
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    confirm_timeout: float = DEFAULT_CONFIRM_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Load configuration from environment variables."""
        config = cls()

        config.rpc_url = os.environ.get("NESCROW_RPC_URL", DEFAULT_RPC_URL)
        config.program_id = os.environ.get("NESCROW_PROGRAM_ID") or None

        commitment = os.environ.get("NESCROW_COMMITMENT")
        if commitment:
            config.commitment = Commitment.parse(commitment)

        config.preload_counters = _env_flag("NESCROW_PRELOAD_COUNTERS")
        config.skip_preflight = _env_flag("NESCROW_SKIP_PREFLIGHT")

        timeout = os.environ.get("NESCROW_REQUEST_TIMEOUT")
        if timeout:
            config.request_timeout = float(timeout)
        confirm_timeout = os.environ.get("NESCROW_CONFIRM_TIMEOUT")
        if confirm_timeout:
            config.confirm_timeout = float(confirm_timeout)

        return config
