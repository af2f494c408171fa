"""Per-creator counter cache.

Counters seed escrow addresses, so two creates from the same process must
never reuse one. The cache only prevents same-process collisions; another
process reusing a counter is rejected by the program when the account
already exists.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, Optional, Protocol

import yaml
from solders.pubkey import Pubkey

from .config import U64_MAX
from .errors import ErrorCode, ValidationError

logger = logging.getLogger(__name__)


class SequenceStore(Protocol):
    """Persists counters. `save` runs in a worker thread, one call at a time."""

    def load(self) -> Dict[Pubkey, int]: ...

    def save(self, counters: Dict[Pubkey, int]) -> None: ...


class YamlSequenceStore:
    """Keeps counters in a YAML mapping of base58 creator -> counter."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Dict[Pubkey, int]:
        if not self.path.exists():
            return {}
        data = yaml.safe_load(self.path.read_text()) or {}
        return {Pubkey.from_string(str(k)): int(v) for k, v in data.items()}

    def save(self, counters: Dict[Pubkey, int]) -> None:
        data = {str(k): v for k, v in sorted(counters.items(), key=lambda kv: str(kv[0]))}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(yaml.safe_dump(data, sort_keys=False))


class SequenceCache:
    def __init__(self, store: Optional[SequenceStore] = None):
        self._counters: Dict[Pubkey, int] = {}
        self._lock = asyncio.Lock()
        self._store = store
        if store is not None:
            self._counters.update(store.load())

    async def reserve_next(self, creator: Pubkey) -> int:
        """Reserve and return the next unused counter for `creator`."""
        async with self._lock:
            counter = self._counters.get(creator, 0) + 1
            if counter > U64_MAX:
                raise ValidationError(ErrorCode.INVALID_COUNTER, "counter space exhausted")
            self._counters[creator] = counter
            if self._store is not None:
                await asyncio.to_thread(self._store.save, dict(self._counters))
        logger.debug(f"Reserved counter {counter} for {creator}")
        return counter

    def warm(self, creator: Pubkey, observed: int) -> None:
        """Raise the entry for `creator` to `observed`; never lowers it."""
        current = self._counters.get(creator, 0)
        if observed > current:
            self._counters[creator] = observed
            if self._store is not None:
                self._store.save(self._counters)

    def peek(self, creator: Pubkey) -> int:
        return self._counters.get(creator, 0)

    def snapshot(self) -> Dict[Pubkey, int]:
        return dict(self._counters)
