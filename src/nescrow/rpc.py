"""JSON-RPC transport to a ledger node.

Only the handful of methods the escrow client needs. Every method raises
`RpcError` on HTTP failure, timeout, a JSON-RPC error object, or a response
it cannot parse; callers decide whether to retry.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import aiohttp
from solders.hash import Hash
from solders.pubkey import Pubkey

from .config import DEFAULT_REQUEST_TIMEOUT
from .errors import ErrorCode, RpcError
from .types import Commitment, MemcmpFilter

logger = logging.getLogger(__name__)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _account_data(value: Dict[str, Any]) -> bytes:
    try:
        encoded, encoding = value["data"]
    except (KeyError, TypeError, ValueError) as e:
        raise RpcError(ErrorCode.INVALID_RESPONSE, f"unexpected account data: {value!r}") from e
    if encoding != "base64":
        raise RpcError(ErrorCode.INVALID_RESPONSE, f"unexpected account encoding {encoding}")
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, TypeError, ValueError) as e:
        raise RpcError(ErrorCode.INVALID_RESPONSE, "account data is not valid base64") from e


class RpcClient:
    """HTTP JSON-RPC client for one node endpoint."""

    def __init__(self, endpoint: str, timeout: float = DEFAULT_REQUEST_TIMEOUT):
        self.endpoint = endpoint
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None
        self._next_id = 0

    async def connect(self) -> None:
        """Initialize HTTP session."""
        if self.session is None:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self.session = aiohttp.ClientSession(timeout=timeout)

    async def close(self) -> None:
        """Close HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None

    async def __aenter__(self) -> "RpcClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def request(self, method: str, params: List[Any]) -> Any:
        """Send one JSON-RPC call and return its `result` member."""
        if self.session is None:
            await self.connect()
        self._next_id += 1
        body = {"jsonrpc": "2.0", "id": self._next_id, "method": method, "params": params}
        logger.debug(f"RPC {method} -> {self.endpoint}")
        try:
            async with self.session.post(self.endpoint, json=body) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise RpcError(
                        ErrorCode.TRANSPORT_ERROR,
                        f"{method}: HTTP {resp.status}: {text[:200]}",
                    )
                try:
                    data = await resp.json(content_type=None)
                except ValueError as e:
                    raise RpcError(
                        ErrorCode.INVALID_RESPONSE, f"{method}: response is not JSON"
                    ) from e
        except aiohttp.ClientError as e:
            raise RpcError(ErrorCode.TRANSPORT_ERROR, f"{method}: {e}") from e
        except asyncio.TimeoutError as e:
            raise RpcError(ErrorCode.TRANSPORT_ERROR, f"{method}: timed out") from e

        if not isinstance(data, dict):
            raise RpcError(ErrorCode.INVALID_RESPONSE, f"{method}: response is not an object")
        error = data.get("error")
        if error is not None:
            if not isinstance(error, dict):
                raise RpcError(ErrorCode.RPC_ERROR, f"{method}: {error!r}")
            raise RpcError(
                ErrorCode.RPC_ERROR,
                f"{method}: {error.get('message', 'unknown error')}",
                rpc_code=error.get("code"),
                data=error.get("data"),
            )
        if "result" not in data:
            raise RpcError(ErrorCode.INVALID_RESPONSE, f"{method}: response has no result")
        return data["result"]

    async def get_account_info(
        self, address: Pubkey, commitment: Commitment
    ) -> Optional[bytes]:
        """Raw account data, or None if no account exists at `address`."""
        result = await self.request(
            "getAccountInfo",
            [str(address), {"encoding": "base64", "commitment": commitment.value}],
        )
        value = result.get("value") if isinstance(result, dict) else None
        if value is None:
            return None
        return _account_data(value)

    async def get_program_accounts(
        self,
        program_id: Pubkey,
        filters: Sequence[MemcmpFilter],
        commitment: Commitment,
    ) -> List[Tuple[Pubkey, bytes]]:
        config: Dict[str, Any] = {"encoding": "base64", "commitment": commitment.value}
        if filters:
            config["filters"] = [
                {"memcmp": {"offset": f.offset, "bytes": _b64(f.data), "encoding": "base64"}}
                for f in filters
            ]
        result = await self.request("getProgramAccounts", [str(program_id), config])
        if isinstance(result, dict) and "value" in result:
            result = result["value"]
        if not isinstance(result, list):
            raise RpcError(ErrorCode.INVALID_RESPONSE, "getProgramAccounts: expected a list")
        accounts = []
        for item in result:
            try:
                pubkey = Pubkey.from_string(item["pubkey"])
            except (KeyError, TypeError, ValueError) as e:
                raise RpcError(ErrorCode.INVALID_RESPONSE, f"bad account entry {item!r}") from e
            accounts.append((pubkey, _account_data(item.get("account"))))
        return accounts

    async def get_latest_blockhash(self, commitment: Commitment) -> Hash:
        result = await self.request("getLatestBlockhash", [{"commitment": commitment.value}])
        try:
            return Hash.from_string(result["value"]["blockhash"])
        except (KeyError, TypeError, ValueError) as e:
            raise RpcError(ErrorCode.INVALID_RESPONSE, "getLatestBlockhash: no blockhash") from e

    async def send_transaction(
        self,
        raw: bytes,
        skip_preflight: bool,
        preflight_commitment: Commitment,
    ) -> str:
        """Submit a signed transaction; returns its base58 signature."""
        result = await self.request(
            "sendTransaction",
            [
                _b64(raw),
                {
                    "encoding": "base64",
                    "skipPreflight": skip_preflight,
                    "preflightCommitment": preflight_commitment.value,
                },
            ],
        )
        if not isinstance(result, str):
            raise RpcError(ErrorCode.INVALID_RESPONSE, "sendTransaction: expected a signature")
        return result

    async def get_signature_statuses(
        self, signatures: Sequence[str]
    ) -> List[Optional[Dict[str, Any]]]:
        result = await self.request(
            "getSignatureStatuses",
            [list(signatures), {"searchTransactionHistory": False}],
        )
        try:
            return list(result["value"])
        except (KeyError, TypeError) as e:
            raise RpcError(ErrorCode.INVALID_RESPONSE, "getSignatureStatuses: no value") from e
