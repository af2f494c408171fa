"""Sign, submit and confirm escrow requests."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Iterable, List, Optional

from solders.keypair import Keypair
from solders.message import Message
from solders.transaction import Transaction

from .config import ClientConfig
from .errors import (
    ErrorCode,
    RpcError,
    SubmissionError,
    ValidationError,
    contract_error_from_diagnostic,
)
from .types import Commitment, ConfirmationHandle, EscrowRequest

logger = logging.getLogger(__name__)


def _order_signers(request: EscrowRequest, signers: Iterable[Keypair]) -> List[Keypair]:
    by_pubkey = {}
    for kp in signers:
        by_pubkey.setdefault(kp.pubkey(), kp)

    ordered = []
    seen = set()
    for pubkey in (request.fee_payer, *request.signers):
        if pubkey in seen:
            continue
        kp = by_pubkey.get(pubkey)
        if kp is None:
            raise ValidationError(
                ErrorCode.MISSING_SIGNER,
                f"{request.operation.label} needs a keypair for signer {pubkey}",
            )
        seen.add(pubkey)
        ordered.append(kp)
    return ordered


class Submitter:
    """Turns built requests into confirmed transactions.

    No retries: a failed or unconfirmed submission raises `SubmissionError`
    and the caller decides what to do. If the awaiting task is cancelled the
    transaction may still land; re-read state before resubmitting.
    """

    def __init__(self, rpc, config: Optional[ClientConfig] = None):
        self.rpc = rpc
        self.config = config or ClientConfig()

    def _error(
        self,
        request: EscrowRequest,
        code: ErrorCode,
        message: str,
        signature: Optional[str] = None,
        diagnostic=None,
    ) -> SubmissionError:
        return SubmissionError(
            code,
            message,
            operation=request.operation.label,
            address=str(request.address),
            signature=signature,
            diagnostic=diagnostic,
            contract_error=contract_error_from_diagnostic(diagnostic),
        )

    async def submit(
        self,
        request: EscrowRequest,
        signers: Iterable[Keypair],
        commitment: Optional[Commitment] = None,
    ) -> ConfirmationHandle:
        commitment = commitment or self.config.commitment
        keypairs = _order_signers(request, signers)
        op = request.operation.label

        try:
            blockhash = await self.rpc.get_latest_blockhash(commitment)
        except RpcError as e:
            raise self._error(request, ErrorCode.SUBMISSION_FAILED, str(e), diagnostic=e.data) from e

        message = Message.new_with_blockhash([request.instruction], request.fee_payer, blockhash)
        tx = Transaction(keypairs, message, blockhash)
        signature = str(tx.signatures[0])

        logger.info(f"Submitting {op} for escrow {request.address} ({signature})")
        try:
            sent = await self.rpc.send_transaction(
                bytes(tx),
                skip_preflight=self.config.skip_preflight,
                preflight_commitment=commitment,
            )
        except RpcError as e:
            code = ErrorCode.SIMULATION_FAILED if e.data else ErrorCode.SUBMISSION_FAILED
            logger.error(f"{op} rejected for escrow {request.address}: {e}")
            raise self._error(request, code, str(e), signature=signature, diagnostic=e.data) from e

        try:
            slot = await self._await_confirmation(request, sent, commitment)
        except asyncio.CancelledError:
            logger.warning(f"{op} {sent} cancelled before confirmation; it may still land")
            raise

        logger.info(f"{op} {sent} reached {commitment.value}")
        return ConfirmationHandle(
            signature=sent,
            operation=request.operation,
            address=request.address,
            commitment=commitment,
            slot=slot,
        )

    async def _await_confirmation(
        self, request: EscrowRequest, signature: str, commitment: Commitment
    ) -> Optional[int]:
        deadline = time.monotonic() + self.config.confirm_timeout
        while True:
            try:
                statuses = await self.rpc.get_signature_statuses([signature])
            except RpcError as e:
                raise self._error(
                    request, ErrorCode.SUBMISSION_FAILED, str(e),
                    signature=signature, diagnostic=e.data,
                ) from e

            status = statuses[0] if statuses else None
            if status is not None:
                if status.get("err") is not None:
                    raise self._error(
                        request,
                        ErrorCode.TRANSACTION_FAILED,
                        f"transaction {signature} failed",
                        signature=signature,
                        diagnostic=status["err"],
                    )
                if commitment.satisfied_by(status.get("confirmationStatus")):
                    return status.get("slot")

            if time.monotonic() >= deadline:
                raise self._error(
                    request,
                    ErrorCode.CONFIRMATION_TIMEOUT,
                    f"{signature} not {commitment.value} after {self.config.confirm_timeout}s",
                    signature=signature,
                )
            await asyncio.sleep(self.config.poll_interval)
