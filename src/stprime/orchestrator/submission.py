"""
Shared submission and confirmation-recovery logic.

SubmissionTracker drives one ``ChainTransport.send_transaction`` call to a
terminal outcome. A receipt wait that times out is not treated as a failure
on its own: the receipt is looked up directly by hash, and only if that
lookup also finds nothing does the submission fail.
"""

from __future__ import annotations

from contextlib import aclosing
from typing import Any, Callable, Dict, Optional

from stprime.errors import (
    ConfirmationError,
    PendingConfirmationTimeout,
    ReceiptNotFoundError,
    RpcError,
    SubmissionError,
    describe_error,
)
from stprime.models import SubmissionReceipt
from stprime.rpc.transport import ChainTransport, ReceiptEvent, TransactionHashEvent
from stprime.utils.logging import get_logger
from stprime.utils.retry import RetryConfig, retry_async

_logger = get_logger(__name__)

SubmittedCallback = Callable[[str], None]


def default_lookup_retry(max_attempts: int = 3) -> RetryConfig:
    """Retry policy for the out-of-band receipt lookup."""
    return RetryConfig(
        max_attempts=max_attempts,
        base_delay_ms=1000,
        max_delay_ms=10000,
        retryable_errors=(RpcError,),
    )


def _is_reverted(receipt: Dict[str, Any]) -> bool:
    # Receipts without a status field predate Byzantium and count as mined
    return receipt.get("status") in (0, "0x0")


class SubmissionTracker:
    """
    Sign, broadcast and wait for one transaction.

    Example:
        >>> tracker = SubmissionTracker(transport)
        >>> submission = await tracker.submit(
        ...     {"from": sender, "to": recipient, "value": 100, "gas": 25_000, "gasPrice": 0},
        ...     credential,
        ...     on_submitted=lambda tx_hash: print("sent", tx_hash),
        ... )
        >>> submission.receipt["blockNumber"]
    """

    def __init__(
        self,
        transport: ChainTransport,
        lookup_retry: Optional[RetryConfig] = None,
    ) -> None:
        self._transport = transport
        self._lookup_retry = lookup_retry or default_lookup_retry()

    async def submit(
        self,
        tx_params: Dict[str, Any],
        credential: str,
        on_submitted: Optional[SubmittedCallback] = None,
    ) -> SubmissionReceipt:
        """
        Submit ``tx_params`` and return once it is mined.

        Args:
            tx_params: Transaction parameters (from, to, value, gas, gasPrice, data)
            credential: Sender key, handed to the transport and not kept
            on_submitted: Called synchronously once with the transaction hash

        Returns:
            Hash and JSON-safe receipt

        Raises:
            SubmissionError: If the broadcast failed before a hash was returned
            ConfirmationError: If the transaction was submitted but not confirmed
        """
        tx_hash: Optional[str] = None
        stream = self._transport.send_transaction(tx_params, credential)
        del credential
        try:
            async with aclosing(stream) as events:
                async for event in events:
                    if isinstance(event, TransactionHashEvent):
                        tx_hash = event.transaction_hash
                        if on_submitted is not None:
                            on_submitted(tx_hash)
                    elif isinstance(event, ReceiptEvent):
                        return SubmissionReceipt(
                            transaction_hash=tx_hash or event.receipt.get("transactionHash", ""),
                            receipt=event.receipt,
                        )
        except PendingConfirmationTimeout as timeout:
            tx_hash = tx_hash or timeout.tx_hash
            receipt = await self._recover(tx_hash, timeout)
            return SubmissionReceipt(transaction_hash=tx_hash, receipt=receipt)
        except RpcError as e:
            raise self._failure(e, tx_hash) from e

        # Transport finished without a receipt
        if tx_hash is None:
            raise SubmissionError("Transaction failed", details={"error": {"message": "no transaction hash returned"}})
        raise ConfirmationError(
            "Transaction failed",
            tx_hash=tx_hash,
            details={"error": {"message": "no receipt returned"}},
        )

    async def _recover(self, tx_hash: Optional[str], timeout: PendingConfirmationTimeout) -> Dict[str, Any]:
        """Look the receipt up directly after an ambiguous wait timeout."""
        if not tx_hash:
            raise ConfirmationError("Transaction failed", details={"error": timeout.to_dict()})

        _logger.warning(
            "Receipt wait timed out, looking up receipt",
            extra={"tx_hash": tx_hash, "error": timeout.message},
        )

        async def lookup() -> Dict[str, Any]:
            receipt = await self._transport.get_transaction_receipt(tx_hash)
            if receipt is None:
                raise ReceiptNotFoundError(tx_hash)
            return receipt

        try:
            receipt = await retry_async(lookup, self._lookup_retry, operation="receipt lookup")
        except Exception as e:
            lookup_error = describe_error(e)
            _logger.error(
                "Receipt lookup failed",
                extra={"tx_hash": tx_hash, "code": lookup_error["code"], "error": lookup_error["message"]},
            )
            raise ConfirmationError(
                "Transaction failed",
                tx_hash=tx_hash,
                details={"error": timeout.to_dict(), "lookup_error": lookup_error},
            ) from e

        if _is_reverted(receipt):
            raise ConfirmationError(
                "Transaction failed",
                tx_hash=tx_hash,
                details={"error": {"message": "Transaction has been reverted by the EVM", "receipt": receipt}},
            )

        _logger.info("Receipt recovered after wait timeout", extra={"tx_hash": tx_hash})
        return receipt

    @staticmethod
    def _failure(error: RpcError, tx_hash: Optional[str]) -> Exception:
        tx_hash = tx_hash or error.tx_hash
        if tx_hash is None:
            return SubmissionError("Transaction failed", details={"error": error.to_dict()})
        return ConfirmationError("Transaction failed", tx_hash=tx_hash, details={"error": error.to_dict()})
