"""
Exceptions raised by chain transports.

Transports translate provider-specific failures into these types, so the
orchestrators never inspect error message text.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from stprime.errors.base import STPrimeError


class RpcError(STPrimeError):
    """Raised when an RPC/provider request fails."""

    code = "RPC_ERROR"

    def __init__(
        self,
        message: str,
        *,
        method: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if method:
            details["method"] = method
        super().__init__(message, details=details)
        self.method = method


class BroadcastRejectedError(RpcError):
    """
    Hard failure of a submitted transaction.

    Raised when the node refuses the signed transaction, or when the receipt
    reports a reverted execution. ``tx_hash`` is set when the rejection
    happened after the hash was known.
    """

    code = "BROADCAST_REJECTED"

    def __init__(
        self,
        message: str,
        *,
        tx_hash: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, method="send_transaction", details=details)
        self.tx_hash = tx_hash


class PendingConfirmationTimeout(RpcError):
    """
    The receipt did not arrive within the wait window.

    This does not mean the transaction failed: it may still be mined later.

    Example:
        >>> raise PendingConfirmationTimeout("0xdef...", blocks=50)
    """

    code = "PENDING_CONFIRMATION_TIMEOUT"

    def __init__(
        self,
        tx_hash: str,
        *,
        blocks: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> None:
        details: Dict[str, Any] = {}
        if blocks is not None:
            details["blocks"] = blocks
        if timeout is not None:
            details["timeout_seconds"] = timeout

        if blocks is not None:
            message = f"Transaction was not mined within {blocks} blocks"
        else:
            message = f"Transaction was not mined within {timeout}s"
        super().__init__(message, method="wait_for_transaction_receipt", details=details)
        self.tx_hash = tx_hash
        self.blocks = blocks
        self.timeout = timeout


class ReceiptNotFoundError(RpcError):
    """Raised when a receipt lookup finds no mined transaction for the hash."""

    code = "RECEIPT_NOT_FOUND"

    def __init__(self, tx_hash: str) -> None:
        super().__init__(
            f"No receipt found for transaction {tx_hash}",
            method="eth_getTransactionReceipt",
        )
        self.tx_hash = tx_hash
