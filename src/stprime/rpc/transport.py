"""
Chain transport interface.

A ChainTransport is the only component that talks to the chain node. The
orchestrators depend on this interface, never on web3 directly, so tests
can substitute a scripted transport.

Submitting a transaction yields an ordered sequence of at most two events:

1. ``TransactionHashEvent``: the node accepted the signed transaction.
2. ``ReceiptEvent``: the transaction was mined successfully.

Failures are raised from the iterator instead of yielded:
``BroadcastRejectedError`` for hard failures (including reverted receipts)
and ``PendingConfirmationTimeout`` when the receipt did not arrive in time
but the transaction may still be mined.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional, Union


@dataclass(frozen=True)
class TransactionHashEvent:
    transaction_hash: str


@dataclass(frozen=True)
class ReceiptEvent:
    receipt: Dict[str, Any]


SubmissionEvent = Union[TransactionHashEvent, ReceiptEvent]


class ChainTransport(ABC):
    """Request/response access to a chain node."""

    @property
    @abstractmethod
    def chain_id(self) -> int:
        """Chain ID of the connected node."""

    @property
    @abstractmethod
    def chain_kind(self) -> str:
        """Chain kind label, e.g. ``"utility"``."""

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """Return the base-token balance of ``address`` in the smallest unit."""

    @abstractmethod
    async def get_gas_price(self) -> int:
        """Return the node's current gas price."""

    @abstractmethod
    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Return the receipt for ``tx_hash``, or None if it is not mined."""

    @abstractmethod
    async def estimate_gas(self, tx_params: Dict[str, Any]) -> int:
        """Estimate the gas ``tx_params`` would consume."""

    @abstractmethod
    async def call(self, tx_params: Dict[str, Any]) -> bytes:
        """Execute a read-only call and return the raw output."""

    @abstractmethod
    def send_transaction(
        self,
        tx_params: Dict[str, Any],
        credential: str,
    ) -> AsyncIterator[SubmissionEvent]:
        """
        Sign ``tx_params`` with ``credential`` and broadcast.

        The credential must not be retained after signing.

        Raises (from the iterator):
            BroadcastRejectedError: On hard failure
            PendingConfirmationTimeout: When the receipt wait expires
        """

    async def aclose(self) -> None:
        """Release transport resources."""
