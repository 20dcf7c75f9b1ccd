"""
Chain transports.
"""

from stprime.rpc.transport import (
    ChainTransport,
    ReceiptEvent,
    SubmissionEvent,
    TransactionHashEvent,
)
from stprime.rpc.web3_transport import Web3Transport

__all__ = [
    "ChainTransport",
    "SubmissionEvent",
    "TransactionHashEvent",
    "ReceiptEvent",
    "Web3Transport",
]
