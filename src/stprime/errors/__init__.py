"""
ST Prime SDK exceptions.
"""

from stprime.errors.base import STPrimeError, describe_error
from stprime.errors.rpc import (
    BroadcastRejectedError,
    PendingConfirmationTimeout,
    ReceiptNotFoundError,
    RpcError,
)
from stprime.errors.transfer import (
    BalanceUnavailableError,
    ConfirmationError,
    DependencyError,
    EstimationError,
    InsufficientFundsError,
    InvalidAddressError,
    InvalidAmountError,
    InvalidInputError,
    InvalidStateTransitionError,
    InvalidTagError,
    SameAddressError,
    SubmissionError,
)

__all__ = [
    "STPrimeError",
    "describe_error",
    # Input
    "InvalidInputError",
    "InvalidAddressError",
    "SameAddressError",
    "InvalidAmountError",
    "InvalidTagError",
    # Balance
    "InsufficientFundsError",
    "BalanceUnavailableError",
    # Submission
    "SubmissionError",
    "ConfirmationError",
    "EstimationError",
    "DependencyError",
    "InvalidStateTransitionError",
    # Transport
    "RpcError",
    "BroadcastRejectedError",
    "PendingConfirmationTimeout",
    "ReceiptNotFoundError",
]
