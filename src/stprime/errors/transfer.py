"""
Transfer, claim and balance exceptions.

Every class carries its own stable code so that a failed ``Result``
identifies the exact rule that was violated.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from stprime.errors.base import STPrimeError


class InvalidInputError(STPrimeError):
    """
    Raised when a request fails a synchronous input check.

    Example:
        >>> raise InvalidInputError("Invalid transaction tag", code="INVALID_TAG")
    """

    code = "INVALID_INPUT"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code, details=details)


class InvalidAddressError(InvalidInputError):
    """
    Raised when a chain address is malformed.

    The code is derived from the field name, so a bad sender and a bad
    recipient are reported as ``INVALID_SENDER_ADDRESS`` and
    ``INVALID_RECIPIENT_ADDRESS`` respectively.

    Example:
        >>> raise InvalidAddressError("0x12", field="recipient")
    """

    def __init__(
        self,
        address: Any,
        *,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        details["address"] = str(address)
        if field:
            details["field"] = field

        code = f"INVALID_{field.upper()}_ADDRESS" if field else "INVALID_ADDRESS"
        super().__init__(
            f"Invalid blockchain address: {address}",
            code=code,
            details=details,
        )
        self.address = address
        self.field = field


class SameAddressError(InvalidInputError):
    """Raised when sender and recipient are the same address."""

    code = "SAME_SENDER_RECIPIENT"

    def __init__(self, sender: str, recipient: str) -> None:
        super().__init__(
            f"Same sender & recipient address provided. Sender: {sender} , Recipient: {recipient}",
            details={"sender": sender, "recipient": recipient},
        )


class InvalidAmountError(InvalidInputError):
    """Raised when an amount is missing, non-integral or not positive."""

    code = "INVALID_AMOUNT"

    def __init__(self, amount: Any, *, reason: Optional[str] = None) -> None:
        details: Dict[str, Any] = {"amount": str(amount)}
        if reason:
            details["reason"] = reason
        super().__init__(f"Invalid amount: {amount}", details=details)
        self.amount = amount


class InvalidTagError(InvalidInputError):
    """Raised when the transaction tag fails the format check."""

    code = "INVALID_TAG"

    def __init__(self, tag: Any) -> None:
        super().__init__(
            "Invalid transaction tag",
            details={"tag": tag if isinstance(tag, str) else repr(tag)},
        )
        self.tag = tag


class InsufficientFundsError(STPrimeError):
    """
    Raised when the sender's live balance does not cover the amount.

    Example:
        >>> raise InsufficientFundsError("0xabc...", balance=50, required=100)
    """

    code = "INSUFFICIENT_FUNDS"

    def __init__(self, owner: str, *, balance: int, required: int) -> None:
        super().__init__(
            "Insufficient Funds",
            details={
                "owner": owner,
                "balance": str(balance),
                "required": str(required),
            },
        )
        self.owner = owner
        self.balance = balance
        self.required = required


class BalanceUnavailableError(STPrimeError):
    """Raised when the live balance could not be read from the node."""

    code = "BALANCE_UNAVAILABLE"

    def __init__(self, owner: str, *, reason: Optional[str] = None) -> None:
        details: Dict[str, Any] = {"owner": owner}
        if reason:
            details["reason"] = reason
        super().__init__(
            f"Unable to read balance of {owner}",
            details=details,
        )
        self.owner = owner


class SubmissionError(STPrimeError):
    """
    Raised when the node rejected the broadcast before returning a hash.
    """

    code = "SUBMISSION_FAILED"

    def __init__(
        self,
        message: str = "Transaction failed",
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details=details)


class ConfirmationError(STPrimeError):
    """
    Raised when a submitted transaction did not reach a successful receipt.

    Covers a failed wait-for-receipt whose recovery lookup found nothing, and
    receipts the node reported as reverted.
    """

    code = "CONFIRMATION_FAILED"

    def __init__(
        self,
        message: str = "Transaction failed",
        *,
        tx_hash: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, tx_hash=tx_hash, details=details)


class EstimationError(STPrimeError):
    """Raised when gas estimation for a contract method fails."""

    code = "ESTIMATION_FAILED"

    def __init__(
        self,
        method_name: str,
        *,
        reason: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        details["method"] = method_name
        if reason:
            details["reason"] = reason
        super().__init__(
            f"Gas estimation failed for {method_name}",
            details=details,
        )
        self.method_name = method_name


class DependencyError(STPrimeError):
    """
    Raised when a best-effort dependency (cache, notification bus) fails.

    Never changes the outcome of a transfer.
    """

    code = "DEPENDENCY_FAILURE"

    def __init__(
        self,
        dependency: str,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        details["dependency"] = dependency
        super().__init__(message, details=details)
        self.dependency = dependency


class InvalidStateTransitionError(STPrimeError):
    """Raised when a transfer handle is moved through an illegal transition."""

    code = "INVALID_STATE_TRANSITION"

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details=details)
