"""
Root of the ST Prime exception tree.

Each subclass declares its stable ``code`` at class level. Public
operations never raise these to the caller: they are turned into failed
``Result`` envelopes (``Result.from_error``) or into the ``error_data`` of a
``transaction_error`` notification, both built from ``to_dict()``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class STPrimeError(Exception):
    """
    Base exception for all ST Prime errors.

    Attributes:
        message: Human-readable description
        code: Machine-readable code, defaults to the class's ``code``
        tx_hash: Transaction the error relates to, if one was broadcast
        details: JSON-safe context

    Example:
        >>> error = ConfirmationError(tx_hash="0xdef...", details={"error": {...}})
        >>> error.to_dict()["code"]
        'CONFIRMATION_FAILED'
    """

    code = "STPRIME_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        tx_hash: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.tx_hash = tx_hash
        self.details = details or {}

    def __str__(self) -> str:
        if self.tx_hash:
            return f"[{self.code}] {self.message} (tx {self.tx_hash})"
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe payload; ``transaction_hash`` and ``details`` only when set."""
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.tx_hash:
            payload["transaction_hash"] = self.tx_hash
        if self.details:
            payload["details"] = dict(self.details)
        return payload


def describe_error(error: BaseException) -> Dict[str, Any]:
    """
    Payload for any exception.

    SDK errors use ``to_dict()``; anything else (a socket error from a
    transport, say) is reported as ``UNEXPECTED_ERROR`` with its type name.
    """
    if isinstance(error, STPrimeError):
        return error.to_dict()
    return {
        "code": "UNEXPECTED_ERROR",
        "message": str(error) or type(error).__name__,
        "details": {"type": type(error).__name__},
    }
