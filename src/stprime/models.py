from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .constants import NOTIFICATION_PUBLISHER
from .errors import InvalidStateTransitionError, STPrimeError

__all__ = [
    "ReturnPolicy",
    "TransferStage",
    "TransferRequest",
    "TransferHandle",
    "LifecycleNotification",
    "BalanceCheckResult",
    "CachedBalance",
    "SubmissionReceipt",
    "Result",
]


class ReturnPolicy(str, Enum):
    """Lifecycle stage at which ``transfer`` hands control back to the caller."""

    ON_ACCEPTED = "accepted"
    ON_SUBMITTED = "submitted"
    ON_CONFIRMED = "confirmed"

    @classmethod
    def from_value(cls, value: Union["ReturnPolicy", str, None]) -> "ReturnPolicy":
        """Resolve a policy, falling back to ON_ACCEPTED for unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.ON_ACCEPTED


class TransferStage(Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TransferStage.CONFIRMED, TransferStage.FAILED)


ALLOWED_TRANSITIONS = {
    TransferStage.PENDING: {TransferStage.SUBMITTED, TransferStage.FAILED},
    TransferStage.SUBMITTED: {TransferStage.CONFIRMED, TransferStage.FAILED},
    TransferStage.CONFIRMED: set(),
    TransferStage.FAILED: set(),
}


@dataclass
class TransferRequest:
    """A requested value transfer.

    Attributes:
        sender_address: Address the value is sent from
        sender_credential: Private key of the sender, used once for signing
        recipient_address: Address receiving the value
        amount: Amount in the smallest unit (int or decimal string)
        tag: Free-text classification logged with every notification
        return_policy: Stage at which the caller is released
    """
    sender_address: str
    sender_credential: str = field(repr=False)
    recipient_address: str
    amount: Union[int, str]
    tag: Optional[str] = None
    return_policy: ReturnPolicy = ReturnPolicy.ON_ACCEPTED


@dataclass
class TransferHandle:
    """Per-transfer state shared by every notification of that transfer.

    ``transaction_hash`` and ``receipt`` are written once and never reset;
    ``stage`` only moves along ALLOWED_TRANSITIONS.
    """
    transfer_id: str
    transaction_hash: Optional[str] = None
    receipt: Optional[Dict[str, Any]] = None
    stage: TransferStage = TransferStage.PENDING

    def advance(self, new_stage: TransferStage) -> None:
        allowed = ALLOWED_TRANSITIONS[self.stage]
        if new_stage not in allowed:
            allowed_names = sorted(s.name for s in allowed)
            raise InvalidStateTransitionError(
                f"invalid transition {self.stage.name} -> {new_stage.name}; allowed: {allowed_names}",
                details={"transfer_id": self.transfer_id},
            )
        self.stage = new_stage

    def set_transaction_hash(self, tx_hash: str) -> None:
        if self.transaction_hash is not None:
            raise InvalidStateTransitionError(
                "transaction hash already set",
                details={"transfer_id": self.transfer_id, "transaction_hash": self.transaction_hash},
            )
        self.transaction_hash = tx_hash

    def set_receipt(self, receipt: Dict[str, Any]) -> None:
        if self.receipt is not None:
            raise InvalidStateTransitionError(
                "receipt already set",
                details={"transfer_id": self.transfer_id},
            )
        self.receipt = receipt


@dataclass(frozen=True)
class LifecycleNotification:
    topic: str
    kind: str
    transfer_id: str
    contract_name: str
    contract_address: str
    method: str
    chain_id: int
    chain_kind: str
    tag: Optional[str] = None
    arguments: List[Any] = field(default_factory=list)
    tx_params: Dict[str, Any] = field(default_factory=dict)
    transaction_hash: str = ""
    error_data: Dict[str, Any] = field(default_factory=dict)

    def to_message(self) -> Dict[str, Any]:
        """Render the notification bus message."""
        return {
            "topics": [self.topic],
            "publisher": NOTIFICATION_PUBLISHER,
            "message": {
                "kind": self.kind,
                "payload": {
                    "contract_name": self.contract_name,
                    "contract_address": self.contract_address,
                    "erc20_contract_address": "",
                    "method": self.method,
                    "params": {"args": list(self.arguments), "txParams": dict(self.tx_params)},
                    "transaction_hash": self.transaction_hash,
                    "chain_id": self.chain_id,
                    "chain_kind": self.chain_kind,
                    "uuid": self.transfer_id,
                    "tag": self.tag,
                    "error_data": dict(self.error_data),
                },
            },
        }


@dataclass(frozen=True)
class BalanceCheckResult:
    sufficient: bool
    current_balance: int
    required_balance: int


@dataclass(frozen=True)
class CachedBalance:
    owner: str
    chain_id: int
    balance: str  # decimal string, no float precision loss


@dataclass(frozen=True)
class SubmissionReceipt:
    transaction_hash: str
    receipt: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"transaction_hash": self.transaction_hash, "receipt": self.receipt}


@dataclass(frozen=True)
class Result:
    """Uniform envelope returned by every public operation.

    Example:
        >>> result = await client.get_balance_of("0x...")
        >>> if result.is_success():
        ...     print(result.data["balance"])
        ... else:
        ...     print(result.error_code, result.error_message)
    """
    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    error_details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: Optional[Dict[str, Any]] = None) -> "Result":
        return cls(success=True, data=data or {})

    @classmethod
    def fail(
        cls,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> "Result":
        return cls(
            success=False,
            error_code=code,
            error_message=message,
            error_details=details or {},
        )

    @classmethod
    def from_error(cls, error: STPrimeError) -> "Result":
        payload = error.to_dict()
        details = payload.get("details", {})
        if "transaction_hash" in payload:
            details.setdefault("transaction_hash", payload["transaction_hash"])
        return cls.fail(payload["code"], payload["message"], details)

    def is_success(self) -> bool:
        return self.success

    def is_failure(self) -> bool:
        return not self.success

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}
        return {
            "success": False,
            "err": {
                "code": self.error_code,
                "msg": self.error_message,
                "details": self.error_details,
            },
        }
