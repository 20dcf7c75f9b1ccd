"""
ST Prime SDK.

Orchestrates value transfers, claims and balance lookups against the ST Prime
contract of a utility chain through a remote RPC node.

Modules:
- `client`: STPrimeClient facade
- `orchestrator`: transfer/claim state machines and confirmation recovery
- `rpc`: chain transport interface and Web3 implementation
- `balance`, `cache`, `gas`, `notifications`: collaborators injected into the orchestrators
- `errors`: exception hierarchy with stable error codes
- `utils`: logging, retry and validation helpers
"""

from .balance import BalanceReader
from .cache import BalanceCache, CacheBackend, InMemoryCacheBackend
from .client import STPrimeClient
from .config import NETWORKS, Network, NetworkConfig, get_network_config, load_network_config
from .contract import ST_PRIME_ABI, StPrimeContract
from .errors import (
    BalanceUnavailableError,
    BroadcastRejectedError,
    ConfirmationError,
    DependencyError,
    EstimationError,
    InsufficientFundsError,
    InvalidAddressError,
    InvalidAmountError,
    InvalidInputError,
    InvalidStateTransitionError,
    InvalidTagError,
    PendingConfirmationTimeout,
    ReceiptNotFoundError,
    RpcError,
    SameAddressError,
    STPrimeError,
    SubmissionError,
)
from .gas import GasEstimateRequest, GasEstimator, TransportGasEstimator
from .models import (
    BalanceCheckResult,
    CachedBalance,
    LifecycleNotification,
    Result,
    ReturnPolicy,
    SubmissionReceipt,
    TransferHandle,
    TransferRequest,
    TransferStage,
)
from .notifications import (
    HttpNotificationPublisher,
    InMemoryNotificationPublisher,
    NotificationDispatcher,
    NotificationEndpointConfig,
    NotificationEnvelope,
    NotificationPublisher,
)
from .orchestrator import ClaimOrchestrator, SubmissionTracker, TransferOrchestrator
from .rpc import ChainTransport, ReceiptEvent, TransactionHashEvent, Web3Transport

__version__ = "0.1.0"

__all__ = [
    # Client
    "STPrimeClient",
    # Config
    "Network",
    "NetworkConfig",
    "NETWORKS",
    "get_network_config",
    "load_network_config",
    # Contract
    "ST_PRIME_ABI",
    "StPrimeContract",
    # Models
    "Result",
    "ReturnPolicy",
    "TransferRequest",
    "TransferHandle",
    "TransferStage",
    "LifecycleNotification",
    "BalanceCheckResult",
    "CachedBalance",
    "SubmissionReceipt",
    # Orchestration
    "TransferOrchestrator",
    "ClaimOrchestrator",
    "SubmissionTracker",
    # Collaborators
    "BalanceReader",
    "BalanceCache",
    "CacheBackend",
    "InMemoryCacheBackend",
    "GasEstimateRequest",
    "GasEstimator",
    "TransportGasEstimator",
    "NotificationPublisher",
    "InMemoryNotificationPublisher",
    "HttpNotificationPublisher",
    "NotificationDispatcher",
    "NotificationEndpointConfig",
    "NotificationEnvelope",
    "ChainTransport",
    "TransactionHashEvent",
    "ReceiptEvent",
    "Web3Transport",
    # Errors
    "STPrimeError",
    "InvalidInputError",
    "InvalidAddressError",
    "SameAddressError",
    "InvalidAmountError",
    "InvalidTagError",
    "InsufficientFundsError",
    "BalanceUnavailableError",
    "SubmissionError",
    "ConfirmationError",
    "EstimationError",
    "DependencyError",
    "InvalidStateTransitionError",
    "RpcError",
    "BroadcastRejectedError",
    "PendingConfirmationTimeout",
    "ReceiptNotFoundError",
]
