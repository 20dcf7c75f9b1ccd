"""Constants for the ST Prime SDK.

This module defines the constant values used across the SDK: gas
parameters, validation bounds, notification topics and cache key layout.
"""

# Contract
ST_PRIME_CONTRACT_NAME = "stPrime"

# Gas Constants
TRANSFER_GAS_LIMIT = 25_000  # plain value transfer, no contract execution
GAS_ESTIMATION_BUFFER = 1.15
MAX_GAS_LIMIT = 10_000_000

# Amount Validation Constants
MAX_SAFE_AMOUNT = 2**256 - 1

# Address: 0x + 40 hex chars
ADDRESS_PATTERN = r"^0x[0-9a-fA-F]{40}$"

# Transaction tag: letters, digits, underscore, dot, hyphen
TAG_PATTERN = r"^[A-Za-z0-9_.\-]+$"

# Network Constants
DEFAULT_CONFIRMATION_TIMEOUT = 300.0
DEFAULT_CONFIRMATION_BLOCKS = 50
DEFAULT_RECEIPT_POLL_LATENCY = 1.0

# Notifications
TRANSFER_TOPIC = "transfer.st_prime"
NOTIFICATION_PUBLISHER = "OST"
KIND_TRANSACTION_INITIATED = "transaction_initiated"
KIND_TRANSACTION_MINED = "transaction_mined"
KIND_TRANSACTION_ERROR = "transaction_error"

# Cache
DEFAULT_CACHE_KEY_PREFIX = "stprime"
BALANCE_CACHE_SEGMENT = "stpbal"

__all__ = [
    "ST_PRIME_CONTRACT_NAME",
    "TRANSFER_GAS_LIMIT",
    "GAS_ESTIMATION_BUFFER",
    "MAX_GAS_LIMIT",
    "MAX_SAFE_AMOUNT",
    "ADDRESS_PATTERN",
    "TAG_PATTERN",
    "DEFAULT_CONFIRMATION_TIMEOUT",
    "DEFAULT_CONFIRMATION_BLOCKS",
    "DEFAULT_RECEIPT_POLL_LATENCY",
    "TRANSFER_TOPIC",
    "NOTIFICATION_PUBLISHER",
    "KIND_TRANSACTION_INITIATED",
    "KIND_TRANSACTION_MINED",
    "KIND_TRANSACTION_ERROR",
    "DEFAULT_CACHE_KEY_PREFIX",
    "BALANCE_CACHE_SEGMENT",
]
