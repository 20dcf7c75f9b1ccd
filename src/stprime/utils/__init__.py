"""
ST Prime SDK utilities.
"""

from stprime.utils.logging import configure_logging, get_logger, set_level
from stprime.utils.retry import RetryConfig, retry_async
from stprime.utils.validation import (
    addresses_equal,
    is_address_valid,
    is_non_zero_amount_valid,
    is_tag_valid,
    to_amount,
)

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "set_level",
    # Retry
    "RetryConfig",
    "retry_async",
    # Validation
    "addresses_equal",
    "is_address_valid",
    "is_non_zero_amount_valid",
    "is_tag_valid",
    "to_amount",
]
