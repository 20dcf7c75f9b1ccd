"""
Validation utilities for the ST Prime SDK.

Stateless checks on addresses, amounts and transaction tags. The ``is_*``
predicates never raise; the ``validate_*`` helpers raise the matching
InvalidInputError subclass so callers get a stable error code per rule.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from stprime.constants import ADDRESS_PATTERN, MAX_SAFE_AMOUNT, TAG_PATTERN
from stprime.errors import (
    InvalidAddressError,
    InvalidAmountError,
    InvalidTagError,
    SameAddressError,
)

_ADDRESS_RE = re.compile(ADDRESS_PATTERN)
_TAG_RE = re.compile(TAG_PATTERN)
_DECIMAL_INT_RE = re.compile(r"[0-9]+")


def is_address_valid(address: Any) -> bool:
    """Return True if ``address`` is 0x followed by 40 hex characters."""
    return isinstance(address, str) and _ADDRESS_RE.fullmatch(address) is not None


def addresses_equal(a: str, b: str) -> bool:
    """Compare two addresses ignoring case."""
    return str(a).lower() == str(b).lower()


def to_amount(amount: Any) -> Optional[int]:
    """
    Parse an amount in the smallest unit.

    Accepts ints and strings of ASCII digits. Floats, booleans, signs,
    whitespace and fractional values are rejected.

    Returns:
        Parsed integer, or None if the value is not a whole number
    """
    if isinstance(amount, bool):
        return None
    if isinstance(amount, int):
        return amount
    if isinstance(amount, str) and _DECIMAL_INT_RE.fullmatch(amount):
        return int(amount)
    return None


def is_non_zero_amount_valid(amount: Any) -> bool:
    """Return True for whole amounts in ``1..MAX_SAFE_AMOUNT``."""
    value = to_amount(amount)
    return value is not None and 0 < value <= MAX_SAFE_AMOUNT


def is_tag_valid(tag: Any) -> bool:
    """Return True if ``tag`` is a non-empty string of ``[A-Za-z0-9_.-]``."""
    return isinstance(tag, str) and _TAG_RE.fullmatch(tag) is not None


def validate_address(address: Any, field_name: Optional[str] = None) -> str:
    """
    Validate an address.

    Args:
        address: Address to validate
        field_name: Field name used to derive the error code

    Returns:
        The address, unchanged

    Raises:
        InvalidAddressError: If address is malformed
    """
    if not is_address_valid(address):
        raise InvalidAddressError(address, field=field_name)
    return address


def validate_distinct(sender: str, recipient: str) -> None:
    """
    Raises:
        SameAddressError: If both addresses are equal ignoring case
    """
    if addresses_equal(sender, recipient):
        raise SameAddressError(sender, recipient)


def validate_amount(amount: Any) -> int:
    """
    Validate a transfer amount.

    Returns:
        Amount as integer

    Raises:
        InvalidAmountError: If amount is not a positive whole number
    """
    value = to_amount(amount)
    if value is None:
        raise InvalidAmountError(amount, reason="must be a whole number")
    if value <= 0:
        raise InvalidAmountError(amount, reason="must be greater than zero")
    if value > MAX_SAFE_AMOUNT:
        raise InvalidAmountError(amount, reason="exceeds uint256")
    return value


def validate_tag(tag: Any) -> str:
    """
    Raises:
        InvalidTagError: If tag fails the format check
    """
    if not is_tag_valid(tag):
        raise InvalidTagError(tag)
    return tag
