"""Live balance reads.

BalanceReader always queries the chain. Solvency checks go through it and
never through the balance cache.
"""
from __future__ import annotations

from typing import Optional

from .errors import BalanceUnavailableError, InsufficientFundsError, RpcError, STPrimeError
from .models import BalanceCheckResult, Result
from .rpc.transport import ChainTransport
from .utils.logging import get_logger
from .utils.validation import validate_address

__all__ = ["BalanceReader"]

_logger = get_logger(__name__)


class BalanceReader:
    def __init__(self, transport: ChainTransport):
        self._transport = transport

    async def fetch(self, address: str, field_name: Optional[str] = None) -> int:
        """Read the live balance of ``address``.

        Raises:
            InvalidAddressError: Before any network call, if address is malformed
            BalanceUnavailableError: If the node could not be queried
        """
        validate_address(address, field_name)
        try:
            return await self._transport.get_balance(address)
        except RpcError as e:
            _logger.warning("Balance read failed", extra={"owner": address, "error": str(e)})
            raise BalanceUnavailableError(address, reason=e.message) from e

    async def get(self, address: str) -> Result:
        """Get the live balance of ``address`` as a Result envelope.

        Example:
            >>> result = await reader.get("0x...")
            >>> result.data["balance"]
            1000
        """
        try:
            balance = await self.fetch(address)
        except STPrimeError as e:
            return Result.from_error(e)
        return Result.ok({"balance": balance})

    async def check(self, owner: str, required: int, field_name: Optional[str] = None) -> BalanceCheckResult:
        """Verify that ``owner`` holds at least ``required``.

        Raises:
            InsufficientFundsError: If the live balance is below ``required``
        """
        balance = await self.fetch(owner, field_name)
        result = BalanceCheckResult(
            sufficient=balance >= required,
            current_balance=balance,
            required_balance=required,
        )
        if not result.sufficient:
            raise InsufficientFundsError(owner, balance=balance, required=required)
        return result
