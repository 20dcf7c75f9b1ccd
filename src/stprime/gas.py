"""Gas estimation for contract method invocations."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List

from .constants import GAS_ESTIMATION_BUFFER, MAX_GAS_LIMIT
from .contract import StPrimeContract
from .errors import EstimationError, RpcError
from .rpc.transport import ChainTransport
from .utils.logging import get_logger

__all__ = ["GasEstimateRequest", "GasEstimator", "TransportGasEstimator"]

_logger = get_logger(__name__)


@dataclass(frozen=True)
class GasEstimateRequest:
    contract_name: str
    contract_address: str
    chain_kind: str
    sender_address: str
    method_name: str
    method_arguments: List[Any] = field(default_factory=list)


class GasEstimator(ABC):
    @abstractmethod
    async def estimate(self, request: GasEstimateRequest) -> int:
        """Return the gas to use for ``request``.

        Raises:
            EstimationError: If the estimate could not be produced
        """


class TransportGasEstimator(GasEstimator):
    """Estimates through ``eth_estimateGas`` with a safety buffer.

    Args:
        transport: Chain transport used for the estimate
        buffer: Multiplier applied to the node's estimate (default 1.15 = 15%)
        max_gas: Upper cap, protects against a misbehaving node
    """

    def __init__(
        self,
        transport: ChainTransport,
        buffer: float = GAS_ESTIMATION_BUFFER,
        max_gas: int = MAX_GAS_LIMIT,
    ):
        self._transport = transport
        self._buffer = buffer
        self._max_gas = max_gas

    async def estimate(self, request: GasEstimateRequest) -> int:
        try:
            data = StPrimeContract.encode_call(request.method_name, request.method_arguments)
        except ValueError as e:
            raise EstimationError(request.method_name, reason=str(e)) from e

        tx_params = {
            "from": request.sender_address,
            "to": request.contract_address,
            "data": data,
        }
        try:
            base = await self._transport.estimate_gas(tx_params)
        except RpcError as e:
            _logger.warning(
                "Gas estimation failed",
                extra={"method": request.method_name, "contract": request.contract_name, "error": str(e)},
            )
            raise EstimationError(request.method_name, reason=e.message) from e

        estimated = int(base * self._buffer)
        return min(estimated, self._max_gas)
