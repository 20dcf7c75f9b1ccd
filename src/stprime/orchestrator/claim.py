"""
Claim orchestration.

A claim releases previously allocated ST Prime to a beneficiary. Its cost
depends on contract state, so gas is estimated per call instead of using a
fixed limit.
"""

from __future__ import annotations

from typing import Optional

from stprime.contract import StPrimeContract
from stprime.errors import STPrimeError
from stprime.gas import GasEstimateRequest, GasEstimator
from stprime.models import Result
from stprime.orchestrator.submission import SubmissionTracker
from stprime.rpc.transport import ChainTransport
from stprime.utils.logging import get_logger
from stprime.utils.validation import validate_address

_logger = get_logger(__name__)


class ClaimOrchestrator:
    """Submits ``claim(beneficiary)`` and waits for the outcome."""

    def __init__(
        self,
        transport: ChainTransport,
        contract: StPrimeContract,
        gas_estimator: GasEstimator,
        gas_price: int,
        tracker: Optional[SubmissionTracker] = None,
    ) -> None:
        self._transport = transport
        self._contract = contract
        self._gas_estimator = gas_estimator
        self._gas_price = gas_price
        self._tracker = tracker or SubmissionTracker(transport)

    async def claim(self, sender_address: str, sender_credential: str, beneficiary_address: str) -> Result:
        """
        Claim ST Prime for ``beneficiary_address``.

        Returns:
            Result with ``transaction_hash`` and ``receipt``, or a failed Result
            (INVALID_*_ADDRESS, RPC_ERROR, ESTIMATION_FAILED, SUBMISSION_FAILED,
            CONFIRMATION_FAILED)
        """
        try:
            validate_address(sender_address, "sender")
            validate_address(beneficiary_address, "beneficiary")

            gas_price = await self._resolve_gas_price()
            gas = await self._gas_estimator.estimate(
                GasEstimateRequest(
                    contract_name=self._contract.name,
                    contract_address=self._contract.address,
                    chain_kind=self._transport.chain_kind,
                    sender_address=sender_address,
                    method_name="claim",
                    method_arguments=[beneficiary_address],
                )
            )
            tx_params = {
                "from": sender_address,
                "to": self._contract.address,
                "data": self._contract.encode_call("claim", [beneficiary_address]),
                "gasPrice": gas_price,
                "gas": gas,
            }
            submission = await self._tracker.submit(tx_params, sender_credential)
        except STPrimeError as e:
            _logger.warning(
                "Claim failed",
                extra={"beneficiary": beneficiary_address, "code": e.code},
            )
            return Result.from_error(e)

        _logger.info(
            "Claim mined",
            extra={"beneficiary": beneficiary_address, "tx_hash": submission.transaction_hash},
        )
        return Result.ok(submission.to_dict())

    async def _resolve_gas_price(self) -> int:
        """Zero-fee networks get a zero price; otherwise the configured default.

        Raises:
            RpcError: If the node gas price could not be read
        """
        current: int = await self._transport.get_gas_price()
        return 0 if current == 0 else self._gas_price

