"""
Transfer orchestration.

A transfer moves through four stages:

    PENDING --hash--> SUBMITTED --receipt--> CONFIRMED
       |                  |
       +------------------+-----error------> FAILED

Each transition into SUBMITTED, CONFIRMED or FAILED publishes one
lifecycle notification (``transaction_initiated``, ``transaction_mined``,
``transaction_error``). The caller is released at the stage named by the
request's ReturnPolicy; once released, later failures are visible only as
``transaction_error`` notifications.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import replace
from typing import Any, Dict, Optional, Set

from stprime.balance import BalanceReader
from stprime.constants import (
    KIND_TRANSACTION_ERROR,
    KIND_TRANSACTION_INITIATED,
    KIND_TRANSACTION_MINED,
    TRANSFER_GAS_LIMIT,
    TRANSFER_TOPIC,
)
from stprime.contract import StPrimeContract
from stprime.errors import ConfirmationError, STPrimeError, SubmissionError, describe_error
from stprime.models import (
    LifecycleNotification,
    Result,
    ReturnPolicy,
    TransferHandle,
    TransferRequest,
    TransferStage,
)
from stprime.notifications import NotificationDispatcher
from stprime.orchestrator.submission import SubmissionTracker
from stprime.rpc.transport import ChainTransport
from stprime.utils.logging import get_logger
from stprime.utils.validation import (
    validate_address,
    validate_amount,
    validate_distinct,
    validate_tag,
)

_logger = get_logger(__name__)


class TransferOrchestrator:
    """
    Validates, submits and tracks value transfers.

    Example:
        >>> orchestrator = TransferOrchestrator(
        ...     transport=transport,
        ...     contract=StPrimeContract("0x..."),
        ...     balance_reader=BalanceReader(transport),
        ...     dispatcher=NotificationDispatcher(publisher),
        ...     gas_price=1_000_000_000,
        ... )
        >>> result = await orchestrator.transfer(TransferRequest(
        ...     sender_address="0x...",
        ...     sender_credential="0x<private key>",
        ...     recipient_address="0x...",
        ...     amount=100,
        ...     tag="payout",
        ...     return_policy=ReturnPolicy.ON_CONFIRMED,
        ... ))
        >>> result.data["transaction_hash"]
    """

    def __init__(
        self,
        transport: ChainTransport,
        contract: StPrimeContract,
        balance_reader: BalanceReader,
        dispatcher: NotificationDispatcher,
        gas_price: int,
        tracker: Optional[SubmissionTracker] = None,
        gas_limit: int = TRANSFER_GAS_LIMIT,
        topic: str = TRANSFER_TOPIC,
    ) -> None:
        self._transport = transport
        self._contract = contract
        self._balance_reader = balance_reader
        self._dispatcher = dispatcher
        self._gas_price = gas_price
        self._gas_limit = gas_limit
        self._tracker = tracker or SubmissionTracker(transport)
        self._topic = topic
        self._background: Set[asyncio.Task[None]] = set()

    @property
    def in_flight(self) -> int:
        """Number of lifecycles still running."""
        return len(self._background)

    async def transfer(self, request: TransferRequest) -> Result:
        """
        Transfer ``request.amount`` from sender to recipient.

        Returns:
            Result with ``transfer_id``, ``transaction_hash`` ("" until submitted)
            and ``receipt`` ({} until confirmed), or a failed Result whose
            ``error_code`` names the violated rule or the failed stage.
        """
        try:
            amount = self._validate(request)
            await self._balance_reader.check(request.sender_address, amount, "sender")
        except STPrimeError as e:
            _logger.info(
                "Transfer rejected",
                extra={"sender": request.sender_address, "code": e.code},
            )
            return Result.from_error(e)

        policy = ReturnPolicy.from_value(request.return_policy)
        handle = TransferHandle(transfer_id=str(uuid.uuid4()))
        tx_params = {
            "from": request.sender_address,
            "to": request.recipient_address,
            "value": amount,
            "gasPrice": self._gas_price,
            "gas": self._gas_limit,
        }
        template = LifecycleNotification(
            topic=self._topic,
            kind="",
            transfer_id=handle.transfer_id,
            contract_name=self._contract.name,
            contract_address=self._contract.address,
            method="transfer",
            chain_id=self._transport.chain_id,
            chain_kind=self._transport.chain_kind,
            tag=request.tag,
            tx_params={**tx_params, "value": str(amount)},
        )

        _logger.info(
            "Transfer accepted",
            extra={"transfer_id": handle.transfer_id, "policy": policy.value, "tag": request.tag},
        )

        if policy is ReturnPolicy.ON_ACCEPTED:
            self._start(handle, tx_params, request.sender_credential, template, policy, None)
            return Result.ok(self._outcome(handle))

        waiter: asyncio.Future[Result] = asyncio.get_running_loop().create_future()
        self._start(handle, tx_params, request.sender_credential, template, policy, waiter)
        return await waiter

    async def drain(self) -> None:
        """Wait for every running lifecycle and its notifications."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        await self._dispatcher.drain()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def _start(
        self,
        handle: TransferHandle,
        tx_params: Dict[str, Any],
        credential: str,
        template: LifecycleNotification,
        policy: ReturnPolicy,
        waiter: Optional[asyncio.Future[Result]],
    ) -> None:
        task = asyncio.create_task(self._run(handle, tx_params, credential, template, policy, waiter))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _run(
        self,
        handle: TransferHandle,
        tx_params: Dict[str, Any],
        credential: str,
        template: LifecycleNotification,
        policy: ReturnPolicy,
        waiter: Optional[asyncio.Future[Result]],
    ) -> None:
        def on_submitted(tx_hash: str) -> None:
            handle.set_transaction_hash(tx_hash)
            handle.advance(TransferStage.SUBMITTED)
            self._emit(template, KIND_TRANSACTION_INITIATED, handle)
            if policy is ReturnPolicy.ON_SUBMITTED:
                self._resolve(waiter, Result.ok(self._outcome(handle)))

        submitting = self._tracker.submit(tx_params, credential, on_submitted)
        del credential
        try:
            try:
                submission = await submitting
            except (SubmissionError, ConfirmationError) as e:
                self._fail(handle, template, e)
                self._resolve(waiter, Result.from_error(e))
                return

            if handle.transaction_hash is None:
                on_submitted(submission.transaction_hash)
            handle.set_receipt(submission.receipt)
            handle.advance(TransferStage.CONFIRMED)
            self._emit(template, KIND_TRANSACTION_MINED, handle)
            _logger.info(
                "Transfer mined",
                extra={"transfer_id": handle.transfer_id, "tx_hash": handle.transaction_hash},
            )
            self._resolve(waiter, Result.ok(self._outcome(handle)))
        except Exception as e:
            # Defect: close the lifecycle, then surface to a waiting caller or log
            if not handle.stage.is_terminal:
                handle.advance(TransferStage.FAILED)
                self._emit(template, KIND_TRANSACTION_ERROR, handle, error_data=describe_error(e))
            if waiter is not None and not waiter.done():
                waiter.set_exception(e)
            else:
                _logger.exception(
                    "Transfer lifecycle crashed",
                    extra={"transfer_id": handle.transfer_id},
                )

    def _fail(self, handle: TransferHandle, template: LifecycleNotification, error: STPrimeError) -> None:
        handle.advance(TransferStage.FAILED)
        _logger.error(
            "Transfer failed",
            extra={
                "transfer_id": handle.transfer_id,
                "tx_hash": handle.transaction_hash,
                "code": error.code,
            },
        )
        self._emit(template, KIND_TRANSACTION_ERROR, handle, error_data=error.to_dict())

    def _emit(
        self,
        template: LifecycleNotification,
        kind: str,
        handle: TransferHandle,
        error_data: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._dispatcher.emit(
            replace(
                template,
                kind=kind,
                transaction_hash=handle.transaction_hash or "",
                error_data=error_data or {},
            )
        )

    @staticmethod
    def _resolve(waiter: Optional[asyncio.Future[Result]], result: Result) -> None:
        if waiter is not None and not waiter.done():
            waiter.set_result(result)

    @staticmethod
    def _outcome(handle: TransferHandle) -> Dict[str, Any]:
        return {
            "transfer_id": handle.transfer_id,
            "transaction_hash": handle.transaction_hash or "",
            "receipt": handle.receipt or {},
        }

    @staticmethod
    def _validate(request: TransferRequest) -> int:
        """Synchronous checks, in a fixed order; raises on the first violation."""
        validate_address(request.sender_address, "sender")
        validate_address(request.recipient_address, "recipient")
        validate_distinct(request.sender_address, request.recipient_address)
        amount = validate_amount(request.amount)
        validate_tag(request.tag)
        return amount
