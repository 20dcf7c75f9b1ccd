"""ST Prime client for Python.

This module provides the STPrimeClient class, the entry point for value
transfers and balance operations against the ST Prime contract of a
utility chain.

The client supports:
- Transfers with caller-selectable return points and lifecycle notifications
- Beneficiary claims with per-call gas estimation
- Live and cached balance lookups
- Contract setup (initial transfer of the total supply)

Every operation returns a ``Result`` envelope; expected failures never raise.

Example:
    >>> from stprime import STPrimeClient, Network, ReturnPolicy, get_network_config
    >>> async with STPrimeClient.from_config(get_network_config(Network.LOCAL)) as client:
    ...     result = await client.transfer(
    ...         sender_address="0x...",
    ...         sender_credential="0x<private key>",
    ...         recipient_address="0x...",
    ...         amount=10**18,
    ...         tag="airdrop",
    ...         return_policy=ReturnPolicy.ON_SUBMITTED,
    ...     )
    ...     print(result.data["transaction_hash"])
"""
from __future__ import annotations

from typing import Any, Dict, Optional, Union

from eth_abi.exceptions import DecodingError
from web3 import AsyncWeb3, Web3

from .balance import BalanceReader
from .cache import BalanceCache, CacheBackend, InMemoryCacheBackend
from .config import NetworkConfig
from .contract import StPrimeContract
from .errors import InvalidAmountError, STPrimeError
from .gas import GasEstimator, TransportGasEstimator
from .models import Result, ReturnPolicy, TransferRequest
from .notifications import (
    HttpNotificationPublisher,
    InMemoryNotificationPublisher,
    NotificationDispatcher,
    NotificationEndpointConfig,
    NotificationPublisher,
)
from .orchestrator import (
    ClaimOrchestrator,
    SubmissionTracker,
    TransferOrchestrator,
    default_lookup_retry,
)
from .rpc import ChainTransport, Web3Transport
from .utils.logging import get_logger
from .utils.retry import RetryConfig
from .utils.validation import to_amount, validate_address

_logger = get_logger(__name__)


class STPrimeClient:
    """ST Prime client with explicitly injected collaborators."""

    def __init__(
        self,
        config: NetworkConfig,
        transport: ChainTransport,
        cache_backend: Optional[CacheBackend] = None,
        publisher: Optional[NotificationPublisher] = None,
        gas_estimator: Optional[GasEstimator] = None,
        lookup_retry: Optional[RetryConfig] = None,
    ):
        self.config = config
        self.transport = transport
        self.contract = StPrimeContract(config.st_prime_address)
        self.publisher = publisher or InMemoryNotificationPublisher()
        self.balance_reader = BalanceReader(transport)
        self.balance_cache = BalanceCache(
            cache_backend or InMemoryCacheBackend(),
            chain_id=config.chain_id,
            prefix=config.cache_key_prefix,
        )
        self.dispatcher = NotificationDispatcher(self.publisher)
        self._tracker = SubmissionTracker(
            transport,
            lookup_retry or default_lookup_retry(config.receipt_lookup_attempts),
        )
        self.transfers = TransferOrchestrator(
            transport=transport,
            contract=self.contract,
            balance_reader=self.balance_reader,
            dispatcher=self.dispatcher,
            gas_price=config.gas_price,
            tracker=self._tracker,
        )
        self.claims = ClaimOrchestrator(
            transport=transport,
            contract=self.contract,
            gas_estimator=gas_estimator or TransportGasEstimator(transport),
            gas_price=config.gas_price,
            tracker=self._tracker,
        )

    @classmethod
    def from_config(
        cls,
        config: NetworkConfig,
        w3: Optional[AsyncWeb3] = None,
        **kwargs: Any,
    ) -> "STPrimeClient":
        """Build a client over Web3Transport.

        Notifications go to ``config.notification_url`` when set, unless a
        publisher is passed explicitly.
        """
        if config.notification_url and "publisher" not in kwargs:
            kwargs["publisher"] = HttpNotificationPublisher(NotificationEndpointConfig(url=config.notification_url))
        return cls(config, Web3Transport.from_config(config, w3), **kwargs)

    async def __aenter__(self) -> "STPrimeClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Wait for in-flight transfers and notifications, then close the transport."""
        await self.transfers.drain()
        await self.transport.aclose()

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------
    async def transfer(
        self,
        sender_address: str,
        sender_credential: str,
        recipient_address: str,
        amount: Union[int, str],
        tag: Optional[str] = None,
        return_policy: Union[ReturnPolicy, str, None] = None,
    ) -> Result:
        """Transfer ST Prime.

        Args:
            sender_address: Address sending the amount
            sender_credential: Sender private key, used once for signing
            recipient_address: Address receiving the amount
            amount: Amount in wei (int or decimal string)
            tag: Transaction type logged with every notification
            return_policy: ON_ACCEPTED (default), ON_SUBMITTED or ON_CONFIRMED

        Returns:
            Result with ``transfer_id``, ``transaction_hash``, ``receipt``
        """
        return await self.transfers.transfer(
            TransferRequest(
                sender_address=sender_address,
                sender_credential=sender_credential,
                recipient_address=recipient_address,
                amount=amount,
                tag=tag,
                return_policy=ReturnPolicy.from_value(return_policy),
            )
        )

    async def claim(self, sender_address: str, sender_credential: str, beneficiary_address: str) -> Result:
        """Claim ST Prime for a beneficiary after it was process-minted."""
        return await self.claims.claim(sender_address, sender_credential, beneficiary_address)

    async def initial_transfer_to_contract(
        self,
        sender_address: str,
        sender_credential: str,
        custom_options: Optional[Dict[str, Any]] = None,
    ) -> Result:
        """Fund the contract with the total supply during chain setup.

        Calls ``initialize()`` with ``value`` set to the configured total
        supply; ``custom_options`` override any transaction field.
        """
        try:
            validate_address(sender_address, "sender")
            tx_params: Dict[str, Any] = {
                "from": sender_address,
                "to": self.contract.address,
                "data": self.contract.encode_call("initialize"),
                "value": Web3.to_wei(self.config.st_prime_total_supply, "ether"),
                "gasPrice": self.config.gas_price,
                "gas": self.config.gas_limit,
            }
            tx_params.update(custom_options or {})
            submission = await self._tracker.submit(tx_params, sender_credential)
        except STPrimeError as e:
            return Result.from_error(e)
        _logger.info("Initial transfer mined", extra={"tx_hash": submission.transaction_hash})
        return Result.ok(submission.to_dict())

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------
    async def get_balance_of(self, owner: str) -> Result:
        """Live ST Prime balance of ``owner`` (``data["balance"]``, int)."""
        return await self.balance_reader.get(owner)

    async def get_balance_from_cache(self, owner: str) -> Result:
        """Last cached balance of ``owner``.

        ``data["hit"]`` is False and ``data["balance"]`` None on a miss.
        """
        try:
            validate_address(owner, "owner")
            cached = await self.balance_cache.get(owner)
        except STPrimeError as e:
            return Result.from_error(e)
        if cached is None:
            return Result.ok({"owner": owner, "balance": None, "hit": False})
        return Result.ok({"owner": owner, "balance": cached.balance, "hit": True})

    async def set_balance_to_cache(self, owner: str, balance: Union[int, str]) -> Result:
        """Overwrite the cached balance of ``owner``."""
        try:
            validate_address(owner, "owner")
            value = to_amount(balance)
            if value is None or value < 0:
                raise InvalidAmountError(balance, reason="must be a non-negative whole number")
            cached = await self.balance_cache.set(owner, value)
        except STPrimeError as e:
            return Result.from_error(e)
        return Result.ok({"owner": owner, "balance": cached.balance})

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get_uuid(self) -> Result:
        """Branded token UUID stored in the contract (bytes32 hex)."""
        try:
            raw = await self.transport.call(self.contract.call_params("uuid"))
            (value,) = self.contract.decode_output("uuid", raw)
        except STPrimeError as e:
            return Result.from_error(e)
        except DecodingError as e:
            _logger.error("uuid() output could not be decoded", extra={"error": str(e)})
            return Result.fail("DECODE_FAILED", "Something went wrong", {"method": "uuid"})
        return Result.ok({"uuid": Web3.to_hex(value)})
