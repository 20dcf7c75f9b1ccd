"""
Shared fixtures for ST Prime tests.

FakeTransport replaces the chain node: balances come from a dict and every
``send_transaction`` call plays back a scripted list of steps.
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest
from web3 import Web3

from stprime import (
    BroadcastRejectedError,
    ChainTransport,
    InMemoryNotificationPublisher,
    Network,
    PendingConfirmationTimeout,
    ReceiptEvent,
    RpcError,
    STPrimeClient,
    TransactionHashEvent,
    get_network_config,
)
from stprime.utils.retry import RetryConfig


# =============================================================================
# Test Constants
# =============================================================================

SENDER = "0x1234567890123456789012345678901234567890"
RECIPIENT = "0xabcdefABCDEFabcdefABCDEFabcdefABCDEFabcd"
BENEFICIARY = "0x9876543210987654321098765432109876543210"
CONTRACT = "0x000000000000000000000000000000000000bEEF"

# Private key for tests (DO NOT USE IN PRODUCTION)
CREDENTIAL = "0x" + "11" * 32

TX_HASH = "0xabc"
RECOVERED_TX_HASH = "0xdef"


def selector(signature: str) -> bytes:
    """First four bytes of the keccak hash of a function signature."""
    return bytes(Web3.keccak(text=signature)[:4])


def make_receipt(tx_hash: str = TX_HASH, status: int = 1) -> Dict[str, Any]:
    return {
        "transactionHash": tx_hash,
        "blockNumber": 42,
        "gasUsed": 21000,
        "status": status,
    }


# Script steps: ("hash", tx_hash), ("receipt", receipt), ("timeout", blocks),
# ("reject", message), ("gate", asyncio.Event), ("raise", exception)
Step = Tuple[str, Any]


class FakeTransport(ChainTransport):
    """Scripted ChainTransport."""

    def __init__(
        self,
        balances: Optional[Dict[str, int]] = None,
        script: Optional[List[Step]] = None,
        receipts: Optional[Dict[str, Optional[Dict[str, Any]]]] = None,
        gas_price: int = 1_000_000_000,
        gas_estimate: int = 100_000,
        call_output: bytes = b"",
    ) -> None:
        self.balances = {k.lower(): v for k, v in (balances or {}).items()}
        self.script: List[Step] = script if script is not None else [
            ("hash", TX_HASH),
            ("receipt", make_receipt(TX_HASH)),
        ]
        self.receipts = receipts or {}
        self.gas_price = gas_price
        self.gas_estimate = gas_estimate
        self.call_output = call_output

        self.balance_calls: List[str] = []
        self.sent: List[Dict[str, Any]] = []
        self.receipt_lookups: List[str] = []
        self.estimate_calls: List[Dict[str, Any]] = []
        self.call_calls: List[Dict[str, Any]] = []
        self.fail_balance = False
        self.fail_gas_price = False
        self.fail_estimate = False
        self.closed = False

    @property
    def chain_id(self) -> int:
        return 2000

    @property
    def chain_kind(self) -> str:
        return "utility"

    async def get_balance(self, address: str) -> int:
        self.balance_calls.append(address)
        if self.fail_balance:
            raise RpcError("connection refused", method="eth_getBalance")
        return self.balances.get(address.lower(), 0)

    async def get_gas_price(self) -> int:
        if self.fail_gas_price:
            raise RpcError("connection refused", method="eth_gasPrice")
        return self.gas_price

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        self.receipt_lookups.append(tx_hash)
        return self.receipts.get(tx_hash)

    async def estimate_gas(self, tx_params: Dict[str, Any]) -> int:
        self.estimate_calls.append(dict(tx_params))
        if self.fail_estimate:
            raise RpcError("execution reverted", method="eth_estimateGas")
        return self.gas_estimate

    async def call(self, tx_params: Dict[str, Any]) -> bytes:
        self.call_calls.append(dict(tx_params))
        return self.call_output

    async def send_transaction(self, tx_params, credential):
        self.sent.append(dict(tx_params))
        tx_hash = None
        for step, value in self.script:
            await asyncio.sleep(0)
            if step == "gate":
                await value.wait()
            elif step == "hash":
                tx_hash = value
                yield TransactionHashEvent(value)
            elif step == "receipt":
                yield ReceiptEvent(value)
            elif step == "timeout":
                raise PendingConfirmationTimeout(tx_hash, blocks=value)
            elif step == "reject":
                raise BroadcastRejectedError(value, tx_hash=tx_hash)
            elif step == "raise":
                raise value

    async def aclose(self) -> None:
        self.closed = True


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def config():
    return get_network_config(
        Network.LOCAL,
        st_prime_address=CONTRACT,
        gas_price=1_000_000_000,
        receipt_lookup_attempts=2,
    )


@pytest.fixture
def fast_retry() -> RetryConfig:
    """Receipt lookup retry without delays."""
    return RetryConfig(max_attempts=2, base_delay_ms=0, jitter=False, retryable_errors=(RpcError,))


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport(balances={SENDER: 1000})


@pytest.fixture
def publisher() -> InMemoryNotificationPublisher:
    return InMemoryNotificationPublisher()


@pytest.fixture
def client(config, transport, publisher, fast_retry) -> STPrimeClient:
    return STPrimeClient(config, transport, publisher=publisher, lookup_retry=fast_retry)
