"""
Web3.py implementation of the chain transport.

Transactions are signed locally with eth_account and broadcast with
``eth_sendRawTransaction``; the sender's key never reaches the node.

Example:
    >>> from stprime.rpc import Web3Transport
    >>> transport = Web3Transport.from_config(get_network_config(Network.LOCAL))
    >>> balance = await transport.get_balance("0x...")
"""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Dict, Optional

from eth_account import Account
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import TimeExhausted, TransactionNotFound

from stprime.config import NetworkConfig
from stprime.constants import (
    DEFAULT_CONFIRMATION_BLOCKS,
    DEFAULT_CONFIRMATION_TIMEOUT,
    DEFAULT_RECEIPT_POLL_LATENCY,
)
from stprime.errors import BroadcastRejectedError, PendingConfirmationTimeout, RpcError
from stprime.rpc.transport import (
    ChainTransport,
    ReceiptEvent,
    SubmissionEvent,
    TransactionHashEvent,
)
from stprime.utils.logging import get_logger

_logger = get_logger(__name__)

_ADDRESS_FIELDS = ("from", "to")


def _to_json_safe(receipt: Any) -> Dict[str, Any]:
    """Convert an AttributeDict receipt (HexBytes values) into plain JSON types."""
    return json.loads(Web3.to_json(receipt))


def _checksum_params(tx_params: Dict[str, Any]) -> Dict[str, Any]:
    params = dict(tx_params)
    for key in _ADDRESS_FIELDS:
        if params.get(key):
            params[key] = Web3.to_checksum_address(params[key])
    return params


class Web3Transport(ChainTransport):
    """ChainTransport backed by ``web3.AsyncWeb3``."""

    def __init__(
        self,
        w3: AsyncWeb3,
        chain_id: int,
        chain_kind: str,
        confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
        confirmation_blocks: int = DEFAULT_CONFIRMATION_BLOCKS,
        poll_latency: float = DEFAULT_RECEIPT_POLL_LATENCY,
    ) -> None:
        self._w3 = w3
        self._chain_id = chain_id
        self._chain_kind = chain_kind
        self._confirmation_timeout = confirmation_timeout
        self._confirmation_blocks = confirmation_blocks
        self._poll_latency = poll_latency
        self._owns_provider = False

    @classmethod
    def from_config(
        cls,
        config: NetworkConfig,
        w3: Optional[AsyncWeb3] = None,
    ) -> "Web3Transport":
        transport = cls(
            w3=w3 or AsyncWeb3(AsyncHTTPProvider(config.rpc_url)),
            chain_id=config.chain_id,
            chain_kind=config.chain_kind,
            confirmation_timeout=config.confirmation_timeout,
            confirmation_blocks=config.confirmation_blocks,
        )
        transport._owns_provider = w3 is None
        return transport

    @property
    def chain_id(self) -> int:
        return self._chain_id

    @property
    def chain_kind(self) -> str:
        return self._chain_kind

    @property
    def w3(self) -> AsyncWeb3:
        return self._w3

    async def aclose(self) -> None:
        """Disconnect the HTTP provider if this transport created it."""
        if self._owns_provider:
            await self._w3.provider.disconnect()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get_balance(self, address: str) -> int:
        try:
            return int(await self._w3.eth.get_balance(Web3.to_checksum_address(address)))
        except Exception as e:
            raise RpcError(str(e), method="eth_getBalance") from e

    async def get_gas_price(self) -> int:
        try:
            return int(await self._w3.eth.gas_price)
        except Exception as e:
            raise RpcError(str(e), method="eth_gasPrice") from e

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        try:
            receipt = await self._w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        except Exception as e:
            raise RpcError(str(e), method="eth_getTransactionReceipt") from e
        return _to_json_safe(receipt)

    async def estimate_gas(self, tx_params: Dict[str, Any]) -> int:
        try:
            return int(await self._w3.eth.estimate_gas(_checksum_params(tx_params)))
        except Exception as e:
            raise RpcError(str(e), method="eth_estimateGas") from e

    async def call(self, tx_params: Dict[str, Any]) -> bytes:
        try:
            return bytes(await self._w3.eth.call(_checksum_params(tx_params)))
        except Exception as e:
            raise RpcError(str(e), method="eth_call") from e

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    async def _sign(self, tx_params: Dict[str, Any], credential: str) -> bytes:
        """Fill nonce/chainId and sign locally.

        Raises:
            BroadcastRejectedError: If the key is invalid or does not own ``from``
        """
        # Sanitize key errors to prevent key leakage in stack traces
        try:
            account = Account.from_key(credential)
        except Exception:
            raise BroadcastRejectedError("Invalid sender credential (key not shown for security)") from None

        tx = _checksum_params(tx_params)
        if account.address != tx["from"]:
            raise BroadcastRejectedError(
                "Sender credential does not match sender address",
                details={"from": tx["from"]},
            )

        try:
            if "nonce" not in tx:
                tx["nonce"] = await self._w3.eth.get_transaction_count(tx["from"], "pending")
            tx.setdefault("chainId", self._chain_id)
            signed = account.sign_transaction(tx)
        except Exception as e:
            raise BroadcastRejectedError(f"Unable to sign transaction: {e}") from e
        return bytes(signed.raw_transaction)

    async def send_transaction(
        self,
        tx_params: Dict[str, Any],
        credential: str,
    ) -> AsyncIterator[SubmissionEvent]:
        raw = await self._sign(tx_params, credential)
        del credential

        try:
            tx_hash_bytes = await self._w3.eth.send_raw_transaction(raw)
        except Exception as e:
            raise BroadcastRejectedError(str(e)) from e

        tx_hash = Web3.to_hex(tx_hash_bytes)
        _logger.debug("Transaction broadcast", extra={"tx_hash": tx_hash})
        yield TransactionHashEvent(tx_hash)

        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                tx_hash_bytes,
                timeout=self._confirmation_timeout,
                poll_latency=self._poll_latency,
            )
        except TimeExhausted:
            raise PendingConfirmationTimeout(
                tx_hash,
                blocks=self._confirmation_blocks,
                timeout=self._confirmation_timeout,
            ) from None
        except Exception as e:
            raise BroadcastRejectedError(str(e), tx_hash=tx_hash) from e

        receipt_data = _to_json_safe(receipt)
        # Pre-Byzantium receipts carry no status
        if receipt_data.get("status") == 0:
            raise BroadcastRejectedError(
                "Transaction has been reverted by the EVM",
                tx_hash=tx_hash,
                details={"receipt": receipt_data},
            )
        yield ReceiptEvent(receipt_data)
