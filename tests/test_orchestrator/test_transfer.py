"""
Tests for TransferOrchestrator.

Tests cover:
- Input validation (one error code per rule, no network I/O)
- Solvency check against the live balance
- Return policies (accepted / submitted / confirmed)
- Lifecycle notifications (ordering, exactly one terminal notification)
- Recovery from ambiguous receipt-wait timeouts
"""

import asyncio
import gc
import logging
from typing import Any, Dict, Set

import pytest

from stprime import ReceiptEvent, ReturnPolicy, STPrimeClient, TransactionHashEvent, TransferRequest
from stprime.constants import (
    KIND_TRANSACTION_ERROR,
    KIND_TRANSACTION_INITIATED,
    KIND_TRANSACTION_MINED,
    TRANSFER_GAS_LIMIT,
    TRANSFER_TOPIC,
)

from tests.conftest import (
    CONTRACT,
    CREDENTIAL,
    RECIPIENT,
    RECOVERED_TX_HASH,
    SENDER,
    TX_HASH,
    FakeTransport,
    make_receipt,
)

TERMINAL_KINDS = {KIND_TRANSACTION_MINED, KIND_TRANSACTION_ERROR}


def make_request(**overrides: Any) -> TransferRequest:
    params: Dict[str, Any] = {
        "sender_address": SENDER,
        "sender_credential": CREDENTIAL,
        "recipient_address": RECIPIENT,
        "amount": 100,
        "tag": "test",
        "return_policy": ReturnPolicy.ON_CONFIRMED,
    }
    params.update(overrides)
    return TransferRequest(**params)


def payloads(publisher):
    return [message["message"]["payload"] for _, message in publisher.published]


class LookupCrashTransport(FakeTransport):
    """Receipt lookups fail with a plain socket error."""

    async def get_transaction_receipt(self, tx_hash):
        self.receipt_lookups.append(tx_hash)
        raise ConnectionError("socket closed")


class ForgetfulTransport(FakeTransport):
    """Drops the credential before broadcasting, then holds the receipt until released."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.release = asyncio.Event()

    async def send_transaction(self, tx_params, credential):
        self.sent.append(dict(tx_params))
        del credential
        yield TransactionHashEvent(TX_HASH)
        await self.release.wait()
        yield ReceiptEvent(make_receipt(TX_HASH))


def holders_of(obj) -> Set[str]:
    """Names of the coroutines, generators and frames that still reference ``obj``."""
    names = set()
    for referrer in gc.get_referrers(obj):
        code = (
            getattr(referrer, "cr_code", None)
            or getattr(referrer, "ag_code", None)
            or getattr(referrer, "f_code", None)
        )
        if code is not None:
            names.add(code.co_name)
    return names


# =============================================================================
# Validation
# =============================================================================


class TestTransferValidation:
    """Synchronous checks run before any network call."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "address",
        [
            "",
            None,
            "0x123",
            "1234567890123456789012345678901234567890",
            "0xZZ34567890123456789012345678901234567890",
            "0x12345678901234567890123456789012345678901",
        ],
    )
    async def test_malformed_sender_makes_no_network_call(self, client, transport, publisher, address) -> None:
        result = await client.transfers.transfer(make_request(sender_address=address))

        assert result.is_failure()
        assert result.error_code == "INVALID_SENDER_ADDRESS"
        assert transport.balance_calls == []
        assert transport.sent == []
        await client.transfers.drain()
        assert publisher.published == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("address", ["", "0xabc", "not-an-address"])
    async def test_malformed_recipient(self, client, transport, address) -> None:
        result = await client.transfers.transfer(make_request(recipient_address=address))

        assert result.error_code == "INVALID_RECIPIENT_ADDRESS"
        assert transport.balance_calls == []

    @pytest.mark.asyncio
    async def test_same_sender_and_recipient_ignores_case(self, client, transport) -> None:
        result = await client.transfers.transfer(
            make_request(sender_address=RECIPIENT, recipient_address=RECIPIENT.lower())
        )

        assert result.error_code == "SAME_SENDER_RECIPIENT"
        assert transport.balance_calls == []

    @pytest.mark.asyncio
    async def test_same_address_reported_before_amount_and_tag(self, client) -> None:
        result = await client.transfers.transfer(
            make_request(recipient_address=SENDER.upper().replace("0X", "0x"), amount=-1, tag="bad tag")
        )

        assert result.error_code == "SAME_SENDER_RECIPIENT"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -1, "0", "-5", "abc", "1.5", 1.5, True, None, 2**256])
    async def test_invalid_amount(self, client, transport, amount) -> None:
        result = await client.transfers.transfer(make_request(amount=amount))

        assert result.error_code == "INVALID_AMOUNT"
        assert transport.balance_calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tag", ["", None, "bad tag", "tag!", 42])
    async def test_invalid_tag(self, client, transport, tag) -> None:
        result = await client.transfers.transfer(make_request(tag=tag))

        assert result.error_code == "INVALID_TAG"
        assert transport.balance_calls == []

    @pytest.mark.asyncio
    async def test_amount_as_decimal_string(self, client, transport) -> None:
        result = await client.transfers.transfer(make_request(amount="100"))

        assert result.is_success()
        assert transport.sent[0]["value"] == 100


# =============================================================================
# Solvency
# =============================================================================


class TestSolvency:
    """Live balance must cover the amount."""

    @pytest.mark.asyncio
    async def test_insufficient_funds(self, client, transport, publisher) -> None:
        transport.balances[SENDER.lower()] = 50

        result = await client.transfers.transfer(make_request(amount=100))

        assert result.is_failure()
        assert result.error_code == "INSUFFICIENT_FUNDS"
        assert result.error_details["balance"] == "50"
        assert result.error_details["required"] == "100"
        assert transport.sent == []
        await client.transfers.drain()
        assert publisher.published == []

    @pytest.mark.asyncio
    async def test_balance_equal_to_amount_passes(self, client, transport) -> None:
        transport.balances[SENDER.lower()] = 100

        result = await client.transfers.transfer(make_request(amount=100))

        assert result.is_success()

    @pytest.mark.asyncio
    async def test_balance_read_failure(self, client, transport, publisher) -> None:
        transport.fail_balance = True

        result = await client.transfers.transfer(make_request())

        assert result.error_code == "BALANCE_UNAVAILABLE"
        assert transport.sent == []
        assert publisher.published == []

    @pytest.mark.asyncio
    async def test_solvency_ignores_cached_balance(self, client, transport) -> None:
        transport.balances[SENDER.lower()] = 10
        await client.set_balance_to_cache(SENDER, 10**6)

        result = await client.transfers.transfer(make_request(amount=100))

        assert result.error_code == "INSUFFICIENT_FUNDS"


# =============================================================================
# Return Policies
# =============================================================================


class TestReturnPolicies:
    """Caller is released at the requested stage."""

    @pytest.mark.asyncio
    async def test_on_confirmed_happy_path(self, client, transport, publisher, config) -> None:
        result = await client.transfers.transfer(make_request(return_policy=ReturnPolicy.ON_CONFIRMED))
        await client.transfers.drain()

        assert result.is_success()
        assert result.data["transaction_hash"] == TX_HASH
        assert result.data["receipt"] == make_receipt(TX_HASH)
        assert publisher.kinds() == [KIND_TRANSACTION_INITIATED, KIND_TRANSACTION_MINED]
        transfer_ids = {p["uuid"] for p in payloads(publisher)}
        assert transfer_ids == {result.data["transfer_id"]}

        sent = transport.sent[0]
        assert sent == {
            "from": SENDER,
            "to": RECIPIENT,
            "value": 100,
            "gasPrice": config.gas_price,
            "gas": TRANSFER_GAS_LIMIT,
        }

    @pytest.mark.asyncio
    async def test_on_accepted_returns_before_submission(self, client, transport, publisher) -> None:
        gate = asyncio.Event()
        transport.script = [("gate", gate), ("hash", TX_HASH), ("receipt", make_receipt(TX_HASH))]

        result = await client.transfers.transfer(make_request(return_policy=ReturnPolicy.ON_ACCEPTED))

        assert result.is_success()
        assert result.data["transfer_id"]
        assert result.data["transaction_hash"] == ""
        assert result.data["receipt"] == {}
        assert client.transfers.in_flight == 1
        assert publisher.published == []

        gate.set()
        await client.transfers.drain()

        assert client.transfers.in_flight == 0
        assert publisher.kinds(result.data["transfer_id"]) == [
            KIND_TRANSACTION_INITIATED,
            KIND_TRANSACTION_MINED,
        ]

    @pytest.mark.asyncio
    async def test_default_policy_is_on_accepted(self, client, transport) -> None:
        gate = asyncio.Event()
        transport.script = [("gate", gate), ("hash", TX_HASH)]

        result = await client.transfer(SENDER, CREDENTIAL, RECIPIENT, 100, tag="test")

        assert result.data["transaction_hash"] == ""
        gate.set()
        await client.transfers.drain()

    @pytest.mark.asyncio
    async def test_on_submitted_returns_hash_before_receipt(self, client, transport, publisher) -> None:
        gate = asyncio.Event()
        transport.script = [("hash", TX_HASH), ("gate", gate), ("receipt", make_receipt(TX_HASH))]

        result = await client.transfers.transfer(make_request(return_policy=ReturnPolicy.ON_SUBMITTED))

        assert result.is_success()
        assert result.data["transaction_hash"] == TX_HASH
        assert result.data["receipt"] == {}

        gate.set()
        await client.transfers.drain()
        assert publisher.kinds() == [KIND_TRANSACTION_INITIATED, KIND_TRANSACTION_MINED]

    @pytest.mark.asyncio
    async def test_on_submitted_broadcast_rejected(self, client, transport, publisher) -> None:
        transport.script = [("reject", "nonce too low")]

        result = await client.transfers.transfer(make_request(return_policy=ReturnPolicy.ON_SUBMITTED))
        await client.transfers.drain()

        assert result.error_code == "SUBMISSION_FAILED"
        assert publisher.kinds() == [KIND_TRANSACTION_ERROR]
        error_data = payloads(publisher)[0]["error_data"]
        assert error_data["code"] == "SUBMISSION_FAILED"
        assert error_data["details"]["error"]["message"] == "nonce too low"
        assert payloads(publisher)[0]["transaction_hash"] == ""

    @pytest.mark.asyncio
    async def test_on_confirmed_failure_after_submission(self, client, transport, publisher) -> None:
        transport.script = [("hash", TX_HASH), ("reject", "Transaction has been reverted by the EVM")]

        result = await client.transfers.transfer(make_request(return_policy=ReturnPolicy.ON_CONFIRMED))
        await client.transfers.drain()

        assert result.error_code == "CONFIRMATION_FAILED"
        assert result.error_details["transaction_hash"] == TX_HASH
        assert publisher.kinds() == [KIND_TRANSACTION_INITIATED, KIND_TRANSACTION_ERROR]
        assert transport.receipt_lookups == []

    @pytest.mark.asyncio
    async def test_on_accepted_failure_only_notified(self, client, transport, publisher) -> None:
        transport.script = [("reject", "insufficient funds for gas * price + value")]

        result = await client.transfers.transfer(make_request(return_policy=ReturnPolicy.ON_ACCEPTED))
        await client.transfers.drain()

        assert result.is_success()
        assert publisher.kinds() == [KIND_TRANSACTION_ERROR]

    @pytest.mark.asyncio
    async def test_on_submitted_later_failure_not_reported_to_caller(self, client, transport, publisher) -> None:
        transport.script = [("hash", TX_HASH), ("reject", "out of gas")]

        result = await client.transfers.transfer(make_request(return_policy=ReturnPolicy.ON_SUBMITTED))
        await client.transfers.drain()

        assert result.is_success()
        assert result.data["transaction_hash"] == TX_HASH
        assert publisher.kinds() == [KIND_TRANSACTION_INITIATED, KIND_TRANSACTION_ERROR]


# =============================================================================
# Notifications
# =============================================================================


class TestNotifications:
    """Lifecycle notification content and cardinality."""

    @pytest.mark.asyncio
    async def test_payload_shape(self, client, publisher) -> None:
        result = await client.transfers.transfer(make_request())
        await client.transfers.drain()

        topic, message = publisher.published[0]
        assert topic == TRANSFER_TOPIC
        assert message["topics"] == [TRANSFER_TOPIC]
        payload = message["message"]["payload"]
        assert payload["uuid"] == result.data["transfer_id"]
        assert payload["contract_address"] == CONTRACT
        assert payload["contract_name"] == "stPrime"
        assert payload["method"] == "transfer"
        assert payload["chain_id"] == 2000
        assert payload["chain_kind"] == "utility"
        assert payload["tag"] == "test"
        assert payload["transaction_hash"] == TX_HASH
        assert payload["params"]["txParams"]["value"] == "100"
        assert payload["error_data"] == {}

    @pytest.mark.asyncio
    async def test_credential_never_published(self, client, publisher) -> None:
        await client.transfers.transfer(make_request())
        await client.transfers.drain()

        assert CREDENTIAL not in repr(publisher.published)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "script",
        [
            [("hash", TX_HASH), ("receipt", make_receipt(TX_HASH))],
            [("reject", "rejected")],
            [("hash", TX_HASH), ("reject", "reverted")],
            [("hash", TX_HASH), ("timeout", 50)],
            [("hash", RECOVERED_TX_HASH), ("timeout", 50)],
        ],
    )
    @pytest.mark.parametrize("policy", list(ReturnPolicy))
    async def test_exactly_one_terminal_notification(self, client, transport, publisher, script, policy) -> None:
        transport.receipts = {RECOVERED_TX_HASH: make_receipt(RECOVERED_TX_HASH)}
        transport.script = script

        await client.transfers.transfer(make_request(return_policy=policy))
        await client.transfers.drain()

        terminal = [kind for kind in publisher.kinds() if kind in TERMINAL_KINDS]
        assert len(terminal) == 1

    @pytest.mark.asyncio
    async def test_concurrent_transfers_keep_own_ordering(self, client, transport, publisher) -> None:
        transport.balances[SENDER.lower()] = 10_000

        results = await asyncio.gather(
            *(client.transfers.transfer(make_request(return_policy=ReturnPolicy.ON_ACCEPTED)) for _ in range(3))
        )
        await client.transfers.drain()

        transfer_ids = [r.data["transfer_id"] for r in results]
        assert len(set(transfer_ids)) == 3
        for transfer_id in transfer_ids:
            assert publisher.kinds(transfer_id) == [KIND_TRANSACTION_INITIATED, KIND_TRANSACTION_MINED]

    @pytest.mark.asyncio
    async def test_publisher_failure_does_not_fail_transfer(self, client, publisher, monkeypatch) -> None:
        async def broken_publish(topic, message):
            raise ConnectionError("bus down")

        monkeypatch.setattr(publisher, "publish", broken_publish)

        result = await client.transfers.transfer(make_request(return_policy=ReturnPolicy.ON_CONFIRMED))
        await client.transfers.drain()

        assert result.is_success()
        assert result.data["transaction_hash"] == TX_HASH


# =============================================================================
# Recovery
# =============================================================================


class TestTimeoutRecovery:
    """A receipt-wait timeout triggers a direct receipt lookup."""

    @pytest.mark.asyncio
    async def test_timeout_recovered_by_lookup(self, client, transport, publisher) -> None:
        receipt = make_receipt(RECOVERED_TX_HASH)
        transport.script = [("hash", RECOVERED_TX_HASH), ("timeout", 50)]
        transport.receipts = {RECOVERED_TX_HASH: receipt}

        result = await client.transfers.transfer(make_request(return_policy=ReturnPolicy.ON_CONFIRMED))
        await client.transfers.drain()

        assert result.is_success()
        assert result.data["transaction_hash"] == RECOVERED_TX_HASH
        assert result.data["receipt"] == receipt
        assert transport.receipt_lookups == [RECOVERED_TX_HASH]
        assert publisher.kinds() == [KIND_TRANSACTION_INITIATED, KIND_TRANSACTION_MINED]
        assert KIND_TRANSACTION_ERROR not in publisher.kinds()

    @pytest.mark.asyncio
    async def test_timeout_with_missing_receipt_fails(self, client, transport, publisher) -> None:
        transport.script = [("hash", RECOVERED_TX_HASH), ("timeout", 50)]

        result = await client.transfers.transfer(make_request(return_policy=ReturnPolicy.ON_CONFIRMED))
        await client.transfers.drain()

        assert result.error_code == "CONFIRMATION_FAILED"
        # fast_retry fixture allows two attempts
        assert transport.receipt_lookups == [RECOVERED_TX_HASH, RECOVERED_TX_HASH]
        assert publisher.kinds() == [KIND_TRANSACTION_INITIATED, KIND_TRANSACTION_ERROR]
        error_data = payloads(publisher)[1]["error_data"]
        assert error_data["code"] == "CONFIRMATION_FAILED"
        assert error_data["transaction_hash"] == RECOVERED_TX_HASH
        assert error_data["details"]["error"]["code"] == "PENDING_CONFIRMATION_TIMEOUT"
        assert error_data["details"]["lookup_error"]["code"] == "RECEIPT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_timeout_with_reverted_receipt_fails(self, client, transport, publisher) -> None:
        transport.script = [("hash", RECOVERED_TX_HASH), ("timeout", 50)]
        transport.receipts = {RECOVERED_TX_HASH: make_receipt(RECOVERED_TX_HASH, status=0)}

        result = await client.transfers.transfer(make_request(return_policy=ReturnPolicy.ON_CONFIRMED))
        await client.transfers.drain()

        assert result.error_code == "CONFIRMATION_FAILED"
        assert publisher.kinds() == [KIND_TRANSACTION_INITIATED, KIND_TRANSACTION_ERROR]

    @pytest.mark.asyncio
    async def test_hard_rejection_skips_lookup(self, client, transport) -> None:
        transport.script = [("hash", TX_HASH), ("reject", "not mined within 50 blocks")]

        result = await client.transfers.transfer(make_request(return_policy=ReturnPolicy.ON_CONFIRMED))

        assert result.error_code == "CONFIRMATION_FAILED"
        assert transport.receipt_lookups == []

    @pytest.mark.asyncio
    async def test_receipt_without_status_counts_as_mined(self, client, transport, publisher) -> None:
        receipt = make_receipt(RECOVERED_TX_HASH)
        del receipt["status"]
        transport.script = [("hash", RECOVERED_TX_HASH), ("timeout", 50)]
        transport.receipts = {RECOVERED_TX_HASH: receipt}

        result = await client.transfers.transfer(make_request(return_policy=ReturnPolicy.ON_CONFIRMED))
        await client.transfers.drain()

        assert result.is_success()
        assert result.data["receipt"] == receipt
        assert publisher.kinds() == [KIND_TRANSACTION_INITIATED, KIND_TRANSACTION_MINED]

    @pytest.mark.asyncio
    async def test_lookup_crash_still_ends_in_error(self, config, publisher, fast_retry) -> None:
        transport = LookupCrashTransport(balances={SENDER: 1000})
        transport.script = [("hash", RECOVERED_TX_HASH), ("timeout", 50)]
        client = STPrimeClient(config, transport, publisher=publisher, lookup_retry=fast_retry)

        result = await client.transfers.transfer(make_request(return_policy=ReturnPolicy.ON_ACCEPTED))
        await client.transfers.drain()

        assert result.is_success()
        assert publisher.kinds() == [KIND_TRANSACTION_INITIATED, KIND_TRANSACTION_ERROR]
        lookup_error = payloads(publisher)[1]["error_data"]["details"]["lookup_error"]
        assert lookup_error["code"] == "UNEXPECTED_ERROR"
        assert lookup_error["message"] == "socket closed"
        assert transport.receipt_lookups == [RECOVERED_TX_HASH]

    @pytest.mark.asyncio
    async def test_lookup_crash_reported_to_waiting_caller(self, config, publisher, fast_retry) -> None:
        transport = LookupCrashTransport(balances={SENDER: 1000})
        transport.script = [("hash", RECOVERED_TX_HASH), ("timeout", 50)]
        client = STPrimeClient(config, transport, publisher=publisher, lookup_retry=fast_retry)

        result = await client.transfers.transfer(make_request(return_policy=ReturnPolicy.ON_CONFIRMED))
        await client.transfers.drain()

        assert result.error_code == "CONFIRMATION_FAILED"
        assert result.error_details["transaction_hash"] == RECOVERED_TX_HASH
        assert result.error_details["lookup_error"]["code"] == "UNEXPECTED_ERROR"
        assert publisher.kinds()[-1] == KIND_TRANSACTION_ERROR


# =============================================================================
# Defects
# =============================================================================


class TestLifecycleDefects:
    """An unexpected exception still closes the lifecycle with an error."""

    @pytest.mark.asyncio
    async def test_crash_after_submission_emits_error(self, client, transport, publisher, caplog) -> None:
        transport.script = [("hash", TX_HASH), ("raise", RuntimeError("boom"))]

        with caplog.at_level(logging.ERROR, logger="stprime"):
            result = await client.transfers.transfer(make_request(return_policy=ReturnPolicy.ON_ACCEPTED))
            await client.transfers.drain()

        assert result.is_success()
        assert publisher.kinds() == [KIND_TRANSACTION_INITIATED, KIND_TRANSACTION_ERROR]
        error_data = payloads(publisher)[1]["error_data"]
        assert error_data["code"] == "UNEXPECTED_ERROR"
        assert error_data["details"]["type"] == "RuntimeError"
        assert payloads(publisher)[1]["transaction_hash"] == TX_HASH
        assert any(r.getMessage() == "Transfer lifecycle crashed" for r in caplog.records)

    @pytest.mark.asyncio
    async def test_crash_raised_to_waiting_caller(self, client, transport, publisher) -> None:
        transport.script = [("hash", TX_HASH), ("raise", RuntimeError("boom"))]

        with pytest.raises(RuntimeError, match="boom"):
            await client.transfers.transfer(make_request(return_policy=ReturnPolicy.ON_CONFIRMED))
        await client.transfers.drain()

        assert publisher.kinds() == [KIND_TRANSACTION_INITIATED, KIND_TRANSACTION_ERROR]

    @pytest.mark.asyncio
    async def test_crash_before_hash_emits_single_error(self, client, transport, publisher) -> None:
        transport.script = [("raise", RuntimeError("boom"))]

        result = await client.transfers.transfer(make_request(return_policy=ReturnPolicy.ON_ACCEPTED))
        await client.transfers.drain()

        assert result.is_success()
        assert publisher.kinds() == [KIND_TRANSACTION_ERROR]
        assert payloads(publisher)[0]["transaction_hash"] == ""


# =============================================================================
# Credential
# =============================================================================


class TestCredentialHandling:
    @pytest.mark.asyncio
    async def test_credential_released_once_broadcast(self, config, publisher, fast_retry) -> None:
        transport = ForgetfulTransport(balances={SENDER: 1000})
        client = STPrimeClient(config, transport, publisher=publisher, lookup_retry=fast_retry)
        credential = "".join(["0x", "42" * 32])

        result = await client.transfers.transfer(
            make_request(sender_credential=credential, return_policy=ReturnPolicy.ON_SUBMITTED)
        )

        # the receipt wait is still pending here
        assert result.data["transaction_hash"] == TX_HASH
        assert client.transfers.in_flight == 1
        assert holders_of(credential).isdisjoint({"_run", "submit", "send_transaction"})

        transport.release.set()
        await client.transfers.drain()
        assert publisher.kinds() == [KIND_TRANSACTION_INITIATED, KIND_TRANSACTION_MINED]
