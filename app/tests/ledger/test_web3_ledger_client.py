import threading
import time
from unittest.mock import MagicMock

import pytest
from hexbytes import HexBytes
from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import Timeout
from web3.exceptions import ContractLogicError, TimeExhausted

from app.core.config import Settings
from app.core.errors import (
    NOT_FOUND,
    ConfigurationError,
    LedgerTimeoutError,
    ReadError,
    SubmissionError,
)
from app.ledger.client import Web3LedgerClient
from app.ledger.operations import ContractKey
from app.services.governance_service import GovernanceService

# well-known throwaway dev key
PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
VERIFIER = "0x" + "11" * 20
POLICY = "0x" + "22" * 20
TX_HASH = HexBytes(b"\x12" * 32)
DOC_HASH = "0x" + "ab" * 32


def _fake_w3():
    w3 = MagicMock()
    contract = MagicMock()
    w3.eth.contract.return_value = contract
    w3.eth.get_transaction_count.return_value = 0
    w3.eth.send_raw_transaction.return_value = TX_HASH
    w3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 7}
    w3.eth.get_block.return_value = {"timestamp": 1_700_000_000}

    def build_transaction(params):
        return {
            **params,
            "to": POLICY,
            "gas": 100_000,
            "gasPrice": 1_000_000_000,
            "value": 0,
            "data": "0x",
        }

    for name in ("attestOcr", "createProposalOnBehalf", "castVoteOnBehalf", "finalize"):
        getattr(contract.functions, name).return_value.build_transaction.side_effect = build_transaction
    return w3, contract


def _client(w3, **overrides):
    kwargs = dict(
        rpc_url="http://node.invalid",
        private_key=PRIVATE_KEY,
        contract_addresses={ContractKey.signature_verifier: VERIFIER, ContractKey.policy: POLICY},
        chain_id=31337,
        web3_factory=lambda url, timeout: w3,
    )
    kwargs.update(overrides)
    return Web3LedgerClient(**kwargs)


# ─────────────────────────────────────────────
# configuration
# ─────────────────────────────────────────────


def test_missing_configuration_names_every_missing_value():
    with pytest.raises(ConfigurationError) as exc:
        Web3LedgerClient(rpc_url=None, private_key=None, contract_addresses={})
    message = str(exc.value)
    assert "LEDGER_RPC_URL" in message
    assert "LEDGER_PRIVATE_KEY" in message
    assert "POLICY_CONTRACT_ADDRESS" in message


@pytest.mark.parametrize(
    "overrides",
    [
        {"private_key": "0x1234"},
        {"private_key": PRIVATE_KEY + "\n"},
        {"contract_addresses": {ContractKey.signature_verifier: "nope", ContractKey.policy: POLICY}},
        {"rpc_timeout": 0},
        {"confirmation_timeout": -1},
    ],
)
def test_invalid_configuration_fails_fast(overrides):
    w3, _ = _fake_w3()
    with pytest.raises(ConfigurationError):
        _client(w3, **overrides)


def test_from_settings_reads_ledger_fields():
    settings = Settings(
        _env_file=None,
        ledger_rpc_url="http://node.invalid",
        ledger_private_key=PRIVATE_KEY,
        signature_verifier_address=VERIFIER,
        policy_contract_address=POLICY,
    )
    client = Web3LedgerClient.from_settings(settings, web3_factory=lambda url, timeout: MagicMock())
    assert client.account_address.startswith("0x")


def test_connection_is_lazy_and_reused():
    w3, _ = _fake_w3()
    factory = MagicMock(return_value=w3)
    client = _client(w3, web3_factory=factory)

    factory.assert_not_called()
    client.read("getTally", [1])
    client.read("getTally", [2])

    factory.assert_called_once()
    assert w3.eth.contract.call_count == 2


# ─────────────────────────────────────────────
# submit
# ─────────────────────────────────────────────


def test_submit_signs_broadcasts_and_waits_for_confirmation():
    w3, contract = _fake_w3()
    contract.events.OcrAttested.return_value.process_receipt.return_value = [
        {"args": {"docHash": bytes.fromhex("ab" * 32), "version": 3}}
    ]
    client = _client(w3, confirmation_timeout=30, poll_interval=0.5)

    receipt = client.submit("attestOcr", [DOC_HASH, "cid", 9000, True])

    contract.functions.attestOcr.assert_called_once_with(DOC_HASH, "cid", 9000, True)
    params = contract.functions.attestOcr.return_value.build_transaction.call_args.args[0]
    assert params["from"] == client.account_address
    assert params["chainId"] == 31337
    w3.eth.get_transaction_count.assert_called_once_with(client.account_address, "pending")
    w3.eth.send_raw_transaction.assert_called_once()
    w3.eth.wait_for_transaction_receipt.assert_called_once_with(TX_HASH, timeout=30, poll_latency=0.5)

    assert receipt.transaction_id == TX_HASH.to_0x_hex()
    assert receipt.block_number == 7
    assert receipt.confirmed_at == 1_700_000_000
    assert receipt.event_arg("OcrAttested", "version") == 3


def test_submit_without_result_event_has_no_events():
    w3, contract = _fake_w3()
    receipt = _client(w3).submit("finalize", [1])
    assert receipt.events == {}
    contract.events.assert_not_called()


def test_preflight_revert_is_a_known_rejection():
    w3, contract = _fake_w3()
    contract.functions.castVoteOnBehalf.return_value.build_transaction.side_effect = ContractLogicError(
        "execution reverted: voting closed"
    )

    with pytest.raises(SubmissionError) as exc:
        _client(w3).submit("castVoteOnBehalf", [1, 3, 1])

    assert exc.value.rejected is True
    assert exc.value.transaction_id is None
    assert exc.value.call_args == (1, 3, 1)
    w3.eth.send_raw_transaction.assert_not_called()


def test_mined_revert_carries_transaction_id():
    w3, _ = _fake_w3()
    w3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "blockNumber": 7}

    with pytest.raises(SubmissionError) as exc:
        _client(w3).submit("finalize", [1])

    assert exc.value.rejected is True
    assert exc.value.transaction_id == TX_HASH.to_0x_hex()
    assert exc.value.outcome_known is True


def test_broadcast_transport_failure_is_known_failure():
    w3, _ = _fake_w3()
    w3.eth.send_raw_transaction.side_effect = RequestsConnectionError("node down")

    with pytest.raises(SubmissionError) as exc:
        _client(w3).submit("finalize", [1])

    assert exc.value.rejected is False
    assert exc.value.transaction_id is None


def test_broadcast_timeout_is_unknown_outcome():
    w3, _ = _fake_w3()
    w3.eth.send_raw_transaction.side_effect = Timeout("slow")

    with pytest.raises(LedgerTimeoutError) as exc:
        _client(w3).submit("finalize", [1])
    assert exc.value.operation == "finalize"


def test_confirmation_timeout_reports_transaction_id():
    w3, _ = _fake_w3()
    w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("not mined")

    with pytest.raises(LedgerTimeoutError) as exc:
        _client(w3).submit("finalize", [1])

    assert exc.value.transaction_id == TX_HASH.to_0x_hex()


def test_lost_receipt_after_broadcast_is_unknown_outcome():
    w3, _ = _fake_w3()
    w3.eth.wait_for_transaction_receipt.side_effect = RequestsConnectionError("reset")

    with pytest.raises(SubmissionError) as exc:
        _client(w3).submit("finalize", [1])

    assert exc.value.transaction_id == TX_HASH.to_0x_hex()
    assert exc.value.outcome_known is False


def test_submit_is_attempted_once():
    w3, _ = _fake_w3()
    w3.eth.send_raw_transaction.side_effect = RequestsConnectionError("node down")

    with pytest.raises(SubmissionError):
        _client(w3).submit("finalize", [1])
    assert w3.eth.send_raw_transaction.call_count == 1


def test_concurrent_submissions_are_serialized_per_identity():
    w3, contract = _fake_w3()
    events = []
    sent = []

    def transaction_count(address, block_identifier):
        events.append("nonce")
        count = len(sent)
        # widen the window between nonce read and broadcast
        time.sleep(0.05)
        return count

    def send_raw_transaction(raw):
        events.append("send")
        sent.append(raw)
        return HexBytes(bytes([len(sent)]) * 32)

    w3.eth.get_transaction_count.side_effect = transaction_count
    w3.eth.send_raw_transaction.side_effect = send_raw_transaction
    client = _client(w3)

    barrier = threading.Barrier(2)
    receipts = []

    def worker(proposal_id):
        barrier.wait()
        receipts.append(client.submit("finalize", [proposal_id]))

    threads = [threading.Thread(target=worker, args=(pid,)) for pid in (1, 2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert len(receipts) == 2
    built = contract.functions.finalize.return_value.build_transaction.call_args_list
    assert sorted(c.args[0]["nonce"] for c in built) == [0, 1]
    assert events == ["nonce", "send", "nonce", "send"]
    expected = {HexBytes(bytes([n]) * 32).to_0x_hex() for n in (1, 2)}
    assert {r.transaction_id for r in receipts} == expected


@pytest.mark.parametrize("name", ["getLatest", "selfDestruct"])
def test_submit_rejects_non_mutating_or_unknown_operation(name):
    w3, _ = _fake_w3()
    with pytest.raises(KeyError):
        _client(w3).submit(name, [])


# ─────────────────────────────────────────────
# reads
# ─────────────────────────────────────────────


def test_read_returns_decoded_value():
    w3, contract = _fake_w3()
    contract.functions.getTally.return_value.call.return_value = (2, 1, 0, 5)

    assert _client(w3).read("getTally", [4]) == (2, 1, 0, 5)
    contract.functions.getTally.assert_called_once_with(4)


def test_zero_record_reads_as_not_found():
    w3, contract = _fake_w3()
    contract.functions.getLatest.return_value.call.return_value = (b"\x00" * 32, "", False, 0, False, "0x" + "0" * 40, 0, 0, "0x" + "0" * 40, 0)
    contract.functions.getProposal.return_value.call.return_value = (0,) + (0,) * 10
    client = _client(w3)

    assert client.read("getLatest", [DOC_HASH]) is NOT_FOUND
    assert client.read("getProposal", [9]) is NOT_FOUND


def test_tally_of_unknown_proposal_is_none_although_node_answers_zeros():
    w3, contract = _fake_w3()
    contract.functions.getProposal.return_value.call.return_value = (0,) * 11
    contract.functions.getTally.return_value.call.return_value = (0, 0, 0, 0)

    assert GovernanceService(_client(w3)).get_tally(999) is None
    contract.functions.getTally.assert_not_called()


@pytest.mark.parametrize("error", [RequestsConnectionError("down"), ContractLogicError("execution reverted")])
def test_read_failure_is_read_error(error):
    w3, contract = _fake_w3()
    contract.functions.getTally.return_value.call.side_effect = error

    with pytest.raises(ReadError) as exc:
        _client(w3).read("getTally", [1])
    assert exc.value.query == "getTally"
    assert exc.value.call_args == (1,)


def test_read_timeout():
    w3, contract = _fake_w3()
    contract.functions.getTally.return_value.call.side_effect = Timeout("slow")
    with pytest.raises(LedgerTimeoutError):
        _client(w3).read("getTally", [1])


def test_read_rejects_mutating_operation():
    w3, _ = _fake_w3()
    with pytest.raises(KeyError):
        _client(w3).read("finalize", [1])


# ─────────────────────────────────────────────
# clock / status
# ─────────────────────────────────────────────


def test_ledger_time_is_latest_block_timestamp():
    w3, _ = _fake_w3()
    assert _client(w3).ledger_time() == 1_700_000_000
    w3.eth.get_block.assert_called_with("latest")


def test_status_reports_connection_details():
    w3, _ = _fake_w3()
    w3.eth.chain_id = 31337
    w3.eth.block_number = 42
    w3.eth.get_balance.return_value = 10**18

    status = _client(w3).status()

    assert status.connected is True
    assert (status.chain_id, status.latest_block, status.balance_wei) == (31337, 42, 10**18)


def test_status_never_raises_when_node_is_down():
    w3, _ = _fake_w3()
    w3.eth.get_balance.side_effect = RequestsConnectionError("down")
    w3.eth.chain_id = 1
    w3.eth.block_number = 1

    status = _client(w3).status()

    assert status.connected is False
    assert status.account is not None
