# app/ledger/client.py
from __future__ import annotations

import abc
import logging
import re
import threading
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from eth_account import Account
from requests.exceptions import RequestException, Timeout
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception
from web3.logs import DISCARD

from app.core.config import Settings
from app.core.errors import (
    NOT_FOUND,
    ConfigurationError,
    LedgerTimeoutError,
    ReadError,
    SubmissionError,
)
from app.ledger.abi import POLICY_ABI, SIGNATURE_VERIFIER_ABI
from app.ledger.operations import ContractKey, LedgerOperation, lookup
from app.ledger.types import LedgerStatus, Receipt

logger = logging.getLogger(__name__)

_PRIVATE_KEY_RE = re.compile(r"(0x)?[0-9a-fA-F]{64}")

ABIS = {
    ContractKey.signature_verifier: SIGNATURE_VERIFIER_ABI,
    ContractKey.policy: POLICY_ABI,
}

_ADDRESS_SETTINGS = {
    ContractKey.signature_verifier: "SIGNATURE_VERIFIER_ADDRESS",
    ContractKey.policy: "POLICY_CONTRACT_ADDRESS",
}

# transport-level failures that are not a ledger verdict
_TRANSPORT_ERRORS = (Web3Exception, RequestException, ValueError)


class LedgerClient(abc.ABC):
    """
    Boundary to the external ledger.

    submit() is attempted exactly once per call; it never retries, because a
    resubmission of an operation with unknown outcome could double-attest or
    double-vote. read() never mutates.
    """

    @abc.abstractmethod
    def submit(self, operation: str, args: Sequence[Any]) -> Receipt:
        ...

    @abc.abstractmethod
    def read(self, query: str, args: Sequence[Any]) -> Any:
        """Returns the decoded value, or NOT_FOUND when no such record exists."""

    @abc.abstractmethod
    def ledger_time(self) -> int:
        """Timestamp of the latest block: the clock the ledger enforces windows with."""

    @abc.abstractmethod
    def status(self) -> LedgerStatus:
        ...


def _default_web3_factory(rpc_url: str, timeout: float) -> Web3:
    return Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))


class Web3LedgerClient(LedgerClient):
    """
    EVM ledger client holding the single shared signing identity.

    Construction validates configuration and fails fast; the RPC connection
    and contract handles are created on first use and then reused.
    Nonce assignment, signing and broadcast are serialized; confirmation
    waits run concurrently.
    """

    def __init__(
        self,
        *,
        rpc_url: Optional[str],
        private_key: Optional[str],
        contract_addresses: Mapping[ContractKey, Optional[str]],
        chain_id: Optional[int] = None,
        rpc_timeout: float = 10.0,
        confirmation_timeout: float = 120.0,
        poll_interval: float = 2.0,
        web3_factory: Callable[[str, float], Web3] = _default_web3_factory,
    ):
        missing = []
        if not rpc_url:
            missing.append("LEDGER_RPC_URL")
        if not private_key:
            missing.append("LEDGER_PRIVATE_KEY")
        for key in ContractKey:
            if not contract_addresses.get(key):
                missing.append(_ADDRESS_SETTINGS[key])
        if missing:
            raise ConfigurationError(f"Missing ledger configuration: {', '.join(missing)}")

        if not _PRIVATE_KEY_RE.fullmatch(private_key):
            raise ConfigurationError("LEDGER_PRIVATE_KEY must be 32 bytes of hex.")

        addresses: Dict[ContractKey, str] = {}
        for key in ContractKey:
            raw = contract_addresses[key]
            if not Web3.is_address(raw):
                raise ConfigurationError(f"{_ADDRESS_SETTINGS[key]} is not a valid address.")
            addresses[key] = Web3.to_checksum_address(raw)

        if rpc_timeout <= 0 or confirmation_timeout <= 0:
            raise ConfigurationError("Ledger timeouts must be positive.")

        self._rpc_url = rpc_url
        self._account = Account.from_key(private_key)
        self._addresses = addresses
        self._chain_id = chain_id
        self._rpc_timeout = rpc_timeout
        self._confirmation_timeout = confirmation_timeout
        self._poll_interval = poll_interval
        self._web3_factory = web3_factory

        self._connect_lock = threading.Lock()
        self._submit_lock = threading.Lock()
        self._w3: Optional[Web3] = None
        self._contracts: Dict[ContractKey, Any] = {}

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "Web3LedgerClient":
        private_key = settings.ledger_private_key.get_secret_value() if settings.ledger_private_key else None
        return cls(
            rpc_url=settings.ledger_rpc_url,
            private_key=private_key,
            contract_addresses={
                ContractKey.signature_verifier: settings.signature_verifier_address,
                ContractKey.policy: settings.policy_contract_address,
            },
            chain_id=settings.ledger_chain_id,
            rpc_timeout=settings.ledger_rpc_timeout_seconds,
            confirmation_timeout=settings.ledger_confirmation_timeout_seconds,
            poll_interval=settings.ledger_poll_interval_seconds,
            **kwargs,
        )

    @property
    def account_address(self) -> str:
        return self._account.address

    # ─────────────────────────────────────────────
    # CONNECTION
    # ─────────────────────────────────────────────

    def _connection(self) -> Tuple[Web3, Dict[ContractKey, Any]]:
        with self._connect_lock:
            if self._w3 is None:
                w3 = self._web3_factory(self._rpc_url, self._rpc_timeout)
                self._contracts = {
                    key: w3.eth.contract(address=address, abi=ABIS[key])
                    for key, address in self._addresses.items()
                }
                self._w3 = w3
                logger.info(
                    "[ledger] connection initialized account=%s contracts=%s",
                    self._account.address,
                    {k.value: v for k, v in self._addresses.items()},
                )
        return self._w3, self._contracts

    def _resolve_chain_id(self, w3: Web3) -> int:
        # called under the submit lock
        if self._chain_id is None:
            self._chain_id = int(w3.eth.chain_id)
        return self._chain_id

    # ─────────────────────────────────────────────
    # SUBMIT
    # ─────────────────────────────────────────────

    def submit(self, operation: str, args: Sequence[Any]) -> Receipt:
        op = lookup(operation, mutating=True)
        w3, contracts = self._connection()
        contract = contracts[op.contract]
        sender = self._account.address

        logger.info("[ledger] submit operation=%s args=%s", op.name, list(args))

        try:
            with self._submit_lock:
                call = getattr(contract.functions, op.name)(*args)
                tx = call.build_transaction(
                    {
                        "from": sender,
                        "nonce": w3.eth.get_transaction_count(sender, "pending"),
                        "chainId": self._resolve_chain_id(w3),
                    }
                )
                signed = self._account.sign_transaction(tx)
                tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
        except ContractLogicError as exc:
            logger.warning("[ledger] %s rejected before broadcast: %s", op.name, exc)
            raise SubmissionError(
                f"Ledger rejected {op.name}: {exc}",
                operation=op.name,
                args=args,
                rejected=True,
            ) from exc
        except Timeout as exc:
            # the raw transaction may or may not have reached the node
            logger.warning("[ledger] %s timed out during broadcast: %s", op.name, exc)
            raise LedgerTimeoutError(
                f"Timed out submitting {op.name}; outcome unknown.",
                operation=op.name,
            ) from exc
        except _TRANSPORT_ERRORS as exc:
            logger.warning("[ledger] %s submission failed: %s", op.name, exc)
            raise SubmissionError(
                f"Submission of {op.name} failed: {exc}",
                operation=op.name,
                args=args,
            ) from exc

        transaction_id = tx_hash.to_0x_hex()
        logger.info("[ledger] broadcast operation=%s tx=%s", op.name, transaction_id)

        try:
            tx_receipt = w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self._confirmation_timeout,
                poll_latency=self._poll_interval,
            )
        except TimeExhausted as exc:
            logger.warning("[ledger] %s tx=%s not confirmed within %ss", op.name, transaction_id, self._confirmation_timeout)
            raise LedgerTimeoutError(
                f"{op.name} not confirmed within {self._confirmation_timeout}s; outcome unknown.",
                operation=op.name,
                transaction_id=transaction_id,
            ) from exc
        except Timeout as exc:
            raise LedgerTimeoutError(
                f"Timed out awaiting {op.name} confirmation; outcome unknown.",
                operation=op.name,
                transaction_id=transaction_id,
            ) from exc
        except _TRANSPORT_ERRORS as exc:
            raise SubmissionError(
                f"Lost track of {op.name} after broadcast: {exc}",
                operation=op.name,
                args=args,
                transaction_id=transaction_id,
            ) from exc

        if tx_receipt["status"] != 1:
            logger.warning("[ledger] %s tx=%s reverted", op.name, transaction_id)
            raise SubmissionError(
                f"Ledger reverted {op.name}.",
                operation=op.name,
                args=args,
                transaction_id=transaction_id,
                rejected=True,
            )

        block_number = int(tx_receipt["blockNumber"])
        try:
            confirmed_at = int(w3.eth.get_block(block_number)["timestamp"])
        except _TRANSPORT_ERRORS as exc:
            raise SubmissionError(
                f"{op.name} confirmed in block {block_number} but the block could not be read: {exc}",
                operation=op.name,
                args=args,
                transaction_id=transaction_id,
            ) from exc

        receipt = Receipt(
            transaction_id=transaction_id,
            confirmed_at=confirmed_at,
            block_number=block_number,
            events=self._decode_events(contract, op, tx_receipt),
        )
        logger.info("[ledger] confirmed operation=%s tx=%s block=%s", op.name, transaction_id, block_number)
        return receipt

    def _decode_events(self, contract: Any, op: LedgerOperation, tx_receipt: Any) -> Dict[str, Tuple[Dict[str, Any], ...]]:
        if not op.result_event:
            return {}
        decoded = getattr(contract.events, op.result_event)().process_receipt(tx_receipt, errors=DISCARD)
        if not decoded:
            return {}
        return {op.result_event: tuple(dict(log["args"]) for log in decoded)}

    # ─────────────────────────────────────────────
    # READ
    # ─────────────────────────────────────────────

    def read(self, query: str, args: Sequence[Any]) -> Any:
        op = lookup(query, mutating=False)
        _, contracts = self._connection()

        try:
            value = getattr(contracts[op.contract].functions, op.name)(*args).call()
        except Timeout as exc:
            raise LedgerTimeoutError(f"Timed out reading {op.name}.", operation=op.name) from exc
        except _TRANSPORT_ERRORS as exc:
            logger.warning("[ledger] read %s args=%s failed: %s", op.name, list(args), exc)
            raise ReadError(f"Read of {op.name} failed: {exc}", query=op.name, args=args) from exc

        if op.is_absent is not None and op.is_absent(value):
            return NOT_FOUND
        return value

    def ledger_time(self) -> int:
        w3, _ = self._connection()
        try:
            return int(w3.eth.get_block("latest")["timestamp"])
        except Timeout as exc:
            raise LedgerTimeoutError("Timed out reading latest block.", operation="getBlock") from exc
        except _TRANSPORT_ERRORS as exc:
            raise ReadError(f"Could not read latest block: {exc}", query="getBlock") from exc

    def status(self) -> LedgerStatus:
        address = self._account.address
        try:
            w3, _ = self._connection()
            return LedgerStatus(
                connected=True,
                account=address,
                chain_id=int(w3.eth.chain_id),
                latest_block=int(w3.eth.block_number),
                balance_wei=int(w3.eth.get_balance(address)),
            )
        except _TRANSPORT_ERRORS as exc:
            logger.warning("[ledger] status probe failed: %s", exc)
            return LedgerStatus(connected=False, account=address)
