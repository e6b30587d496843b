# app/ledger/operations.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple


class ContractKey(str, Enum):
    signature_verifier = "signature_verifier"
    policy = "policy"


def _zero_bytes32(value: Any) -> bool:
    # getLatest returns an all-zero record for a never-attested key
    return bytes(value[0]) == b"\x00" * 32


def _zero_id(value: Any) -> bool:
    return int(value[0]) == 0


@dataclass(frozen=True)
class LedgerOperation:
    name: str
    contract: ContractKey
    mutating: bool
    # event whose arguments carry the ledger-assigned result of a submission
    result_event: Optional[str] = None
    # read results that mean "no such record"
    is_absent: Optional[Callable[[Any], bool]] = None


_OPERATIONS: Tuple[LedgerOperation, ...] = (
    # attestations
    LedgerOperation("attestOcr", ContractKey.signature_verifier, mutating=True, result_event="OcrAttested"),
    LedgerOperation("getLatest", ContractKey.signature_verifier, mutating=False, is_absent=_zero_bytes32),
    # governance
    LedgerOperation("createOrganization", ContractKey.policy, mutating=True, result_event="OrganizationCreated"),
    LedgerOperation("setOrganizationActive", ContractKey.policy, mutating=True),
    LedgerOperation("createProposalOnBehalf", ContractKey.policy, mutating=True, result_event="ProposalCreated"),
    LedgerOperation("castVoteOnBehalf", ContractKey.policy, mutating=True),
    LedgerOperation("finalize", ContractKey.policy, mutating=True),
    LedgerOperation("getProposal", ContractKey.policy, mutating=False, is_absent=_zero_id),
    LedgerOperation("getTally", ContractKey.policy, mutating=False),
)

OPERATIONS: Dict[str, LedgerOperation] = {op.name: op for op in _OPERATIONS}


def lookup(name: str, *, mutating: bool) -> LedgerOperation:
    op = OPERATIONS.get(name)
    if op is None:
        raise KeyError(f"Unknown ledger operation: {name}")
    if op.mutating != mutating:
        kind = "state-changing" if op.mutating else "read-only"
        raise KeyError(f"Ledger operation {name} is {kind}.")
    return op
