from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Mapping, Optional, Tuple


ZERO_ADDRESS = "0x" + "0" * 40

OCR_SCORE_MAX_BPS = 10000


@dataclass(frozen=True)
class Receipt:
    """
    Confirmation evidence for one state-changing submission.

    events: event name -> decoded argument dicts emitted by the transaction.
    """
    transaction_id: str
    confirmed_at: int
    block_number: int
    events: Mapping[str, Tuple[Dict[str, Any], ...]] = field(default_factory=dict)

    def event_arg(self, event: str, arg: str) -> Optional[Any]:
        for emitted in self.events.get(event, ()):
            if arg in emitted:
                return emitted[arg]
        return None


@dataclass(frozen=True)
class LedgerStatus:
    connected: bool
    account: Optional[str] = None
    chain_id: Optional[int] = None
    latest_block: Optional[int] = None
    balance_wei: Optional[int] = None


@dataclass(frozen=True)
class AttestationRecord:
    doc_hash: str
    content_id: str
    ocr_verified: bool
    ocr_score_bps: int
    signature_verified: bool
    claimed_signer: Optional[str]
    status: int
    attested_at: int
    attested_by: str
    version: int

    @property
    def ocr_score_percent(self) -> float:
        return self.ocr_score_bps / 100


@dataclass(frozen=True)
class DocumentVerification:
    doc_hash: str
    record: Optional[AttestationRecord]

    @property
    def is_attested(self) -> bool:
        return self.record is not None


class VoteChoice(IntEnum):
    FOR = 1
    AGAINST = 2
    ABSTAIN = 3


class ProposalStatus(IntEnum):
    # raw status codes stored by the policy contract
    PENDING = 0
    ACTIVE = 1
    FINALIZED = 2


class ProposalState(str, Enum):
    PENDING = "Pending"
    ACTIVE = "Active"
    # window closed, finalize not yet called
    ENDED = "Ended"
    FINALIZED = "Finalized"


@dataclass(frozen=True)
class Tally:
    for_votes: int
    against_votes: int
    abstain_votes: int
    eligible_count: int

    @property
    def total_votes(self) -> int:
        return self.for_votes + self.against_votes + self.abstain_votes


@dataclass(frozen=True)
class ProposalView:
    proposal_id: int
    proposer_org_id: int
    content_id: str
    start_time: int
    end_time: int
    status: int
    tally: Tally
    passed: bool
    state: ProposalState
    observed_at: int


@dataclass(frozen=True)
class ProposalCreated:
    proposal_id: int
    receipt: Receipt


@dataclass(frozen=True)
class OrganizationCreated:
    org_id: int
    manager: str
    receipt: Receipt


def derive_proposal_state(
    *,
    start_time: int,
    end_time: int,
    status: int,
    now: int,
) -> ProposalState:
    """
    Local view of the ledger-enforced proposal state machine.

    Finalized is a stored flag; every other state follows from the voting
    window [start_time, end_time) and the ledger clock.
    """
    if status == ProposalStatus.FINALIZED:
        return ProposalState.FINALIZED
    if now < start_time:
        return ProposalState.PENDING
    if now < end_time:
        return ProposalState.ACTIVE
    return ProposalState.ENDED
