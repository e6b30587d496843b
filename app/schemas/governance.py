from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, StrictBool, StrictInt, StrictStr

from app.ledger.types import ProposalView, Tally
from app.schemas.ledger import ReceiptOut


# ─────────── REQUESTS ───────────

class OrganizationPayload(BaseModel):
    name: StrictStr = Field(..., description="1..100 characters")
    manager: Optional[StrictStr] = Field(default=None, description="manager address; zero address when omitted")


class OrganizationActivePayload(BaseModel):
    active: StrictBool


class ProposalPayload(BaseModel):
    proposerOrgId: StrictInt
    contentId: StrictStr
    startTime: StrictInt = Field(..., description="unix seconds, voting opens")
    endTime: StrictInt = Field(..., description="unix seconds, voting closes (exclusive)")


class VotePayload(BaseModel):
    voterOrgId: StrictInt
    choice: StrictInt = Field(..., description="1=For, 2=Against, 3=Abstain")


# ─────────── RESPONSES ───────────

class OrganizationCreatedOut(BaseModel):
    orgId: int
    manager: str
    receipt: ReceiptOut


class ProposalCreatedOut(BaseModel):
    proposalId: int
    receipt: ReceiptOut


class TransitionOut(BaseModel):
    """
    Receipt for a vote / finalize / organization toggle.
    """
    subjectId: int
    action: str
    receipt: ReceiptOut


class TallyOut(BaseModel):
    forVotes: int
    againstVotes: int
    abstainVotes: int
    eligibleCount: int
    totalVotes: int

    @classmethod
    def from_tally(cls, tally: Tally) -> "TallyOut":
        return cls(
            forVotes=tally.for_votes,
            againstVotes=tally.against_votes,
            abstainVotes=tally.abstain_votes,
            eligibleCount=tally.eligible_count,
            totalVotes=tally.total_votes,
        )


class ProposalOut(BaseModel):
    proposalId: int
    proposerOrgId: int
    contentId: str
    startTime: int
    endTime: int
    state: str = Field(..., description="Pending | Active | Ended | Finalized (derived from ledger time)")
    status: int
    passed: bool
    tally: TallyOut
    observedAt: int

    @classmethod
    def from_view(cls, view: ProposalView) -> "ProposalOut":
        return cls(
            proposalId=view.proposal_id,
            proposerOrgId=view.proposer_org_id,
            contentId=view.content_id,
            startTime=view.start_time,
            endTime=view.end_time,
            state=view.state.value,
            status=view.status,
            passed=view.passed,
            tally=TallyOut.from_tally(view.tally),
            observedAt=view.observed_at,
        )
