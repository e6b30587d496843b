# app/services/governance_service.py
from __future__ import annotations

import logging
from typing import Any, Optional

from app.core.errors import NOT_FOUND, SubmissionError
from app.ledger.client import LedgerClient
from app.ledger.types import (
    ProposalCreated,
    ProposalView,
    Receipt,
    Tally,
    VoteChoice,
    derive_proposal_state,
)
from app.policies.ledger_inputs import (
    require_choice,
    require_non_empty_str,
    require_positive_int,
    require_time_window,
)

logger = logging.getLogger(__name__)


class GovernanceService:
    """
    Policy proposals voted on by organizations.

    The ledger owns proposal state and enforces the state machine:

        Pending --(startTime)--> Active --(castVote)*--> Active
        Active --(endTime, finalize)--> Finalized

    This service shapes well-formed transitions and reports the ledger's
    verdict. It keeps no proposal state and never checks the voting window
    itself: a closed window, a repeat vote or an early / repeated finalize
    comes back from the ledger as SubmissionError.
    """

    def __init__(self, ledger: LedgerClient):
        self.ledger = ledger

    # ─────────────────────────────────────────────
    # TRANSITIONS
    # ─────────────────────────────────────────────

    def create_proposal(
        self,
        proposer_org_id: Any,
        content_id: Any,
        start_time: Any,
        end_time: Any,
    ) -> ProposalCreated:
        proposer_org_id = require_positive_int("proposerOrgId", proposer_org_id)
        content_id = require_non_empty_str("contentId", content_id)
        start_time, end_time = require_time_window(start_time, end_time)

        receipt = self.ledger.submit(
            "createProposalOnBehalf",
            [proposer_org_id, content_id, start_time, end_time],
        )

        proposal_id = receipt.event_arg("ProposalCreated", "proposalId")
        if proposal_id is None:
            raise SubmissionError(
                "Proposal creation confirmed but the receipt carries no proposal id; "
                "look the proposal up by transaction before retrying.",
                operation="createProposalOnBehalf",
                args=[proposer_org_id, content_id, start_time, end_time],
                transaction_id=receipt.transaction_id,
            )

        logger.info(
            "[governance] proposal created id=%s org=%s window=[%s,%s) tx=%s",
            proposal_id,
            proposer_org_id,
            start_time,
            end_time,
            receipt.transaction_id,
        )
        return ProposalCreated(proposal_id=int(proposal_id), receipt=receipt)

    def cast_vote(self, proposal_id: Any, voter_org_id: Any, choice: Any) -> Receipt:
        proposal_id = require_positive_int("proposalId", proposal_id)
        voter_org_id = require_positive_int("voterOrgId", voter_org_id)
        choice = require_choice("choice", choice, VoteChoice)

        receipt = self.ledger.submit("castVoteOnBehalf", [proposal_id, voter_org_id, choice])
        logger.info(
            "[governance] vote cast proposal=%s org=%s choice=%s tx=%s",
            proposal_id,
            voter_org_id,
            VoteChoice(choice).name,
            receipt.transaction_id,
        )
        return receipt

    def finalize(self, proposal_id: Any) -> Receipt:
        proposal_id = require_positive_int("proposalId", proposal_id)

        receipt = self.ledger.submit("finalize", [proposal_id])
        logger.info("[governance] proposal finalized id=%s tx=%s", proposal_id, receipt.transaction_id)
        return receipt

    # ─────────────────────────────────────────────
    # READS
    # ─────────────────────────────────────────────

    def get_proposal(self, proposal_id: Any) -> Optional[ProposalView]:
        """
        Proposal with its state derived from the ledger clock, or None.
        """
        proposal_id = require_positive_int("proposalId", proposal_id)

        value = self.ledger.read("getProposal", [proposal_id])
        if value is NOT_FOUND:
            return None

        (
            pid,
            proposer_org_id,
            content_id,
            start_time,
            end_time,
            status,
            eligible_count,
            for_votes,
            against_votes,
            abstain_votes,
            passed,
        ) = value

        now = self.ledger.ledger_time()
        return ProposalView(
            proposal_id=int(pid),
            proposer_org_id=int(proposer_org_id),
            content_id=str(content_id),
            start_time=int(start_time),
            end_time=int(end_time),
            status=int(status),
            tally=Tally(
                for_votes=int(for_votes),
                against_votes=int(against_votes),
                abstain_votes=int(abstain_votes),
                eligible_count=int(eligible_count),
            ),
            passed=bool(passed),
            state=derive_proposal_state(
                start_time=int(start_time),
                end_time=int(end_time),
                status=int(status),
                now=now,
            ),
            observed_at=now,
        )

    def get_tally(self, proposal_id: Any) -> Optional[Tally]:
        """
        Current counts, or None for an unknown proposal.

        getTally answers all zeros for an unknown id, so existence is
        checked through getProposal first.
        """
        proposal_id = require_positive_int("proposalId", proposal_id)

        if self.ledger.read("getProposal", [proposal_id]) is NOT_FOUND:
            return None

        value = self.ledger.read("getTally", [proposal_id])
        for_votes, against_votes, abstain_votes, eligible_count = value
        return Tally(
            for_votes=int(for_votes),
            against_votes=int(against_votes),
            abstain_votes=int(abstain_votes),
            eligible_count=int(eligible_count),
        )
