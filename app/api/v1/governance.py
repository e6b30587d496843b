# app/api/v1/governance.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.deps import get_governance_service, get_organization_service
from app.core.deps_idempotency import optional_idempotency_key, run_submission
from app.db.session import get_db
from app.schemas.governance import (
    OrganizationActivePayload,
    OrganizationCreatedOut,
    OrganizationPayload,
    ProposalCreatedOut,
    ProposalOut,
    ProposalPayload,
    TallyOut,
    TransitionOut,
    VotePayload,
)
from app.schemas.ledger import ReceiptOut
from app.services.governance_service import GovernanceService
from app.services.organization_service import OrganizationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/governance")


def _receipt_out(receipt) -> ReceiptOut:
    return ReceiptOut.from_receipt(receipt, get_settings().explorer_base_url)


# ---------------------------------------------------------------------
# ORGANIZATIONS
# ---------------------------------------------------------------------


@router.post("/organizations", response_model=OrganizationCreatedOut)
def create_organization(
    request: Request,
    payload: OrganizationPayload,
    db: Session = Depends(get_db),
    idem_key: Optional[str] = Depends(optional_idempotency_key),
    svc: OrganizationService = Depends(get_organization_service),
):
    def _create():
        created = svc.create_organization(payload.name, payload.manager)
        return OrganizationCreatedOut(
            orgId=created.org_id,
            manager=created.manager,
            receipt=_receipt_out(created.receipt),
        ).model_dump(mode="json")

    return run_submission(request, db, idem_key=idem_key, payload=payload.model_dump(), action=_create)


@router.post("/organizations/{org_id}/active", response_model=TransitionOut)
def set_organization_active(
    org_id: int,
    request: Request,
    payload: OrganizationActivePayload,
    db: Session = Depends(get_db),
    idem_key: Optional[str] = Depends(optional_idempotency_key),
    svc: OrganizationService = Depends(get_organization_service),
):
    def _toggle():
        receipt = svc.set_organization_active(org_id, payload.active)
        action = "activate" if payload.active else "deactivate"
        return TransitionOut(subjectId=org_id, action=action, receipt=_receipt_out(receipt)).model_dump(mode="json")

    return run_submission(request, db, idem_key=idem_key, payload=payload.model_dump(), action=_toggle)


# ---------------------------------------------------------------------
# PROPOSALS
# ---------------------------------------------------------------------


@router.post("/proposals", response_model=ProposalCreatedOut)
def create_proposal(
    request: Request,
    payload: ProposalPayload,
    db: Session = Depends(get_db),
    idem_key: Optional[str] = Depends(optional_idempotency_key),
    svc: GovernanceService = Depends(get_governance_service),
):
    def _create():
        created = svc.create_proposal(payload.proposerOrgId, payload.contentId, payload.startTime, payload.endTime)
        return ProposalCreatedOut(
            proposalId=created.proposal_id,
            receipt=_receipt_out(created.receipt),
        ).model_dump(mode="json")

    return run_submission(request, db, idem_key=idem_key, payload=payload.model_dump(), action=_create)


@router.post("/proposals/{proposal_id}/votes", response_model=TransitionOut)
def cast_vote(
    proposal_id: int,
    request: Request,
    payload: VotePayload,
    db: Session = Depends(get_db),
    idem_key: Optional[str] = Depends(optional_idempotency_key),
    svc: GovernanceService = Depends(get_governance_service),
):
    """
    The ledger decides whether the window is open and whether the
    organization already voted; its rejection comes back as 409.
    """
    def _vote():
        receipt = svc.cast_vote(proposal_id, payload.voterOrgId, payload.choice)
        return TransitionOut(subjectId=proposal_id, action="vote", receipt=_receipt_out(receipt)).model_dump(mode="json")

    return run_submission(request, db, idem_key=idem_key, payload=payload.model_dump(), action=_vote)


@router.post("/proposals/{proposal_id}/finalize", response_model=TransitionOut)
def finalize_proposal(
    proposal_id: int,
    request: Request,
    db: Session = Depends(get_db),
    idem_key: Optional[str] = Depends(optional_idempotency_key),
    svc: GovernanceService = Depends(get_governance_service),
):
    def _finalize():
        receipt = svc.finalize(proposal_id)
        return TransitionOut(subjectId=proposal_id, action="finalize", receipt=_receipt_out(receipt)).model_dump(mode="json")

    return run_submission(request, db, idem_key=idem_key, payload={"proposalId": proposal_id}, action=_finalize)


@router.get("/proposals/{proposal_id}", response_model=ProposalOut)
def get_proposal(
    proposal_id: int,
    svc: GovernanceService = Depends(get_governance_service),
):
    view = svc.get_proposal(proposal_id)
    if view is None:
        raise HTTPException(status_code=404, detail="Proposal not found.")
    return ProposalOut.from_view(view)


@router.get("/proposals/{proposal_id}/tally", response_model=TallyOut)
def get_tally(
    proposal_id: int,
    svc: GovernanceService = Depends(get_governance_service),
):
    tally = svc.get_tally(proposal_id)
    if tally is None:
        raise HTTPException(status_code=404, detail="Proposal not found.")
    return TallyOut.from_tally(tally)
