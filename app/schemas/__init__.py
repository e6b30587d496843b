from app.schemas.ledger import ReceiptOut, LedgerStatusOut, ErrorOut
from app.schemas.attestations import AttestationPayload, AttestationRecordOut, AttestationReceipt, DocumentVerificationOut
from app.schemas.governance import (
    OrganizationPayload,
    OrganizationActivePayload,
    ProposalPayload,
    VotePayload,
    OrganizationCreatedOut,
    ProposalCreatedOut,
    TransitionOut,
    TallyOut,
    ProposalOut,
)
