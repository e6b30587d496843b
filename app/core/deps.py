# /app/core/deps.py
from fastapi import Depends, Request

from app.ledger.client import LedgerClient, Web3LedgerClient
from app.services.attestation_service import AttestationService
from app.services.governance_service import GovernanceService
from app.services.organization_service import OrganizationService


def get_ledger_client(request: Request) -> LedgerClient:
    """
    One client (one signing identity) per application.

    Built on first use; raises ConfigurationError while ledger settings are
    absent, so the API still serves /health in that state.
    """
    state = request.app.state
    client = getattr(state, "ledger_client", None)
    if client is not None:
        return client

    with state.ledger_client_lock:
        if state.ledger_client is None:
            state.ledger_client = Web3LedgerClient.from_settings(state.settings)
        return state.ledger_client


def get_attestation_service(ledger: LedgerClient = Depends(get_ledger_client)) -> AttestationService:
    return AttestationService(ledger)


def get_governance_service(ledger: LedgerClient = Depends(get_ledger_client)) -> GovernanceService:
    return GovernanceService(ledger)


def get_organization_service(ledger: LedgerClient = Depends(get_ledger_client)) -> OrganizationService:
    return OrganizationService(ledger)
