# app/services/organization_service.py
from __future__ import annotations

import logging
from typing import Any, Optional

from app.core.errors import SubmissionError
from app.ledger.client import LedgerClient
from app.ledger.types import OrganizationCreated, Receipt
from app.policies.ledger_inputs import (
    require_bool,
    require_manager_address,
    require_non_empty_str,
    require_positive_int,
)

logger = logging.getLogger(__name__)

ORG_NAME_MAX_LENGTH = 100


class OrganizationService:
    """
    Registers voting organizations on the policy contract.
    """

    def __init__(self, ledger: LedgerClient):
        self.ledger = ledger

    def create_organization(self, name: Any, manager: Optional[str] = None) -> OrganizationCreated:
        name = require_non_empty_str("name", name, max_length=ORG_NAME_MAX_LENGTH)
        manager = require_manager_address(manager)

        receipt = self.ledger.submit("createOrganization", [name, manager])

        org_id = receipt.event_arg("OrganizationCreated", "orgId")
        if org_id is None:
            raise SubmissionError(
                "Organization creation confirmed but the receipt carries no organization id.",
                operation="createOrganization",
                args=[name, manager],
                transaction_id=receipt.transaction_id,
            )

        logger.info("[organization] created id=%s manager=%s tx=%s", org_id, manager, receipt.transaction_id)
        return OrganizationCreated(org_id=int(org_id), manager=manager, receipt=receipt)

    def set_organization_active(self, org_id: Any, active: Any) -> Receipt:
        org_id = require_positive_int("orgId", org_id)
        active = require_bool("active", active)

        receipt = self.ledger.submit("setOrganizationActive", [org_id, active])
        logger.info("[organization] id=%s active=%s tx=%s", org_id, active, receipt.transaction_id)
        return receipt
