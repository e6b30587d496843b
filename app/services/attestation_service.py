# app/services/attestation_service.py
from __future__ import annotations

import logging
from typing import Any, Optional

from app.core.errors import NOT_FOUND
from app.core.hashing import document_fingerprint
from app.ledger.client import LedgerClient
from app.ledger.types import (
    OCR_SCORE_MAX_BPS,
    ZERO_ADDRESS,
    AttestationRecord,
    DocumentVerification,
    Receipt,
)
from app.policies.ledger_inputs import (
    require_bool,
    require_bounded_int,
    require_doc_hash,
    require_non_empty_str,
)

logger = logging.getLogger(__name__)


def _hex32(value: Any) -> str:
    if isinstance(value, str):
        return value.lower()
    return "0x" + bytes(value).hex()


def _address_or_none(value: Any) -> Optional[str]:
    if not value or str(value).lower() == ZERO_ADDRESS:
        return None
    return str(value)


def record_from_ledger(value: Any) -> AttestationRecord:
    """
    Map the getLatest tuple (field order fixed by the contract) to a plain record.
    """
    (
        doc_hash,
        content_id,
        ocr_verified,
        ocr_score_bps,
        sig_verified,
        claimed_signer,
        status,
        attested_at,
        attested_by,
        version,
    ) = value
    return AttestationRecord(
        doc_hash=_hex32(doc_hash),
        content_id=str(content_id),
        ocr_verified=bool(ocr_verified),
        ocr_score_bps=int(ocr_score_bps),
        signature_verified=bool(sig_verified),
        claimed_signer=_address_or_none(claimed_signer),
        status=int(status),
        attested_at=int(attested_at),
        attested_by=str(attested_by),
        version=int(version),
    )


class AttestationService:
    """
    Versioned OCR attestations keyed by document fingerprint.

    attest() is NOT idempotent: every successful call appends a new version.
    Concurrent attestations for one fingerprint are not serialized here; the
    ledger orders them and the latest confirmed version wins.
    """

    def __init__(self, ledger: LedgerClient):
        self.ledger = ledger

    def attest(
        self,
        doc_hash: Any,
        content_id: Any,
        ocr_score_bps: Any,
        verified: Any,
    ) -> Receipt:
        doc_hash = require_doc_hash("docHash", doc_hash)
        content_id = require_non_empty_str("contentId", content_id)
        ocr_score_bps = require_bounded_int("ocrScoreBps", ocr_score_bps, lo=0, hi=OCR_SCORE_MAX_BPS)
        verified = require_bool("verified", verified)

        receipt = self.ledger.submit("attestOcr", [doc_hash, content_id, ocr_score_bps, verified])
        logger.info(
            "[attestation] attested doc=%s score=%s verified=%s tx=%s",
            doc_hash,
            ocr_score_bps,
            verified,
            receipt.transaction_id,
        )
        return receipt

    def get_latest(self, doc_hash: Any) -> Optional[AttestationRecord]:
        """
        Latest version for the fingerprint, or None when it was never attested.
        """
        doc_hash = require_doc_hash("docHash", doc_hash)

        value = self.ledger.read("getLatest", [doc_hash])
        if value is NOT_FOUND:
            logger.debug("[attestation] no record for doc=%s", doc_hash)
            return None
        return record_from_ledger(value)

    @staticmethod
    def compute_doc_hash(content: bytes) -> str:
        return document_fingerprint(content)

    def verify_document(self, content: bytes) -> DocumentVerification:
        doc_hash = self.compute_doc_hash(content)
        return DocumentVerification(doc_hash=doc_hash, record=self.get_latest(doc_hash))
