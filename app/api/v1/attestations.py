# app/api/v1/attestations.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.core.config import get_settings
from app.core.deps import get_attestation_service
from app.core.deps_idempotency import optional_idempotency_key, run_submission
from app.db.session import get_db
from app.schemas.attestations import (
    AttestationPayload,
    AttestationReceipt,
    AttestationRecordOut,
    DocumentVerificationOut,
)
from app.schemas.ledger import ReceiptOut
from app.services.attestation_service import AttestationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/attestations")

MAX_DOCUMENT_BYTES = 20 * 1024 * 1024


# ---------------------------------------------------------------------
# POST /attestations  (record OCR verification result)
# ---------------------------------------------------------------------


@router.post("", response_model=AttestationReceipt)
def post_attestation(
    request: Request,
    payload: AttestationPayload,
    db: Session = Depends(get_db),
    idem_key: Optional[str] = Depends(optional_idempotency_key),
    svc: AttestationService = Depends(get_attestation_service),
):
    """
    Appends a new attestation version. Every successful call creates a version;
    send an Idempotency-Key to make client retries safe.
    """
    explorer = get_settings().explorer_base_url

    def _attest():
        receipt = svc.attest(payload.docHash, payload.contentId, payload.ocrScoreBps, payload.verified)
        return AttestationReceipt(
            docHash=payload.docHash.lower(),
            receipt=ReceiptOut.from_receipt(receipt, explorer),
        ).model_dump(mode="json")

    return run_submission(
        request,
        db,
        idem_key=idem_key,
        payload=payload.model_dump(),
        action=_attest,
    )


# ---------------------------------------------------------------------
# POST /attestations/fingerprint  (raw document bytes -> latest record)
# ---------------------------------------------------------------------


@router.post("/fingerprint", response_model=DocumentVerificationOut)
async def fingerprint_document(
    request: Request,
    svc: AttestationService = Depends(get_attestation_service),
):
    content = await request.body()
    if not content:
        raise HTTPException(status_code=400, detail="Empty document body.")
    if len(content) > MAX_DOCUMENT_BYTES:
        raise HTTPException(status_code=413, detail="Document too large.")

    result = await run_in_threadpool(svc.verify_document, content)
    logger.info("[attestations] fingerprint doc=%s attested=%s", result.doc_hash, result.is_attested)

    return DocumentVerificationOut(
        docHash=result.doc_hash,
        isAttested=result.is_attested,
        record=AttestationRecordOut.from_record(result.record) if result.record else None,
    )


# ---------------------------------------------------------------------
# GET /attestations/{doc_hash}  (latest version only)
# ---------------------------------------------------------------------


@router.get("/{doc_hash}", response_model=AttestationRecordOut)
def get_latest_attestation(
    doc_hash: str,
    svc: AttestationService = Depends(get_attestation_service),
):
    record = svc.get_latest(doc_hash)
    if record is None:
        raise HTTPException(status_code=404, detail="Document has no attestation on the ledger.")
    return AttestationRecordOut.from_record(record)
