from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, StrictBool, StrictInt, StrictStr

from app.ledger.types import AttestationRecord
from app.schemas.ledger import ReceiptOut


class AttestationPayload(BaseModel):
    docHash: StrictStr = Field(..., description="0x + 64 hex digits (keccak-256 of the document)")
    contentId: StrictStr = Field(..., description="content-store identifier of the document")
    ocrScoreBps: StrictInt = Field(..., description="0..10000 basis points")
    verified: StrictBool


class AttestationRecordOut(BaseModel):
    docHash: str
    contentId: str
    ocrVerified: bool
    ocrScoreBps: int
    ocrScorePercent: float
    signatureVerified: bool
    claimedSigner: Optional[str] = None
    status: int
    attestedAt: int
    attestedBy: str
    version: int

    @classmethod
    def from_record(cls, record: AttestationRecord) -> "AttestationRecordOut":
        return cls(
            docHash=record.doc_hash,
            contentId=record.content_id,
            ocrVerified=record.ocr_verified,
            ocrScoreBps=record.ocr_score_bps,
            ocrScorePercent=record.ocr_score_percent,
            signatureVerified=record.signature_verified,
            claimedSigner=record.claimed_signer,
            status=record.status,
            attestedAt=record.attested_at,
            attestedBy=record.attested_by,
            version=record.version,
        )


class AttestationReceipt(BaseModel):
    docHash: str
    receipt: ReceiptOut


class DocumentVerificationOut(BaseModel):
    docHash: str
    isAttested: bool
    record: Optional[AttestationRecordOut] = None
