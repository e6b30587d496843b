from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.hashing import canonical_hash
from app.models.idempotency_key import IdempotencyKeyRecord

logger = logging.getLogger(__name__)

STATE_PENDING = "pending"
STATE_UNKNOWN = "unknown"
STATE_COMPLETED = "completed"


class IdempotencyConflict(ValueError):
    pass


@dataclass(frozen=True)
class Reservation:
    request_hash: str
    replay_json: Optional[Dict[str, Any]] = None
    replay_status: Optional[int] = None

    @property
    def is_replay(self) -> bool:
        return self.replay_json is not None


def stable_hash(payload: Dict[str, Any]) -> str:
    # Deterministic hash for request payload
    return canonical_hash(payload)


class IdempotencyService:
    """
    Guards ledger submissions against duplicate POSTs.

    A key is reserved before anything is submitted, so a retry of a request
    whose submission is still in flight (or timed out) is refused instead of
    double-submitting.
    """

    def get_existing(
        self,
        db: Session,
        *,
        endpoint_key: str,
        idem_key: str,
    ) -> Optional[IdempotencyKeyRecord]:
        return db.execute(
            select(IdempotencyKeyRecord).where(
                IdempotencyKeyRecord.endpoint_key == endpoint_key,
                IdempotencyKeyRecord.idem_key == idem_key,
            )
        ).scalar_one_or_none()

    def reserve_or_replay(
        self,
        db: Session,
        *,
        endpoint_key: str,
        idem_key: str,
        request_payload: Dict[str, Any],
    ) -> Reservation:
        """
        No record          -> reserve (pending) and return a fresh Reservation.
        Completed, same    -> replay stored response.
        Different payload  -> conflict.
        Pending / unknown  -> conflict; the caller must verify ledger state.
        """
        req_hash = stable_hash(request_payload)
        existing = self.get_existing(db, endpoint_key=endpoint_key, idem_key=idem_key)

        if existing is None:
            row = IdempotencyKeyRecord(
                endpoint_key=endpoint_key,
                idem_key=idem_key,
                request_hash=req_hash,
                state=STATE_PENDING,
            )
            db.add(row)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise IdempotencyConflict("Idempotency-Key is already in use by a concurrent request.")
            return Reservation(request_hash=req_hash)

        if existing.request_hash != req_hash:
            raise IdempotencyConflict("Idempotency-Key reuse with different payload is not allowed.")

        if existing.state == STATE_COMPLETED:
            return Reservation(
                request_hash=req_hash,
                replay_json=existing.response_json,
                replay_status=int(existing.response_status),
            )

        detail = "Request with this Idempotency-Key is still in flight or its outcome is unknown"
        if existing.transaction_id:
            detail += f" (transaction {existing.transaction_id})"
        raise IdempotencyConflict(detail + "; verify ledger state before retrying.")

    def store_response(
        self,
        db: Session,
        *,
        endpoint_key: str,
        idem_key: str,
        response_json: Dict[str, Any],
        response_status: int,
        transaction_id: Optional[str] = None,
    ) -> None:
        row = self.get_existing(db, endpoint_key=endpoint_key, idem_key=idem_key)
        if row is None or row.state == STATE_COMPLETED:
            # already stored (or replayed). Do not overwrite.
            return
        row.state = STATE_COMPLETED
        row.response_status = str(response_status)
        row.response_json = response_json
        row.transaction_id = transaction_id
        db.commit()

    def mark_unknown(
        self,
        db: Session,
        *,
        endpoint_key: str,
        idem_key: str,
        transaction_id: Optional[str],
    ) -> None:
        row = self.get_existing(db, endpoint_key=endpoint_key, idem_key=idem_key)
        if row is None or row.state == STATE_COMPLETED:
            return
        row.state = STATE_UNKNOWN
        row.transaction_id = transaction_id
        db.commit()
        logger.warning("[idempotency] key=%s outcome unknown tx=%s", idem_key, transaction_id)

    def release(self, db: Session, *, endpoint_key: str, idem_key: str) -> None:
        """
        Drop a pending reservation after a failure with a known outcome.
        """
        row = self.get_existing(db, endpoint_key=endpoint_key, idem_key=idem_key)
        if row is None or row.state != STATE_PENDING:
            return
        db.delete(row)
        db.commit()
