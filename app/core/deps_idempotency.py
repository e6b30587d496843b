from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.errors import LedgerGatewayError, LedgerTimeoutError, SubmissionError
from app.services.idempotency_service import IdempotencyConflict, IdempotencyService

logger = logging.getLogger(__name__)

REPLAY_HEADER = "Idempotent-Replay"


async def optional_idempotency_key(request: Request) -> Optional[str]:
    key = request.headers.get("Idempotency-Key")
    if key is None:
        return None
    if not key.strip():
        raise HTTPException(status_code=400, detail="Empty Idempotency-Key header.")
    if len(key) > 128:
        raise HTTPException(status_code=400, detail="Idempotency-Key too long.")
    return key


def run_submission(
    request: Request,
    db: Session,
    *,
    idem_key: Optional[str],
    payload: Dict[str, Any],
    action: Callable[[], Dict[str, Any]],
    status_code: int = 200,
) -> JSONResponse:
    """
    Run one ledger-submitting action, optionally under an Idempotency-Key.

    Without a key the action simply runs. With a key:
      - identical completed request  -> stored response replayed
      - key in flight / unknown      -> 409, nothing submitted
      - known failure                -> reservation released, error propagates
      - unknown outcome              -> reservation kept as "unknown"
    """
    if idem_key is None:
        return JSONResponse(status_code=status_code, content=action())

    endpoint_key = f"{request.method}:{request.url.path}"
    svc = IdempotencyService()

    try:
        reservation = svc.reserve_or_replay(
            db,
            endpoint_key=endpoint_key,
            idem_key=idem_key,
            request_payload=payload,
        )
    except IdempotencyConflict as e:
        raise HTTPException(status_code=409, detail=str(e))

    if reservation.is_replay:
        logger.info("[idempotency] replay endpoint=%s key=%s", endpoint_key, idem_key)
        return JSONResponse(
            status_code=reservation.replay_status,
            content=reservation.replay_json,
            headers={REPLAY_HEADER: "true"},
        )

    try:
        body = action()
    except LedgerTimeoutError as exc:
        svc.mark_unknown(db, endpoint_key=endpoint_key, idem_key=idem_key, transaction_id=exc.transaction_id)
        raise
    except SubmissionError as exc:
        if exc.outcome_known:
            svc.release(db, endpoint_key=endpoint_key, idem_key=idem_key)
        else:
            svc.mark_unknown(db, endpoint_key=endpoint_key, idem_key=idem_key, transaction_id=exc.transaction_id)
        raise
    except LedgerGatewayError:
        # validation / configuration / read failures: nothing was submitted
        svc.release(db, endpoint_key=endpoint_key, idem_key=idem_key)
        raise

    svc.store_response(
        db,
        endpoint_key=endpoint_key,
        idem_key=idem_key,
        response_json=body,
        response_status=status_code,
        transaction_id=(body.get("receipt") or {}).get("transactionId"),
    )
    return JSONResponse(status_code=status_code, content=body)
