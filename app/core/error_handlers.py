from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.errors import (
    ConfigurationError,
    LedgerTimeoutError,
    ReadError,
    SubmissionError,
    ValidationError,
)
from app.schemas.ledger import ErrorOut

logger = logging.getLogger(__name__)


def _json(status_code: int, body: ErrorOut) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


async def _validation(request: Request, exc: ValidationError) -> JSONResponse:
    # fix your input
    return _json(422, ErrorOut(error="validation_error", detail=str(exc), field=exc.field, reason=exc.reason))


async def _configuration(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error("[errors] ledger not configured: %s", exc)
    return _json(503, ErrorOut(error="ledger_unavailable", detail=str(exc), outcome="known"))


async def _read(request: Request, exc: ReadError) -> JSONResponse:
    return _json(502, ErrorOut(error="ledger_read_failed", detail=str(exc), operation=exc.query, outcome="known"))


async def _submission(request: Request, exc: SubmissionError) -> JSONResponse:
    if exc.rejected:
        status_code, error = 409, "ledger_rejected"
    else:
        status_code, error = 502, "ledger_submission_failed"
    return _json(
        status_code,
        ErrorOut(
            error=error,
            detail=str(exc),
            operation=exc.operation,
            transactionId=exc.transaction_id,
            outcome="known" if exc.outcome_known else "unknown",
        ),
    )


async def _timeout(request: Request, exc: LedgerTimeoutError) -> JSONResponse:
    # unknown outcome: verify before retrying
    return _json(
        504,
        ErrorOut(
            error="ledger_timeout",
            detail=str(exc),
            operation=exc.operation,
            transactionId=exc.transaction_id,
            outcome="unknown",
        ),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, _validation)
    app.add_exception_handler(ConfigurationError, _configuration)
    app.add_exception_handler(ReadError, _read)
    app.add_exception_handler(SubmissionError, _submission)
    app.add_exception_handler(LedgerTimeoutError, _timeout)
