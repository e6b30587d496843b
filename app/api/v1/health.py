from fastapi import APIRouter, Request
from starlette.concurrency import run_in_threadpool

from app.core.deps import get_ledger_client
from app.core.errors import ConfigurationError
from app.schemas.ledger import LedgerStatusOut

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    rid = getattr(request.state, "request_id", None)

    try:
        client = get_ledger_client(request)
    except ConfigurationError as exc:
        ledger = LedgerStatusOut(configured=False)
        return {"status": "degraded", "request_id": rid, "ledger": ledger.model_dump(), "detail": str(exc)}

    status = await run_in_threadpool(client.status)
    ledger = LedgerStatusOut.from_status(status)
    return {
        "status": "ok" if status.connected else "degraded",
        "request_id": rid,
        "ledger": ledger.model_dump(),
    }
