from fastapi import APIRouter

from app.api.v1.health import router as health_router
from app.api.v1.attestations import router as attestations_router
from app.api.v1.governance import router as governance_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM / CORE
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])

# ------------------------------------------------------------------
# LEDGER: ATTESTATIONS / GOVERNANCE
# ------------------------------------------------------------------
v1_router.include_router(attestations_router, tags=["attestations"])
v1_router.include_router(governance_router, tags=["governance"])
