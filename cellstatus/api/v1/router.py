"""API v1 router aggregating all sub-routers."""

from fastapi import APIRouter, Depends

from cellstatus import __version__
from cellstatus.api.v1.spc import router as spc_router
from cellstatus.api.v1.vsm import router as vsm_router
from cellstatus.core.auth import verify_api_key
from cellstatus.core.rate_limit import rate_limit_default

# Public router (no authentication required)
api_v1_router = APIRouter()


@api_v1_router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint returning 200 OK."""
    return {"status": "ok", "version": __version__}


# Authenticated router with default rate limiting (60 req/min).
# Report and simulation endpoints additionally enforce strict limits (10 req/min).
_authenticated = APIRouter(dependencies=[Depends(verify_api_key), Depends(rate_limit_default)])
_authenticated.include_router(vsm_router)
_authenticated.include_router(spc_router)

api_v1_router.include_router(_authenticated)
