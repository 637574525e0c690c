"""
Bridge swap API - swap history and claim/refund lists for the frontend.

Provides REST endpoints for:
- Listing a user's swaps with summary counters (GET /bridge-swaps/{user_id})
- Summary counters only (GET /bridge-swaps/{user_id}/summary)
- Claimable / refundable lockups (GET /bridge-swaps/{user_id}/claim-refund)
- Health checks (GET /health)

Every user endpoint syncs the user's swaps before answering.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .auth import verify_api_token
from .claim_refund import compute_claimable_and_refundable_evm_swaps, compute_refundable_btc_chain_swaps
from .config import get_settings
from .db import BridgeSwapStore
from .models import (
    BridgeSwapListResponse,
    BridgeSwapSummary,
    ClaimRefundResponse,
    HealthResponse,
)
from .services import Services
from .status import PENDING_STATUSES, SUCCESS_STATUSES, SwapStatus, parse_status

# Configure logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger()


# Global clients (initialized at startup)
_services: Optional[Services] = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    global _services

    settings = get_settings()
    _services = Services.from_settings(settings)

    logger.info(
        "API started",
        version=__version__,
        host=settings.host,
        port=settings.port,
        swap_status_url=settings.swap_status_url,
        evm_chains=sorted(settings.evm_rpc_urls),
    )

    yield

    # Cleanup
    if _services:
        await _services.close()
        _services = None

    logger.info("API stopped")


app = FastAPI(
    title="Bridge Swap API",
    description="Bridge swap status and claim/refund lists",
    version=__version__,
    lifespan=lifespan,
)


_settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_services() -> Services:
    if _services is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return _services


def _parse_status_filter(values: Optional[list[str]]) -> Optional[list[SwapStatus]]:
    if not values:
        return None
    statuses = []
    for value in values:
        status = parse_status(value)
        if status is None:
            raise HTTPException(status_code=400, detail=f"Unknown status: {value}")
        statuses.append(status)
    return statuses


def build_summary(
    store: BridgeSwapStore,
    user_id: str,
    statuses: Optional[list[SwapStatus]] = None,
) -> BridgeSwapSummary:
    return BridgeSwapSummary(
        total=store.count_swaps(user_id, statuses=statuses),
        total_refundable=store.count_swaps(user_id, statuses=[SwapStatus.USER_REFUNDABLE]),
        total_claimable=store.count_swaps(user_id, statuses=[SwapStatus.USER_CLAIMABLE]),
        total_success=store.count_swaps(user_id, statuses=SUCCESS_STATUSES),
        total_pending=store.count_swaps(user_id, statuses=PENDING_STATUSES),
        total_expired=store.count_swaps(user_id, statuses=[SwapStatus.SWAP_EXPIRED]),
    )


# ============================================================================
# Health Check
# ============================================================================


@app.get("/health", response_model=HealthResponse)
async def health_check(services: Services = Depends(get_services)) -> HealthResponse:
    """
    Check API health and connectivity.

    Returns service status, database connectivity and per-chain RPC reachability.
    """
    chain_ids = services.heights.chain_ids
    database_ok, *rpc_ok = await asyncio.gather(
        asyncio.to_thread(services.store.check_connectivity),
        *(services.heights.check_connectivity(chain_id) for chain_id in chain_ids),
    )
    evm_rpc = dict(zip(chain_ids, rpc_ok))
    return HealthResponse(
        status="ok" if database_ok and all(rpc_ok) else "degraded",
        version=__version__,
        database=database_ok,
        evm_chains=chain_ids,
        evm_rpc=evm_rpc,
    )


# ============================================================================
# Bridge Swaps
# ============================================================================


@app.get(
    "/bridge-swaps/{user_id}",
    response_model=BridgeSwapListResponse,
    dependencies=[Depends(verify_api_token)],
)
async def list_bridge_swaps(
    user_id: str,
    status: Optional[list[str]] = Query(None, description="Only swaps in these statuses"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    services: Services = Depends(get_services),
) -> BridgeSwapListResponse:
    """List a user's swaps, newest first, after syncing their statuses."""
    statuses = _parse_status_filter(status)
    await services.syncer.sync(user_id)

    swaps = await asyncio.to_thread(
        services.store.get_swaps, user_id, limit=limit, offset=offset, statuses=statuses
    )
    summary = await asyncio.to_thread(build_summary, services.store, user_id, statuses)
    return BridgeSwapListResponse(
        summary=summary,
        swaps=[swap.to_api() for swap in swaps],
        total=summary.total,
        limit=limit,
        offset=offset,
    )


@app.get(
    "/bridge-swaps/{user_id}/summary",
    response_model=BridgeSwapSummary,
    dependencies=[Depends(verify_api_token)],
)
async def bridge_swap_summary(
    user_id: str,
    services: Services = Depends(get_services),
) -> BridgeSwapSummary:
    await services.syncer.sync(user_id)
    return await asyncio.to_thread(build_summary, services.store, user_id)


@app.get(
    "/bridge-swaps/{user_id}/claim-refund",
    response_model=ClaimRefundResponse,
    dependencies=[Depends(verify_api_token)],
)
async def claim_refund(
    user_id: str,
    response: Response,
    services: Services = Depends(get_services),
) -> ClaimRefundResponse:
    """
    Lockups the user can claim or refund now, and those still time-locked.

    Results depend on the current block height, so they are never cached.
    """
    await services.syncer.sync(user_id)

    evm = await compute_claimable_and_refundable_evm_swaps(
        user_id, services.evm_indexer, services.heights, services.store
    )
    btc = await compute_refundable_btc_chain_swaps(user_id, services.store, services.btc_indexer)

    response.headers["Cache-Control"] = "no-store"
    return ClaimRefundResponse(evm=evm.to_api(), btc=btc.to_api())


# ============================================================================
# Entry Point
# ============================================================================


def run() -> None:
    """Run the API server."""
    settings = get_settings()
    uvicorn.run(
        "bridgeswap_syncer.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
