from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.core import health
from app.core.limiter import limiter

router = APIRouter(tags=["health"])


@router.get("/health/live", summary="Service liveness check")
@limiter.exempt
async def health_live() -> dict:
    return await health.live_payload()


@router.get("/health/ready", summary="Service readiness check")
@limiter.exempt
async def health_ready() -> JSONResponse:
    payload = await health.ready_payload()
    return JSONResponse(status_code=200 if payload["ready"] else 503, content=payload)


@router.get("/health", summary="Database and Redis status")
@limiter.exempt
async def read_health() -> dict:
    return await health.ready_payload()
