from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

router = APIRouter(tags=["health"])
logger = structlog.get_logger(__name__)


async def _check_store(request: Request) -> dict[str, Any]:
    try:
        await request.app.state.referral_service.store.ping()
        return {"status": "ok"}
    except Exception as exc:
        logger.warning("health_store_check_failed", error_type=type(exc).__name__)
        return {"status": "failed", "error": "store_unavailable"}


@router.get("/live")
async def live() -> dict[str, str]:
    return {"status": "live"}


@router.get("/health")
async def health(request: Request) -> JSONResponse:
    checks = {"store": await _check_store(request)}
    is_healthy = all(check.get("status") == "ok" for check in checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if is_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ok" if is_healthy else "degraded",
            "checks": checks,
        },
    )
