from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.context import get_paste_service
from app.services.paste_service import PasteService

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check.

    Returns a simple status response to verify the API process is up.
    Does not touch the paste store.
    """

    return {"status": "ok"}


@router.get("/health/ready")
async def readiness_check(pastes: PasteService = Depends(get_paste_service)) -> JSONResponse:
    """Readiness check: 200 when the paste store answers, 503 otherwise."""

    if await pastes.health():
        return JSONResponse(status_code=200, content={"status": "ok"})
    return JSONResponse(status_code=503, content={"status": "unavailable"})
