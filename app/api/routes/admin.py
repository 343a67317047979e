"""Maintenance routes for operators.

Guarded by ``X-API-Key``; paste content is never exposed here.
"""

from fastapi import APIRouter, Depends

from app.adapters.rate_limit.base import ActionClass
from app.core.auth import verify_api_key
from app.core.context import get_paste_service
from app.core.rate_limit import rate_limited
from app.schemas.paste import CleanupResponse, StorageStatusResponse
from app.services.paste_service import PasteService

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(verify_api_key), Depends(rate_limited(ActionClass.DEFAULT))],
)


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_expired(pastes: PasteService = Depends(get_paste_service)) -> CleanupResponse:
    """Run the expired-paste sweep now."""
    return CleanupResponse(deleted=await pastes.sweep_expired())


@router.get("/status", response_model=StorageStatusResponse)
async def storage_status(pastes: PasteService = Depends(get_paste_service)) -> StorageStatusResponse:
    """Report the configured backend and whether it is reachable."""
    return StorageStatusResponse(
        backend=pastes.store.backend_name,
        healthy=await pastes.health(),
    )
