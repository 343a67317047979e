"""Paste routes: create, read (peek) and delete (consume).

Burn-after-read is a two-step protocol: ``GET`` returns the ciphertext without
deleting it so the client can warn the reader, then the client issues
``DELETE`` once the reader confirms.
"""

from fastapi import APIRouter, Depends, Response, status

from app.adapters.rate_limit.base import ActionClass
from app.core.context import get_paste_service
from app.core.rate_limit import rate_limited
from app.schemas.paste import (
    CreatePasteRequest,
    CreatePasteResponse,
    DeletePasteResponse,
    PasteResponse,
)
from app.services.paste_service import PasteService

router = APIRouter(tags=["Pastes"])


@router.post(
    "/paste",
    response_model=CreatePasteResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limited(ActionClass.CREATE))],
)
async def create_paste(
    body: CreatePasteRequest,
    pastes: PasteService = Depends(get_paste_service),
) -> CreatePasteResponse:
    """Store an encrypted paste.

    Returns:
        CreatePasteResponse: The new paste id.

    Raises:
        ValidationAppError: 400 for empty/oversized content or bad options.
        StorageAppError: 500 if the store fails.
    """
    paste_id = await pastes.create(
        body.content,
        body.expiry,
        has_password=body.has_password,
        salt=body.salt,
        burn_after_read=body.burn_after_read,
        language=body.language,
    )
    return CreatePasteResponse(id=paste_id)


@router.get(
    "/paste/{paste_id}",
    response_model=PasteResponse,
    dependencies=[Depends(rate_limited(ActionClass.READ))],
)
async def get_paste(
    paste_id: str,
    response: Response,
    pastes: PasteService = Depends(get_paste_service),
) -> PasteResponse:
    """Return ciphertext and metadata without consuming the paste.

    Raises:
        NotFoundAppError: 404 for missing or expired pastes.
    """
    record = await pastes.peek(paste_id)
    # Ciphertext must not linger in browser or proxy caches
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, private"
    return PasteResponse.from_record(record)


@router.delete(
    "/paste/{paste_id}",
    response_model=DeletePasteResponse,
    dependencies=[Depends(rate_limited(ActionClass.DEFAULT))],
)
async def delete_paste(
    paste_id: str,
    pastes: PasteService = Depends(get_paste_service),
) -> DeletePasteResponse:
    """Delete (consume) a paste. Idempotent."""
    deleted = await pastes.consume(paste_id)
    return DeletePasteResponse(deleted=deleted)
