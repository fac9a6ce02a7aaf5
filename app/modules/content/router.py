import logging
from typing import Any
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import FileResponse, JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import deps
from app.core.config import Settings
from app.core.db import get_db
from app.core.errors import ContentExpired
from app.modules.access.service import CredentialService
from app.modules.content import models, schemas, service
from app.modules.payments import service as payments_service

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("", response_model=schemas.ContentRead, status_code=status.HTTP_201_CREATED)
async def create_content(
    content_in: schemas.ContentCreate,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(deps.get_settings),
) -> Any:
    return await service.create_listing(db, settings, content_in)

@router.get("/{content_id}/info", response_model=schemas.ContentInfo)
async def get_content_info(
    content_id: str,
    db: AsyncSession = Depends(get_db),
) -> Any:
    listing = await service.record_view(db, content_id)
    base = schemas.ContentRead.model_validate(listing)
    return schemas.ContentInfo(**base.model_dump(), is_expired=listing.is_expired())

@router.get("/{content_id}/preview", response_model=schemas.ContentPreview)
async def get_content_preview(
    content_id: str,
    db: AsyncSession = Depends(get_db),
) -> Any:
    listing = await service.get_listing(db, content_id)
    return service.build_preview(listing)

@router.get("/{content_id}/download")
async def download_content(
    content_id: str,
    request: Request,
    token: str | None = Depends(deps.get_payment_proof),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(deps.get_settings),
    credentials: CredentialService = Depends(deps.get_credential_service),
):
    """
    Deliver paid content. Without a credential, answer 402 with the payment challenge.
    """
    listing = await service.get_listing(db, content_id)
    if listing.is_expired():
        raise ContentExpired()

    if not token:
        challenge = await payments_service.create_challenge(db, settings, listing.id)
        return JSONResponse(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            content={
                "error": "Payment Required",
                "message": "This content requires payment to access",
                "payment": jsonable_encoder(challenge),
            },
        )

    # Any CredentialError becomes a generic 403
    claims = credentials.authorize(token, str(listing.id))
    logger.info(f"[Delivery] Access granted for {listing.id} via {claims.transaction_signature}")

    storage = request.app.state.storage
    try:
        if listing.content_type == models.ContentType.LINK:
            return {"type": "link", "url": listing.content_path}
        if listing.content_type == models.ContentType.TEXT:
            return {"type": "text", "content": storage.read_text(listing.content_path)}
        path = storage.resolve(listing.content_path)
    except FileNotFoundError:
        logger.error(f"[Delivery] Stored file missing for {listing.id}: {listing.content_path}")
        raise HTTPException(status_code=404, detail="Content unavailable")

    return FileResponse(
        path,
        filename=listing.original_filename or "download",
        media_type=listing.mimetype or "application/octet-stream",
    )

@router.delete("/{content_id}")
async def delete_content(
    content_id: str,
    payload: schemas.ContentDelete,
    db: AsyncSession = Depends(get_db),
) -> Any:
    listing = await service.delete_listing(db, content_id, payload.creator_wallet)
    return {"deleted": True, "id": str(listing.id)}
