import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.errors import ContentNotFound, Forbidden, InvalidInput
from app.modules.content import models, schemas
# Registers PaymentRecord for the listing -> payments relationship
from app.modules.payments import models as payment_models  # noqa: F401

logger = logging.getLogger(__name__)

PREVIEWABLE_MIMETYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}

def parse_content_id(content_id) -> UUID:
    if isinstance(content_id, UUID):
        return content_id
    try:
        return UUID(str(content_id))
    except ValueError:
        raise InvalidInput("Content ID must be a valid UUID", details={"field": "content_id"})

async def get_listing(db: AsyncSession, content_id) -> models.ContentListing:
    listing = await db.get(models.ContentListing, parse_content_id(content_id))
    if not listing:
        raise ContentNotFound()
    return listing

async def create_listing(db: AsyncSession, settings: Settings, content_in: schemas.ContentCreate) -> models.ContentListing:
    if not settings.PRICE_MIN <= content_in.price <= settings.PRICE_MAX:
        raise InvalidInput(
            f"Price must be between {settings.PRICE_MIN} and {settings.PRICE_MAX} {settings.PAYMENT_CURRENCY}",
            details={"field": "price"},
        )

    expires_at = None
    if content_in.expires_in_hours:
        expires_at = datetime.now(timezone.utc) + timedelta(hours=content_in.expires_in_hours)

    listing = models.ContentListing(
        content_type=content_in.content_type,
        content_path=content_in.content_path,
        original_filename=content_in.original_filename,
        mimetype=content_in.mimetype,
        price_amount=content_in.price.quantize(Decimal("0.01")),
        price_currency=settings.PAYMENT_TOKEN_MINT,
        recipient_address=content_in.creator_wallet,
        expires_at=expires_at,
    )
    db.add(listing)
    await db.commit()
    await db.refresh(listing)
    logger.info(f"[Content] Created listing {listing.id} priced {listing.price_amount} for {listing.recipient_address}")
    return listing

async def record_view(db: AsyncSession, content_id) -> models.ContentListing:
    listing = await get_listing(db, content_id)
    await db.execute(
        update(models.ContentListing)
        .where(models.ContentListing.id == listing.id)
        .values(view_count=models.ContentListing.view_count + 1)
    )
    await db.commit()
    await db.refresh(listing)
    return listing

def build_preview(listing: models.ContentListing) -> schemas.ContentPreview:
    return schemas.ContentPreview(
        id=listing.id,
        content_type=listing.content_type,
        original_filename=listing.original_filename,
        mimetype=listing.mimetype,
        price_amount=listing.price_amount,
        preview_available=listing.mimetype in PREVIEWABLE_MIMETYPES,
    )

async def delete_listing(db: AsyncSession, content_id, creator_wallet: str) -> models.ContentListing:
    listing = await get_listing(db, content_id)
    if listing.recipient_address != creator_wallet:
        raise Forbidden("Not authorized to delete this content")

    # Payment records go with it (relationship cascade)
    await db.delete(listing)
    await db.commit()
    logger.info(f"[Content] Deleted listing {listing.id}")
    return listing

async def sweep_expired_listings(db: AsyncSession, now: datetime | None = None) -> int:
    now = now or datetime.now(timezone.utc)
    result = await db.execute(
        select(models.ContentListing).where(
            models.ContentListing.expires_at.is_not(None),
            models.ContentListing.expires_at < now,
        )
    )
    expired = result.scalars().all()
    for listing in expired:
        await db.delete(listing)
    await db.commit()
    if expired:
        logger.info(f"[Sweeper] Removed {len(expired)} expired listings")
    return len(expired)
