import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.errors import ContentExpired, PaymentNotRecorded, SignatureAlreadyUsed, StorageError
from app.core.retry import RetryPolicy
from app.modules.access.service import CredentialService
from app.modules.content import service as content_service
from app.modules.content.models import ContentListing
from app.modules.payments import models, schemas
from app.modules.payments.verifier import VerificationStrategy, VerifiedPaymentDetails

logger = logging.getLogger(__name__)

async def create_challenge(db: AsyncSession, settings: Settings, content_id) -> schemas.PaymentChallenge:
    """Stateless quote. Nothing is reserved; a matching payment is recognized later."""
    listing = await content_service.get_listing(db, content_id)
    if listing.is_expired():
        raise ContentExpired()

    return schemas.PaymentChallenge(
        amount=listing.price_amount,
        currency=settings.PAYMENT_CURRENCY,
        token_mint=listing.price_currency,
        network=settings.PAYMENT_NETWORK,
        recipient=listing.recipient_address,
        content_id=listing.id,
        instructions=f"Send {listing.price_amount} {settings.PAYMENT_CURRENCY} on {settings.PAYMENT_NETWORK} to the recipient address",
    )

async def get_payment_by_signature(db: AsyncSession, signature: str) -> Optional[models.PaymentRecord]:
    result = await db.execute(
        select(models.PaymentRecord).where(models.PaymentRecord.transaction_signature == signature)
    )
    return result.scalars().first()

def _check_same_content(existing: models.PaymentRecord, content_id: UUID) -> None:
    if existing.content_id != content_id:
        logger.warning(
            f"[Payments] Signature {existing.transaction_signature} already pays for {existing.content_id}, "
            f"refusing it for {content_id}"
        )
        raise SignatureAlreadyUsed()

async def record_payment(
    db: AsyncSession,
    content_id: UUID,
    payer_address: str,
    amount: Decimal,
    signature: str,
) -> models.PaymentRecord:
    """
    Idempotent on signature: an existing record for the same content is
    returned untouched. A signature already recorded for other content raises
    SignatureAlreadyUsed.
    Insert and payment_count increment commit together or not at all.
    """
    content_id = content_service.parse_content_id(content_id)
    try:
        existing = await get_payment_by_signature(db, signature)
        if existing:
            _check_same_content(existing, content_id)
            logger.info(f"[Payments] Duplicate payment attempt: {signature}")
            return existing

        record = models.PaymentRecord(
            content_id=content_id,
            payer_address=payer_address or "unknown",
            amount=amount,
            transaction_signature=signature,
            status=models.PaymentStatus.COMPLETED,
        )
        db.add(record)
        await db.execute(
            update(ContentListing)
            .where(ContentListing.id == content_id)
            .values(payment_count=ContentListing.payment_count + 1)
        )
        await db.commit()
        logger.info(f"[Payments] Recorded {amount} for {content_id} ({signature})")
        return record

    except IntegrityError:
        # Lost a race on the unique signature; the other insert wins
        await db.rollback()
        try:
            existing = await get_payment_by_signature(db, signature)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read payment record: {e}") from e
        if existing:
            _check_same_content(existing, content_id)
            logger.info(f"[Payments] Concurrent insert for {signature} collapsed to existing record")
            return existing
        raise StorageError("Payment insert violated a constraint")

    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"[Payments] Storage failure for {signature}: {e}")
        raise StorageError(f"Failed to record payment: {e}") from e

class PaymentVerifier:
    """Resolves the listing, then hands the signature to the configured strategy."""

    def __init__(self, strategy: VerificationStrategy):
        self.strategy = strategy

    async def verify(self, db: AsyncSession, signature: str, content_id) -> tuple[ContentListing, VerifiedPaymentDetails]:
        # Input errors first, then cheap DB rejects, then the ledger
        content_uuid = content_service.parse_content_id(content_id)
        self.strategy.validate_signature(signature)

        listing = await content_service.get_listing(db, content_uuid)
        if listing.is_expired():
            raise ContentExpired()

        existing = await get_payment_by_signature(db, signature)
        if existing and existing.content_id != listing.id:
            logger.warning(f"[Verifier] Signature {signature} replayed for {listing.id}, already paid {existing.content_id}")
            raise SignatureAlreadyUsed()

        # End the read transaction before going to the network
        await db.commit()

        details = await self.strategy.confirm(signature, listing)
        logger.info(f"[Verifier] Verified {signature}: {details.amount} to {details.recipient} ({details.match.value})")
        return listing, details

@dataclass
class PaymentGrant:
    listing: ContentListing
    details: VerifiedPaymentDetails
    record: models.PaymentRecord
    access_token: str

async def verify_and_grant(
    db: AsyncSession,
    verifier: PaymentVerifier,
    credentials: CredentialService,
    retry_policy: RetryPolicy,
    content_id,
    signature: str,
    payer_wallet: Optional[str] = None,
) -> PaymentGrant:
    listing, details = await verifier.verify(db, signature, content_id)
    # A rollback inside record_payment expires ORM state; keep plain values
    listing_id = listing.id
    payer = payer_wallet or details.payer_address or "unknown"

    try:
        record = await retry_policy.run(record_payment, db, listing_id, payer, details.amount, signature)
    except StorageError as e:
        # The payment is real. Surface it for reconciliation, not as a failed verification.
        logger.error(
            f"[Reconcile] Verified payment not recorded: signature={signature} "
            f"content={listing_id} amount={details.amount} payer={payer}: {e}"
        )
        raise PaymentNotRecorded(details={"verified": True, "content_id": str(listing_id), **details.to_dict()}) from e

    # The credential names the content the stored record pays for
    token = credentials.issue_for_payment(str(record.content_id), signature, record.payer_address)
    return PaymentGrant(listing=listing, details=details, record=record, access_token=token)

async def get_payment_status(db: AsyncSession, content_id, signature: str) -> schemas.PaymentStatusResponse:
    content_uuid = content_service.parse_content_id(content_id)
    result = await db.execute(
        select(models.PaymentRecord)
        .where(
            models.PaymentRecord.content_id == content_uuid,
            models.PaymentRecord.transaction_signature == signature,
        )
    )
    record = result.scalars().first()
    if not record:
        return schemas.PaymentStatusResponse(paid=False)
    return schemas.PaymentStatusResponse(
        paid=record.status == models.PaymentStatus.COMPLETED,
        status=record.status,
        amount=record.amount,
        paid_at=record.paid_at,
    )

async def get_payment_history(db: AsyncSession, creator_wallet: str, limit: int = 50, offset: int = 0) -> schemas.PaymentHistory:
    result = await db.execute(
        select(models.PaymentRecord, ContentListing.content_type, ContentListing.original_filename)
        .join(ContentListing, models.PaymentRecord.content_id == ContentListing.id)
        .where(ContentListing.recipient_address == creator_wallet)
        .order_by(models.PaymentRecord.paid_at.desc())
        .limit(limit)
        .offset(offset)
    )
    rows = result.all()

    payments = []
    for record, content_type, filename in rows:
        item = schemas.PaymentRead.model_validate(record)
        item.content_type = content_type.value if content_type else None
        item.original_filename = filename
        payments.append(item)

    totals = await db.execute(
        select(func.count(models.PaymentRecord.id), func.sum(models.PaymentRecord.amount))
        .join(ContentListing, models.PaymentRecord.content_id == ContentListing.id)
        .where(
            ContentListing.recipient_address == creator_wallet,
            models.PaymentRecord.status == models.PaymentStatus.COMPLETED,
        )
    )
    total_payments, total_earned = totals.one()

    return schemas.PaymentHistory(
        payments=payments,
        stats=schemas.PaymentStats(
            total_payments=total_payments or 0,
            total_earned=Decimal(total_earned or 0),
        ),
        limit=limit,
        offset=offset,
        has_more=len(rows) == limit,
    )
