import logging
from typing import Any
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import deps
from app.core.config import Settings
from app.core.db import get_db
from app.core.errors import PaymentNotRecorded, PaywallError
from app.core.retry import RetryPolicy
from app.core.validation import validate_address
from app.modules.access.service import CredentialService
from app.modules.payments import schemas, service

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/initiate", response_model=schemas.PaymentChallenge)
async def initiate_payment(
    payload: schemas.ChallengeRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(deps.get_settings),
) -> Any:
    return await service.create_challenge(db, settings, payload.content_id)

@router.post("/verify", response_model=schemas.VerifyResponse, response_model_exclude_none=True)
async def verify_payment(
    payload: schemas.VerifyRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(deps.get_settings),
    verifier: service.PaymentVerifier = Depends(deps.get_payment_verifier),
    credentials: CredentialService = Depends(deps.get_credential_service),
    retry_policy: RetryPolicy = Depends(deps.get_retry_policy),
) -> Any:
    try:
        if payload.payer_wallet:
            validate_address(payload.payer_wallet, field="payer wallet")
        grant = await service.verify_and_grant(
            db,
            verifier,
            credentials,
            retry_policy,
            content_id=payload.content_id,
            signature=payload.transaction_signature,
            payer_wallet=payload.payer_wallet,
        )
    except PaymentNotRecorded as e:
        return JSONResponse(status_code=e.http_status, content={"verified": True, **e.to_dict()})
    except PaywallError as e:
        # Every verify failure carries verified: false, whatever its status
        logger.info(f"[Payments] Verification of {payload.transaction_signature} failed: {e.code}")
        return JSONResponse(status_code=e.http_status, content={"verified": False, **e.to_dict()})

    content_id = str(grant.record.content_id)
    return schemas.VerifyResponse(
        verified=True,
        access_token=grant.access_token,
        download_url=f"{settings.FRONTEND_URL}/{content_id}?payment={grant.access_token}",
        message="Payment verified successfully",
        details=grant.details.to_dict(),
    )

@router.get("/status/{content_id}", response_model=schemas.PaymentStatusResponse)
async def get_payment_status(
    content_id: str,
    signature: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await service.get_payment_status(db, content_id, signature)

@router.get("/history/{creator_wallet}", response_model=schemas.PaymentHistory)
async def get_payment_history(
    creator_wallet: str,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> Any:
    validate_address(creator_wallet, field="creator wallet")
    return await service.get_payment_history(db, creator_wallet, limit, offset)
