from datetime import datetime
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
from app.modules.payments.models import PaymentStatus

class ChallengeRequest(BaseModel):
    content_id: str

class PaymentChallenge(BaseModel):
    amount: Decimal
    currency: str
    token_mint: str
    network: str
    recipient: str
    content_id: UUID
    instructions: str

class VerifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content_id: str = Field(alias="contentId")
    transaction_signature: str = Field(alias="transactionSignature")
    payer_wallet: Optional[str] = Field(default=None, alias="payerWallet")

class VerifyResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    verified: bool
    access_token: Optional[str] = Field(default=None, alias="accessToken")
    download_url: Optional[str] = Field(default=None, alias="downloadUrl")
    error: Optional[str] = None
    message: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

class PaymentStatusResponse(BaseModel):
    paid: bool
    status: Optional[PaymentStatus] = None
    amount: Optional[Decimal] = None
    paid_at: Optional[datetime] = None

class PaymentRead(BaseModel):
    id: UUID
    content_id: UUID
    payer_address: str
    amount: Decimal
    transaction_signature: str
    status: PaymentStatus
    paid_at: datetime
    content_type: Optional[str] = None
    original_filename: Optional[str] = None

    class Config:
        from_attributes = True

class PaymentStats(BaseModel):
    total_payments: int
    total_earned: Decimal

class PaymentHistory(BaseModel):
    payments: List[PaymentRead]
    stats: PaymentStats
    limit: int
    offset: int
    has_more: bool
