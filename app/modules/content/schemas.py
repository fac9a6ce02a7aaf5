from datetime import datetime
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, Field, field_validator
from typing import Optional
from app.core.validation import is_valid_address
from app.modules.content.models import ContentType

class ContentCreate(BaseModel):
    content_type: ContentType
    content_path: str = Field(min_length=1)
    original_filename: Optional[str] = None
    mimetype: Optional[str] = None
    price: Decimal = Field(gt=0)
    creator_wallet: str
    expires_in_hours: Optional[int] = Field(default=None, gt=0, le=24 * 365)

    @field_validator("creator_wallet")
    @classmethod
    def wallet_is_valid(cls, v: str) -> str:
        if not is_valid_address(v):
            raise ValueError("Creator wallet must be a valid Solana address")
        return v

class ContentDelete(BaseModel):
    creator_wallet: str

class ContentRead(BaseModel):
    id: UUID
    content_type: ContentType
    original_filename: Optional[str]
    mimetype: Optional[str]
    price_amount: Decimal
    price_currency: str
    recipient_address: str
    view_count: int
    payment_count: int
    expires_at: Optional[datetime]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True

class ContentInfo(ContentRead):
    is_expired: bool = False

class ContentPreview(BaseModel):
    id: UUID
    content_type: ContentType
    original_filename: Optional[str]
    mimetype: Optional[str]
    price_amount: Decimal
    preview_available: bool
