import uuid
import enum
from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, Numeric, DateTime, Enum, Uuid, func
from sqlalchemy.orm import relationship
from app.core.db import Base

class ContentType(str, enum.Enum):
    FILE = "file"
    TEXT = "text"
    LINK = "link"

class ContentListing(Base):
    __tablename__ = "content_listings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    content_type = Column(Enum(ContentType), nullable=False)
    content_path = Column(String, nullable=False)
    original_filename = Column(String(255), nullable=True)
    mimetype = Column(String(100), nullable=True)

    price_amount = Column(Numeric(12, 6), nullable=False)
    price_currency = Column(String(64), nullable=False) # Token mint
    recipient_address = Column(String(64), nullable=False, index=True) # Creator wallet, never updated

    view_count = Column(Integer, default=0, nullable=False)
    payment_count = Column(Integer, default=0, nullable=False)

    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    payments = relationship("PaymentRecord", back_populates="content", cascade="all, delete-orphan")

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        # SQLite hands back naive datetimes
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at < now
