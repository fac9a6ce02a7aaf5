import uuid
import enum
from datetime import datetime, timezone
from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, Enum, Uuid
from sqlalchemy.orm import relationship
from app.core.db import Base

class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

class PaymentRecord(Base):
    __tablename__ = "payment_records"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    content_id = Column(Uuid(as_uuid=True), ForeignKey("content_listings.id", ondelete="CASCADE"), nullable=False, index=True)
    payer_address = Column(String(64), nullable=False, default="unknown")
    amount = Column(Numeric(12, 6), nullable=False)

    # Idempotency key: one record per on-chain transaction
    transaction_signature = Column(String(128), nullable=False, unique=True)
    status = Column(Enum(PaymentStatus), default=PaymentStatus.COMPLETED, nullable=False)

    paid_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    content = relationship("ContentListing", back_populates="payments")
