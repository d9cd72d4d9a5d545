"""SQLAlchemy models for the receipts table."""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Date, Integer, Numeric, String, Text, TIMESTAMP, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from sugarop.core.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReceiptStatus(str, Enum):
    """Processing lifecycle of a receipt."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class VerificationStatus(str, Enum):
    """Human verification state, owned by the correction workflow."""
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    CORRECTED = "corrected"


class Receipt(Base):
    """Digitized receipt: stored image reference plus extracted fields."""

    __tablename__ = "receipts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReceiptStatus.PENDING.value, index=True
    )  # pending | processing | completed | failed
    verification_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=VerificationStatus.UNVERIFIED.value
    )

    # Business fields, correctable by the owner
    receipt_number: Mapped[str | None] = mapped_column(Text, nullable=True)
    transaction_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    supplier_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    weight_kg: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    price_per_kg: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    total_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # OCR audit trail, write-once
    raw_ocr_data: Mapped[dict[str, Any] | None] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=True
    )
    ocr_confidence_score: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # File reference
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    image_filename: Mapped[str | None] = mapped_column(Text, nullable=True)
    storage_path: Mapped[str] = mapped_column(Text, nullable=False)

    # Processing metadata
    processed_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    processing_duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow, server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Receipt id={self.id} user_id={self.user_id} status={self.status}>"
