"""Receipt schemas: model output, ingestion results and correction input."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sugarop.database.models import ReceiptStatus, VerificationStatus

# Fixed order; the confidence score is computed over exactly these keys
EXPECTED_FIELDS = (
    "supplier_name",
    "date",
    "total_amount",
    "cane_type",
    "weight_net",
    "price_per_ton",
)

_NULL_TOKENS = {"", "null", "none", "n/a", "na", "-"}


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and value.strip().lower() in _NULL_TOKENS:
        return None
    return value


class ExtractedFields(BaseModel):
    """Fields a vision model is asked to read off a sugarcane receipt."""

    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    supplier_name: Optional[str] = Field(None, description="Supplier or mill name")
    date: Optional[str] = Field(None, description="Transaction date, ISO YYYY-MM-DD")
    total_amount: Optional[float] = Field(None, description="Total amount paid")
    cane_type: Optional[str] = Field(None, description="Cane/material type")
    weight_net: Optional[float] = Field(None, description="Net weight in kg")
    price_per_ton: Optional[float] = Field(None, description="Price per metric ton")

    @field_validator("supplier_name", "date", "cane_type", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("total_amount", "weight_net", "price_per_ton", mode="before")
    @classmethod
    def _coerce_number(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        if isinstance(value, str):
            return value.replace(",", "").replace("฿", "").strip()
        return value

    def filled_fields(self) -> List[str]:
        return [name for name in EXPECTED_FIELDS if getattr(self, name) is not None]


class UploadedImage(BaseModel):
    """A raw uploaded file as received from the HTTP layer."""

    filename: str = ""
    content_type: str = ""
    content: bytes = b""

    @property
    def size(self) -> int:
        return len(self.content)


class IngestionSuccess(BaseModel):
    success: Literal[True] = True
    receipt_id: UUID
    status: ReceiptStatus
    confidence_score: Optional[int] = None
    extracted_fields: Optional[ExtractedFields] = None


IngestionErrorType = Literal["authorization", "validation", "storage", "persistence", "unexpected"]


class IngestionFailure(BaseModel):
    success: Literal[False] = False
    error: str
    error_type: IngestionErrorType


IngestionResult = Union[IngestionSuccess, IngestionFailure]


class ReceiptCorrection(BaseModel):
    """Manual correction of a receipt's business fields."""

    model_config = ConfigDict(extra="forbid")

    supplier_name: str = Field(..., min_length=1, max_length=255)
    transaction_date: Optional[date] = None
    total_amount: Optional[Decimal] = Field(None, ge=0)
    weight_kg: Optional[Decimal] = Field(None, ge=0)
    price_per_kg: Optional[Decimal] = Field(None, ge=0)
    receipt_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    verification_status: VerificationStatus = VerificationStatus.CORRECTED

    @field_validator("verification_status")
    @classmethod
    def _reviewed_only(cls, value: VerificationStatus) -> VerificationStatus:
        if value == VerificationStatus.UNVERIFIED:
            raise ValueError("verification_status must be 'verified' or 'corrected'")
        return value

    @field_validator("transaction_date", mode="before")
    @classmethod
    def _empty_date_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ReceiptResponse(BaseModel):
    """Receipt as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: ReceiptStatus
    verification_status: VerificationStatus
    receipt_number: Optional[str] = None
    supplier_name: Optional[str] = None
    transaction_date: Optional[date] = None
    total_amount: Optional[Decimal] = None
    weight_kg: Optional[Decimal] = None
    price_per_kg: Optional[Decimal] = None
    notes: Optional[str] = None
    raw_ocr_data: Optional[Dict[str, Any]] = None
    ocr_confidence_score: Optional[int] = None
    image_url: str
    image_filename: Optional[str] = None
    processed_at: Optional[datetime] = None
    processing_duration_ms: Optional[int] = None
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ReceiptSummaryResponse(BaseModel):
    """Per-owner aggregate over receipts."""

    total_receipts: int = 0
    completed_receipts: int = 0
    processing_receipts: int = 0
    pending_receipts: int = 0
    failed_receipts: int = 0
    total_weight_kg: Optional[Decimal] = None
    total_revenue: Optional[Decimal] = None
    avg_price_per_kg: Optional[Decimal] = None
