"""Receipt ingestion pipeline: validate, extract, upload, insert, compensate."""

import mimetypes
import secrets
import string
import time
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from sugarop.core.config import IngestionSettings
from sugarop.core.exceptions import (
    AuthorizationError,
    CompensationError,
    PersistenceError,
    StorageDeleteError,
    StorageWriteError,
    ValidationError,
)
from sugarop.repositories.receipt_repository import ReceiptRepository
from sugarop.schemas.events import ReceiptEventType
from sugarop.schemas.receipt import (
    ExtractedFields,
    IngestionFailure,
    IngestionResult,
    IngestionSuccess,
    UploadedImage,
)
from sugarop.services.extraction.field_extractor import FieldExtractor
from sugarop.services.receipt_events import ReceiptEventBus
from sugarop.services.scoring import compute_confidence, resolve_status
from sugarop.services.storage_service import StorageService
from sugarop.utils.logging import get_logger

LOGGER = get_logger(__name__)

UNAUTHORIZED_MESSAGE = "Unauthorized - Please login to upload receipts"
NO_FILE_MESSAGE = "No file provided"
FILE_TOO_LARGE_MESSAGE = "File size must be less than 5MB"
BAD_TYPE_MESSAGE = "Only JPEG, PNG, and WebP images are allowed"
UNEXPECTED_MESSAGE = "An unexpected error occurred"

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
_MIME_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


def build_storage_path(owner_id: str, filename: str, content_type: str) -> str:
    """Object key namespaced by owner, with a timestamp and random suffix."""
    extension = ""
    if filename and "." in filename:
        extension = filename.rsplit(".", 1)[-1].lower()
    if not extension:
        extension = _MIME_EXTENSIONS.get(content_type.lower(), "")
    if not extension:
        guessed = mimetypes.guess_extension(content_type) or ".bin"
        extension = guessed.lstrip(".")

    epoch_ms = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(7))
    return f"{owner_id}/{epoch_ms}-{suffix}.{extension}"


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def _decimal(value: Optional[float]) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value)).quantize(Decimal("0.01"))
    except InvalidOperation:
        return None


def map_extracted_fields(data: Optional[ExtractedFields]) -> Dict[str, Any]:
    """Translate model output into receipt business columns."""
    if data is None:
        return {}

    price_per_kg = None
    if data.price_per_ton is not None:
        price_per_kg = _decimal(data.price_per_ton / 1000)

    return {
        "supplier_name": data.supplier_name,
        "transaction_date": parse_iso_date(data.date),
        "total_amount": _decimal(data.total_amount),
        "weight_kg": _decimal(data.weight_net),
        "price_per_kg": price_per_kg,
    }


class IngestionService:
    """Runs one receipt upload end to end.

    Collaborators are passed in as long-lived handles. :meth:`ingest` returns
    a success or failure result and never raises.
    """

    def __init__(
        self,
        repository: ReceiptRepository,
        storage: StorageService,
        extractor: FieldExtractor,
        notifier: Optional[ReceiptEventBus],
        settings: IngestionSettings,
    ):
        self.repository = repository
        self.storage = storage
        self.extractor = extractor
        self.notifier = notifier
        self.settings = settings

    async def ingest(self, owner_id: Optional[str], upload: Optional[UploadedImage]) -> IngestionResult:
        """Ingest an uploaded receipt image for ``owner_id``.

        Args:
            owner_id: Authenticated user id, or None
            upload: The uploaded file, or None if the request carried none

        Returns:
            IngestionSuccess or IngestionFailure
        """
        try:
            return await self._ingest(owner_id, upload)
        except AuthorizationError as e:
            return IngestionFailure(error=e.message, error_type="authorization")
        except ValidationError as e:
            LOGGER.info(f"Rejected upload: {e.message}", extra={"user_id": owner_id})
            return IngestionFailure(error=e.message, error_type="validation")
        except StorageWriteError as e:
            return IngestionFailure(error=f"Failed to upload file: {e.message}", error_type="storage")
        except PersistenceError as e:
            return IngestionFailure(
                error=f"Failed to create receipt record: {e.message}", error_type="persistence"
            )
        except Exception as e:
            LOGGER.error(f"Unexpected ingestion error: {e}", exc_info=True, extra={"user_id": owner_id})
            return IngestionFailure(error=UNEXPECTED_MESSAGE, error_type="unexpected")

    def validate(self, owner_id: Optional[str], upload: Optional[UploadedImage]) -> UploadedImage:
        """Check the principal and the file before any side effect.

        Raises:
            AuthorizationError: If there is no owner id
            ValidationError: If the file is missing, too large or of a disallowed type
        """
        if not owner_id:
            raise AuthorizationError(UNAUTHORIZED_MESSAGE)
        if upload is None or upload.size == 0:
            raise ValidationError(NO_FILE_MESSAGE)
        if upload.size > self.settings.max_upload_bytes:
            raise ValidationError(FILE_TOO_LARGE_MESSAGE)
        if (upload.content_type or "").lower() not in self.settings.allowed_mime_types:
            raise ValidationError(BAD_TYPE_MESSAGE)
        return upload

    async def _ingest(self, owner_id: Optional[str], upload: Optional[UploadedImage]) -> IngestionSuccess:
        upload = self.validate(owner_id, upload)
        started = time.monotonic()

        LOGGER.info(
            "Processing receipt upload",
            extra={"user_id": owner_id, "filename": upload.filename, "size": upload.size},
        )

        extraction = await self.extractor.extract(upload.content, upload.content_type)
        confidence = compute_confidence(extraction.data)
        status = resolve_status(
            extraction.data is not None, confidence, self.settings.confidence_threshold
        )

        storage_path = build_storage_path(owner_id, upload.filename, upload.content_type)
        await self.storage.upload_file(storage_path, upload.content, upload.content_type)
        image_url = self.storage.get_public_url(storage_path)

        duration_ms = int((time.monotonic() - started) * 1000)
        try:
            receipt = await self.repository.create_receipt(
                user_id=owner_id,
                status=status.value,
                raw_ocr_data=extraction.raw,
                ocr_confidence_score=confidence,
                image_url=image_url,
                image_filename=upload.filename or None,
                storage_path=storage_path,
                processed_at=datetime.now(timezone.utc) if extraction.data is not None else None,
                processing_duration_ms=duration_ms,
                error_message=extraction.error,
                **map_extracted_fields(extraction.data),
            )
        except Exception as e:
            LOGGER.error(
                f"Receipt insert failed, removing uploaded image: {e}",
                extra={"user_id": owner_id, "storage_path": storage_path},
            )
            await self._compensate(storage_path)
            if isinstance(e, PersistenceError):
                raise
            raise PersistenceError(str(e), original_error=e) from e

        if self.notifier is not None:
            self.notifier.publish(owner_id, ReceiptEventType.RECEIPT_CREATED, receipt.id, status.value)

        LOGGER.info(
            "Receipt ingested",
            extra={
                "user_id": owner_id,
                "receipt_id": str(receipt.id),
                "status": status.value,
                "confidence": confidence,
                "model": extraction.model,
                "duration_ms": duration_ms,
            },
        )
        return IngestionSuccess(
            receipt_id=receipt.id,
            status=status,
            confidence_score=confidence,
            extracted_fields=extraction.data,
        )

    async def _compensate(self, storage_path: str) -> None:
        """Best-effort delete of an image whose record was never written."""
        try:
            await self.storage.delete_file(storage_path)
        except StorageDeleteError as e:
            failure = CompensationError(
                f"Failed to remove orphaned image: {e.message}", storage_path, original_error=e
            )
            LOGGER.error(failure.message, extra={"storage_path": storage_path}, exc_info=True)
        except Exception as e:
            LOGGER.error(
                f"Unexpected error removing orphaned image: {e}",
                extra={"storage_path": storage_path},
                exc_info=True,
            )
