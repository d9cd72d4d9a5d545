"""Receipt upload, listing and correction endpoints."""

from typing import Annotated, Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse, StreamingResponse

from sugarop.api.dependencies import (
    get_app_settings,
    get_event_bus,
    get_ingestion_service,
    get_receipt_service,
)
from sugarop.core.config import Settings
from sugarop.core.auth import get_current_user
from sugarop.core.exceptions import DatabaseError, ReceiptNotFoundError
from sugarop.database.models import ReceiptStatus
from sugarop.schemas.auth import CurrentUser
from sugarop.schemas.receipt import (
    IngestionSuccess,
    ReceiptCorrection,
    ReceiptResponse,
    ReceiptSummaryResponse,
    UploadedImage,
)
from sugarop.services.ingestion_service import FILE_TOO_LARGE_MESSAGE, IngestionService
from sugarop.services.receipt_events import ReceiptEventBus
from sugarop.services.receipt_service import ReceiptService
from sugarop.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()

ERROR_STATUS_CODES = {
    "authorization": status.HTTP_401_UNAUTHORIZED,
    "validation": status.HTTP_400_BAD_REQUEST,
    "storage": status.HTTP_502_BAD_GATEWAY,
    "persistence": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "unexpected": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _not_found(receipt_id: UUID) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Receipt {receipt_id} not found")


def _database_unavailable(e: DatabaseError) -> HTTPException:
    LOGGER.error(f"Receipt query failed: {e.message}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load receipts")


@router.post(
    "/upload",
    status_code=status.HTTP_201_CREATED,
    summary="Upload a receipt image for OCR ingestion",
    operation_id="upload_receipt",
)
async def upload_receipt(
    file: Optional[UploadFile] = File(None, description="Receipt image (JPEG, PNG or WebP)"),
    current_user: Annotated[CurrentUser, Depends(get_current_user)] = None,
    ingestion_service: Annotated[IngestionService, Depends(get_ingestion_service)] = None,
    settings: Annotated[Settings, Depends(get_app_settings)] = None,
) -> JSONResponse:
    """Validate, extract, store and record one receipt image."""
    max_bytes = settings.ingestion.max_upload_bytes
    upload = None
    if file is not None:
        if file.size is not None and file.size > max_bytes:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"success": False, "error": FILE_TOO_LARGE_MESSAGE},
            )
        upload = UploadedImage(
            filename=file.filename or "",
            content_type=file.content_type or "",
            # Read at most one byte past the ceiling
            content=await file.read(max_bytes + 1),
        )

    result = await ingestion_service.ingest(current_user.id, upload)

    if isinstance(result, IngestionSuccess):
        body: Dict[str, Any] = {
            "success": True,
            "data": {
                "receipt_id": str(result.receipt_id),
                "status": result.status.value,
                "confidence_score": result.confidence_score,
                "ocr_data": result.extracted_fields.model_dump() if result.extracted_fields else None,
            },
        }
        return JSONResponse(status_code=status.HTTP_201_CREATED, content=body)

    return JSONResponse(
        status_code=ERROR_STATUS_CODES[result.error_type],
        content={"success": False, "error": result.error},
    )


@router.get(
    "",
    response_model=List[ReceiptResponse],
    summary="List receipts",
    operation_id="list_receipts",
)
async def list_receipts(
    status_filter: Optional[ReceiptStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: Annotated[CurrentUser, Depends(get_current_user)] = None,
    receipt_service: Annotated[ReceiptService, Depends(get_receipt_service)] = None,
) -> List[ReceiptResponse]:
    """List the current user's receipts, newest first."""
    try:
        receipts = await receipt_service.list(current_user.id, status=status_filter, limit=limit, offset=offset)
    except DatabaseError as e:
        raise _database_unavailable(e) from e
    return [ReceiptResponse.model_validate(receipt) for receipt in receipts]


@router.get(
    "/summary",
    response_model=ReceiptSummaryResponse,
    summary="Receipt totals for the current user",
    operation_id="get_receipt_summary",
)
async def get_receipt_summary(
    current_user: Annotated[CurrentUser, Depends(get_current_user)] = None,
    receipt_service: Annotated[ReceiptService, Depends(get_receipt_service)] = None,
) -> ReceiptSummaryResponse:
    try:
        return await receipt_service.summary(current_user.id)
    except DatabaseError as e:
        raise _database_unavailable(e) from e


@router.get(
    "/events",
    summary="Stream receipt change events",
    operation_id="stream_receipt_events",
)
async def stream_receipt_events(
    current_user: Annotated[CurrentUser, Depends(get_current_user)] = None,
    event_bus: Annotated[ReceiptEventBus, Depends(get_event_bus)] = None,
) -> StreamingResponse:
    """Server-Sent Events telling the client to refresh its receipt views."""
    return StreamingResponse(
        event_bus.stream(current_user.id),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get(
    "/{receipt_id}",
    response_model=ReceiptResponse,
    summary="Get receipt details",
    operation_id="get_receipt",
)
async def get_receipt(
    receipt_id: UUID,
    current_user: Annotated[CurrentUser, Depends(get_current_user)] = None,
    receipt_service: Annotated[ReceiptService, Depends(get_receipt_service)] = None,
) -> ReceiptResponse:
    try:
        receipt = await receipt_service.get(current_user.id, receipt_id)
    except ReceiptNotFoundError as e:
        raise _not_found(receipt_id) from e
    except DatabaseError as e:
        raise _database_unavailable(e) from e
    return ReceiptResponse.model_validate(receipt)


@router.patch(
    "/{receipt_id}",
    response_model=ReceiptResponse,
    summary="Manually correct a receipt",
    operation_id="correct_receipt",
)
async def correct_receipt(
    receipt_id: UUID,
    correction: ReceiptCorrection,
    current_user: Annotated[CurrentUser, Depends(get_current_user)] = None,
    receipt_service: Annotated[ReceiptService, Depends(get_receipt_service)] = None,
) -> ReceiptResponse:
    """Overwrite business fields and mark the receipt completed."""
    try:
        receipt = await receipt_service.correct(current_user.id, receipt_id, correction)
    except ReceiptNotFoundError as e:
        raise _not_found(receipt_id) from e
    except DatabaseError as e:
        LOGGER.error(f"Failed to correct receipt {receipt_id}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update receipt"
        ) from e
    return ReceiptResponse.model_validate(receipt)
