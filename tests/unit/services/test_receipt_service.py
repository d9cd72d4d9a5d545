"""Tests for owner-scoped receipt reads and manual correction."""

from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio
from pydantic import ValidationError
from unittest.mock import Mock

from sugarop.core.exceptions import ReceiptNotFoundError
from sugarop.repositories.receipt_repository import ReceiptRepository
from sugarop.schemas.events import ReceiptEventType
from sugarop.schemas.receipt import ReceiptCorrection
from sugarop.services.receipt_events import ReceiptEventBus
from sugarop.services.receipt_service import ReceiptService

OWNER = "owner-1"
OTHER = "owner-2"
RAW = {"supplier_name": "Mll", "weight_net": 1000, "confidence_note": "blurry"}


@pytest_asyncio.fixture
async def stored_receipt(db_session):
    repository = ReceiptRepository(db_session)
    return await repository.create_receipt(
        user_id=OWNER,
        status="processing",
        supplier_name="Mll",
        raw_ocr_data=RAW,
        ocr_confidence_score=33,
        image_url="https://test.supabase.co/storage/v1/object/public/receipts/owner-1/1-a.png",
        storage_path="owner-1/1-a.png",
    )


@pytest.fixture
def notifier() -> Mock:
    return Mock(spec=ReceiptEventBus)


@pytest.mark.asyncio
async def test_correction_forces_completed_and_keeps_raw(db_session, stored_receipt, notifier):
    service = ReceiptService(ReceiptRepository(db_session), notifier)
    correction = ReceiptCorrection(
        supplier_name="Mitr Phol",
        transaction_date="2024-01-15",
        weight_kg=Decimal("1000.00"),
        price_per_kg=Decimal("1.10"),
        total_amount=Decimal("1100.00"),
        verification_status="verified",
    )

    updated = await service.correct(OWNER, stored_receipt.id, correction)

    assert updated.status == "completed"
    assert updated.verification_status == "verified"
    assert updated.supplier_name == "Mitr Phol"
    assert updated.transaction_date == date(2024, 1, 15)
    assert updated.raw_ocr_data == RAW
    notifier.publish.assert_called_once_with(
        OWNER, ReceiptEventType.RECEIPT_UPDATED, stored_receipt.id, "completed"
    )


@pytest.mark.asyncio
async def test_correction_of_other_owners_receipt_is_not_found(db_session, stored_receipt, notifier):
    service = ReceiptService(ReceiptRepository(db_session), notifier)

    with pytest.raises(ReceiptNotFoundError):
        await service.correct(OTHER, stored_receipt.id, ReceiptCorrection(supplier_name="Hijack"))

    unchanged = await service.get(OWNER, stored_receipt.id)
    assert unchanged.supplier_name == "Mll"
    notifier.publish.assert_not_called()


@pytest.mark.asyncio
async def test_get_hides_other_owners_receipt(db_session, stored_receipt):
    service = ReceiptService(ReceiptRepository(db_session))

    with pytest.raises(ReceiptNotFoundError):
        await service.get(OTHER, stored_receipt.id)


@pytest.mark.asyncio
async def test_summary_counts_by_status(db_session, stored_receipt):
    service = ReceiptService(ReceiptRepository(db_session))

    summary = await service.summary(OWNER)

    assert summary.total_receipts == 1
    assert summary.processing_receipts == 1
    assert summary.completed_receipts == 0
    assert summary.total_weight_kg is None


def test_correction_defaults_to_corrected():
    assert ReceiptCorrection(supplier_name="Mill").verification_status == "corrected"


def test_correction_empty_date_is_null():
    assert ReceiptCorrection(supplier_name="Mill", transaction_date="").transaction_date is None


@pytest.mark.parametrize(
    "payload",
    [
        {"supplier_name": ""},
        {"supplier_name": "x" * 256},
        {"supplier_name": "Mill", "weight_kg": -1},
        {"supplier_name": "Mill", "verification_status": "unverified"},
        {"supplier_name": "Mill", "raw_ocr_data": {}},
    ],
)
def test_correction_rejects_invalid_input(payload):
    with pytest.raises(ValidationError):
        ReceiptCorrection(**payload)
