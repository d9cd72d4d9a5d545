"""Tests for confidence scoring and status resolution."""

import pytest

from sugarop.database.models import ReceiptStatus
from sugarop.schemas.receipt import ExtractedFields
from sugarop.services.scoring import compute_confidence, resolve_status


def _fields(filled: int) -> ExtractedFields:
    values = {
        "supplier_name": "Mill",
        "date": "2024-01-15",
        "total_amount": 100,
        "cane_type": "Fresh",
        "weight_net": 1000,
        "price_per_ton": 100,
    }
    keys = list(values)[:filled]
    return ExtractedFields(**{key: values[key] for key in keys})


@pytest.mark.parametrize(
    "filled,expected",
    [(0, 0), (1, 17), (2, 33), (3, 50), (4, 67), (5, 83), (6, 100)],
)
def test_confidence_is_rounded_fill_ratio(filled, expected):
    assert compute_confidence(_fields(filled)) == expected


def test_confidence_none_without_data():
    assert compute_confidence(None) is None


def test_confidence_accepts_plain_dict():
    assert compute_confidence({"supplier_name": "Mill", "date": None, "extra": 1}) == 17


def test_status_pending_without_data():
    assert resolve_status(False, None) == ReceiptStatus.PENDING


def test_status_boundary_three_of_six_completes():
    assert resolve_status(True, compute_confidence(_fields(3))) == ReceiptStatus.COMPLETED


def test_status_two_of_six_needs_review():
    assert resolve_status(True, compute_confidence(_fields(2))) == ReceiptStatus.PROCESSING


def test_status_threshold_is_configurable():
    assert resolve_status(True, 67, threshold=80) == ReceiptStatus.PROCESSING
    assert resolve_status(True, 17, threshold=10) == ReceiptStatus.COMPLETED


def test_failed_is_never_resolved():
    outcomes = {resolve_status(has, score) for has in (True, False) for score in (None, 0, 50, 100)}
    assert ReceiptStatus.FAILED not in outcomes
