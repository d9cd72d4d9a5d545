"""Completeness-based confidence score and lifecycle status resolution."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel

from sugarop.database.models import ReceiptStatus
from sugarop.schemas.receipt import EXPECTED_FIELDS

DEFAULT_CONFIDENCE_THRESHOLD = 50


def compute_confidence(data: Optional[Union[BaseModel, Mapping[str, Any]]]) -> Optional[int]:
    """Percentage of expected fields that are present and non-null.

    Returns None when extraction produced no data at all, which is distinct
    from a score of 0 for data with every field empty.
    """
    if data is None:
        return None
    values = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    filled = sum(1 for name in EXPECTED_FIELDS if values.get(name) is not None)
    score = Decimal(100 * filled) / Decimal(len(EXPECTED_FIELDS))
    return int(score.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def resolve_status(
    has_data: bool,
    confidence: Optional[int],
    threshold: int = DEFAULT_CONFIDENCE_THRESHOLD,
) -> ReceiptStatus:
    """Map extraction outcome to a lifecycle status.

    ``failed`` is never produced here.
    """
    if not has_data:
        return ReceiptStatus.PENDING
    if confidence is not None and confidence >= threshold:
        return ReceiptStatus.COMPLETED
    return ReceiptStatus.PROCESSING
