"""Owner-scoped persistence for receipt records."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sugarop.core.exceptions import DatabaseError, PersistenceError
from sugarop.database.models import Receipt, ReceiptStatus
from sugarop.repositories.base_repository import BaseRepository
from sugarop.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Columns no update path may touch once the row exists
IMMUTABLE_FIELDS = frozenset(
    {"id", "user_id", "raw_ocr_data", "image_url", "storage_path", "created_at"}
)


class ReceiptRepository(BaseRepository[Receipt]):
    """Repository for Receipt records.

    Every read and write is filtered by the owning user id.
    """

    def __init__(self, session: AsyncSession):
        """Initialize receipt repository.

        Args:
            session: SQLAlchemy async session
        """
        super().__init__(session, Receipt)

    async def create_receipt(self, user_id: str, **fields: Any) -> Receipt:
        """Insert a new receipt record.

        Args:
            user_id: Owner of the receipt
            **fields: Column values for the new record

        Returns:
            Created Receipt record

        Raises:
            PersistenceError: If the insert fails
        """
        try:
            receipt = await self.create(user_id=user_id, **fields)
        except SQLAlchemyError as e:
            raise PersistenceError(str(e), original_error=e) from e

        LOGGER.info(
            "Receipt record created",
            extra={"receipt_id": str(receipt.id), "user_id": user_id, "status": receipt.status},
        )
        return receipt

    async def get_for_owner(self, receipt_id: UUID, user_id: str) -> Optional[Receipt]:
        """Fetch a receipt if it exists and belongs to ``user_id``."""
        try:
            result = await self.session.execute(
                select(Receipt).where(Receipt.id == receipt_id, Receipt.user_id == user_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            LOGGER.error(f"Error fetching receipt {receipt_id}: {e}", exc_info=True)
            raise DatabaseError(f"Failed to fetch receipt: {e}", original_error=e) from e

    async def list_for_owner(
        self,
        user_id: str,
        status: Optional[ReceiptStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Receipt]:
        """List receipts owned by ``user_id``, newest first."""
        try:
            return await self.get_all(
                skip=offset,
                limit=limit,
                filters={"user_id": user_id, "status": status.value if status else None},
                order_by=Receipt.created_at.desc(),
            )
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to list receipts: {e}", original_error=e) from e

    async def update_for_owner(
        self, receipt_id: UUID, user_id: str, **fields: Any
    ) -> Optional[Receipt]:
        """Update mutable fields of a receipt owned by ``user_id``.

        Returns:
            The updated receipt, or None if no receipt matched the id and owner

        Raises:
            PersistenceError: If the update cannot be committed
        """
        rejected = IMMUTABLE_FIELDS.intersection(fields)
        if rejected:
            LOGGER.warning(
                "Ignoring immutable receipt fields in update",
                extra={"receipt_id": str(receipt_id), "fields": sorted(rejected)},
            )

        receipt = await self.get_for_owner(receipt_id, user_id)
        if receipt is None:
            return None

        for key, value in fields.items():
            if key in IMMUTABLE_FIELDS or not hasattr(receipt, key):
                continue
            setattr(receipt, key, value)
        receipt.updated_at = datetime.now(timezone.utc)

        try:
            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            LOGGER.error(f"Error updating receipt {receipt_id}: {e}", exc_info=True)
            raise PersistenceError(str(e), original_error=e) from e

        return receipt

    async def summary_for_owner(self, user_id: str) -> Dict[str, Any]:
        """Aggregate counts and completed-receipt totals for ``user_id``."""
        completed = Receipt.status == ReceiptStatus.COMPLETED.value

        def _count(status: ReceiptStatus):
            return func.coalesce(func.sum(case((Receipt.status == status.value, 1), else_=0)), 0)

        query = select(
            func.count(Receipt.id),
            _count(ReceiptStatus.COMPLETED),
            _count(ReceiptStatus.PROCESSING),
            _count(ReceiptStatus.PENDING),
            _count(ReceiptStatus.FAILED),
            func.sum(case((completed, Receipt.weight_kg), else_=None)),
            func.sum(case((completed, Receipt.total_amount), else_=None)),
            func.avg(case((completed, Receipt.price_per_kg), else_=None)),
        ).where(Receipt.user_id == user_id)

        try:
            row = (await self.session.execute(query)).one()
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to summarize receipts: {e}", original_error=e) from e

        return {
            "total_receipts": int(row[0] or 0),
            "completed_receipts": int(row[1]),
            "processing_receipts": int(row[2]),
            "pending_receipts": int(row[3]),
            "failed_receipts": int(row[4]),
            "total_weight_kg": _as_decimal(row[5]),
            "total_revenue": _as_decimal(row[6]),
            "avg_price_per_kg": _as_decimal(row[7]),
        }


def _as_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value)).quantize(Decimal("0.01"))
