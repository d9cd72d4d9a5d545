"""Owner-scoped receipt reads and manual correction."""

from typing import List, Optional
from uuid import UUID

from sugarop.core.exceptions import ReceiptNotFoundError
from sugarop.database.models import Receipt, ReceiptStatus
from sugarop.repositories.receipt_repository import ReceiptRepository
from sugarop.schemas.events import ReceiptEventType
from sugarop.schemas.receipt import ReceiptCorrection, ReceiptSummaryResponse
from sugarop.services.receipt_events import ReceiptEventBus
from sugarop.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ReceiptService:
    """Service for reading and correcting a user's receipts."""

    def __init__(self, repository: ReceiptRepository, notifier: Optional[ReceiptEventBus] = None):
        """Initialize receipt service.

        Args:
            repository: Receipt repository bound to a session
            notifier: Optional event bus signalled after corrections
        """
        self.repository = repository
        self.notifier = notifier

    async def get(self, owner_id: str, receipt_id: UUID) -> Receipt:
        """Fetch one receipt.

        Raises:
            ReceiptNotFoundError: If it does not exist or belongs to someone else
        """
        receipt = await self.repository.get_for_owner(receipt_id, owner_id)
        if receipt is None:
            raise ReceiptNotFoundError(f"Receipt {receipt_id} not found")
        return receipt

    async def list(
        self,
        owner_id: str,
        status: Optional[ReceiptStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Receipt]:
        return await self.repository.list_for_owner(owner_id, status=status, limit=limit, offset=offset)

    async def summary(self, owner_id: str) -> ReceiptSummaryResponse:
        return ReceiptSummaryResponse(**await self.repository.summary_for_owner(owner_id))

    async def correct(self, owner_id: str, receipt_id: UUID, correction: ReceiptCorrection) -> Receipt:
        """Apply a manual correction and mark the receipt completed.

        Args:
            owner_id: Authenticated user id
            receipt_id: Receipt to correct
            correction: Validated corrected values

        Returns:
            The updated receipt

        Raises:
            ReceiptNotFoundError: If it does not exist or belongs to someone else
            PersistenceError: If the update cannot be saved
        """
        fields = correction.model_dump(exclude={"verification_status"})
        receipt = await self.repository.update_for_owner(
            receipt_id,
            owner_id,
            status=ReceiptStatus.COMPLETED.value,
            verification_status=correction.verification_status.value,
            **fields,
        )
        if receipt is None:
            raise ReceiptNotFoundError(f"Receipt {receipt_id} not found")

        LOGGER.info(
            "Receipt corrected",
            extra={
                "receipt_id": str(receipt_id),
                "user_id": owner_id,
                "verification_status": correction.verification_status.value,
            },
        )
        if self.notifier is not None:
            self.notifier.publish(
                owner_id, ReceiptEventType.RECEIPT_UPDATED, receipt.id, ReceiptStatus.COMPLETED.value
            )
        return receipt
