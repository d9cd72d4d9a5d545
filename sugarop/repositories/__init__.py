"""Repository layer modules."""

from sugarop.repositories.receipt_repository import ReceiptRepository

__all__ = ["ReceiptRepository"]
