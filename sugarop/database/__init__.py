"""Database models."""

from sugarop.database.models import Receipt, ReceiptStatus, VerificationStatus

__all__ = ["Receipt", "ReceiptStatus", "VerificationStatus"]
