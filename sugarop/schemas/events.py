from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ReceiptEventType(str, Enum):
    RECEIPT_CREATED = "receipt:created"
    RECEIPT_UPDATED = "receipt:updated"
    HEARTBEAT = "heartbeat"


class ReceiptEvent(BaseModel):
    event_type: ReceiptEventType
    receipt_id: Optional[UUID] = None
    status: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: Dict[str, Any] = Field(default_factory=dict)
