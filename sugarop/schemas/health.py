from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel


class ServiceHealth(BaseModel):
    name: str
    status: Literal["ok", "error"]
    message: str
    latency_ms: Optional[int] = None


class HealthReport(BaseModel):
    timestamp: datetime
    services: List[ServiceHealth]
    all_healthy: bool


class HealthCheckResponse(BaseModel):
    """Liveness response for ``/health``."""

    status: str
    service: str
    version: str
    database: str
