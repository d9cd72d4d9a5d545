"""Concurrent health probes for the database, storage and the AI client."""

import asyncio
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sugarop.core.openrouter_client import OpenRouterVisionClient
from sugarop.schemas.health import HealthReport, ServiceHealth
from sugarop.services.storage_service import StorageService
from sugarop.utils.logging import get_logger

LOGGER = get_logger(__name__)


class HealthService:
    """Runs independent probes in parallel and never raises."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        storage: StorageService,
        vision_client: OpenRouterVisionClient,
    ):
        self.session_factory = session_factory
        self.storage = storage
        self.vision_client = vision_client

    async def run(self) -> HealthReport:
        services = await asyncio.gather(
            self._probe("database", self._check_database),
            self._probe("storage", self._check_storage),
            self._probe("ai", self._check_ai),
        )
        all_healthy = all(service.status == "ok" for service in services)
        if not all_healthy:
            LOGGER.warning(
                "Health check degraded",
                extra={"failing": [s.name for s in services if s.status != "ok"]},
            )
        return HealthReport(
            timestamp=datetime.now(timezone.utc),
            services=list(services),
            all_healthy=all_healthy,
        )

    async def _probe(self, name: str, check: Callable[[], Awaitable[str]]) -> ServiceHealth:
        started = time.monotonic()
        try:
            message = await check()
            status = "ok"
        except Exception as e:
            LOGGER.error(f"Health probe '{name}' failed: {e}")
            message = str(e) or type(e).__name__
            status = "error"
        latency_ms = int((time.monotonic() - started) * 1000)
        return ServiceHealth(name=name, status=status, message=message, latency_ms=latency_ms)

    async def _check_database(self) -> str:
        async with self.session_factory() as session:
            await session.execute(text("SELECT 1"))
        return "Connected"

    async def _check_storage(self) -> str:
        await self.storage.check_bucket()
        return f"Bucket '{self.storage.bucket}' available"

    async def _check_ai(self) -> str:
        if not self.vision_client.is_configured:
            raise RuntimeError("OPENROUTER_API_KEY not configured")
        return "Configured"
