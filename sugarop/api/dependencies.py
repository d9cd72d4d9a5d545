"""Request-scoped service factories built from long-lived handles on app.state."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from sugarop.core.config import Settings
from sugarop.core.database import get_async_session as get_session
from sugarop.core.openrouter_client import OpenRouterVisionClient
from sugarop.repositories.receipt_repository import ReceiptRepository
from sugarop.services.extraction.field_extractor import FieldExtractor
from sugarop.services.health_service import HealthService
from sugarop.services.ingestion_service import IngestionService
from sugarop.services.receipt_events import ReceiptEventBus
from sugarop.services.receipt_service import ReceiptService
from sugarop.services.storage_service import StorageService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_vision_client(request: Request) -> OpenRouterVisionClient:
    return request.app.state.vision_client


def get_storage_service(request: Request) -> StorageService:
    return request.app.state.storage


def get_event_bus(request: Request) -> ReceiptEventBus:
    return request.app.state.event_bus


async def get_receipt_repository(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> ReceiptRepository:
    return ReceiptRepository(db_session)


async def get_ingestion_service(
    repository: Annotated[ReceiptRepository, Depends(get_receipt_repository)],
    storage: Annotated[StorageService, Depends(get_storage_service)],
    vision_client: Annotated[OpenRouterVisionClient, Depends(get_vision_client)],
    event_bus: Annotated[ReceiptEventBus, Depends(get_event_bus)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> IngestionService:
    extractor = FieldExtractor(vision_client, settings.llm.vision_models)
    return IngestionService(repository, storage, extractor, event_bus, settings.ingestion)


async def get_receipt_service(
    repository: Annotated[ReceiptRepository, Depends(get_receipt_repository)],
    event_bus: Annotated[ReceiptEventBus, Depends(get_event_bus)],
) -> ReceiptService:
    return ReceiptService(repository, event_bus)


def get_health_service(request: Request) -> HealthService:
    return HealthService(
        request.app.state.session_maker,
        request.app.state.storage,
        request.app.state.vision_client,
    )
