"""Tests for concurrent health probes."""

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, Mock

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sugarop.core.database import Base, create_engine_for_url
from sugarop.core.exceptions import AppError
from sugarop.database.models import Receipt
from sugarop.services.health_service import HealthService


@pytest_asyncio.fixture
async def session_factory():
    engine = create_engine_for_url("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.mark.asyncio
async def test_all_probes_healthy(session_factory, mock_storage, mock_vision_client):
    mock_storage.check_bucket = AsyncMock(return_value={"name": "receipts"})

    report = await HealthService(session_factory, mock_storage, mock_vision_client).run()

    assert report.all_healthy is True
    assert [s.name for s in report.services] == ["database", "storage", "ai"]
    assert report.services[0].message == "Connected"


@pytest.mark.asyncio
async def test_database_probe_does_not_reveal_stored_rows(session_factory, mock_storage, mock_vision_client):
    mock_storage.check_bucket = AsyncMock(return_value={"name": "receipts"})
    async with session_factory() as session:
        session.add(Receipt(user_id="someone-else", image_url="https://x/a.png", storage_path="someone-else/a.png"))
        await session.commit()

    report = await HealthService(session_factory, mock_storage, mock_vision_client).run()

    assert report.services[0].status == "ok"
    assert report.services[0].message == "Connected"


@pytest.mark.asyncio
async def test_failing_probe_is_reported_not_raised(session_factory, mock_storage, mock_vision_client):
    mock_storage.check_bucket = AsyncMock(side_effect=AppError("Bucket 'receipts' unavailable: not found"))
    mock_vision_client.is_configured = False

    report = await HealthService(session_factory, mock_storage, mock_vision_client).run()

    by_name = {service.name: service for service in report.services}
    assert report.all_healthy is False
    assert by_name["database"].status == "ok"
    assert by_name["storage"].status == "error"
    assert "unavailable" in by_name["storage"].message
    assert by_name["ai"].status == "error"


@pytest.mark.asyncio
async def test_database_failure_is_reported(mock_storage, mock_vision_client):
    mock_storage.check_bucket = AsyncMock(return_value={})
    broken_factory = Mock(side_effect=RuntimeError("could not connect"))

    report = await HealthService(broken_factory, mock_storage, mock_vision_client).run()

    assert report.services[0].status == "error"
    assert report.services[0].message == "could not connect"
