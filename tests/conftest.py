"""Pytest configuration and shared fixtures."""

import os

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, Mock

# Set required environment variables for testing BEFORE importing app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DATABASE_AUTO_MIGRATE", "true")
os.environ.setdefault("OPENROUTER_API_KEY", "test-openrouter-key")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-enough-length-for-hs256")

from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sugarop.core.config import IngestionSettings, settings
from sugarop.core.database import Base, create_engine_for_url
from sugarop.core.jwt import JWTVerifier
from sugarop.core.openrouter_client import OpenRouterVisionClient
from sugarop.main import app
from sugarop.services.receipt_events import ReceiptEventBus
from sugarop.services.storage_service import StorageService

TEST_JWT_SECRET = os.environ["SUPABASE_JWT_SECRET"]


@pytest.fixture
def test_client() -> TestClient:
    """Create FastAPI test client.

    The lifespan is not run, so the handles it would build are set directly.

    Returns:
        TestClient: FastAPI test client instance
    """
    app.state.settings = settings
    app.state.jwt_verifier = JWTVerifier(settings.supabase.url, TEST_JWT_SECRET)
    app.state.event_bus = ReceiptEventBus(heartbeat_interval=0.05)
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest_asyncio.fixture
async def db_session():
    """In-memory SQLite session with the receipts table created."""
    engine = create_engine_for_url("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def ingestion_settings() -> IngestionSettings:
    return IngestionSettings()


@pytest.fixture
def mock_vision_client() -> Mock:
    """Create mock OpenRouter vision client.

    Returns:
        Mock: Configured client whose generate_content is an AsyncMock
    """
    client = Mock(spec=OpenRouterVisionClient)
    client.is_configured = True
    client.generate_content = AsyncMock()
    return client


@pytest.fixture
def mock_storage() -> Mock:
    """Create mock storage service.

    Returns:
        Mock: Storage service with async upload/delete
    """
    storage = Mock(spec=StorageService)
    storage.bucket = "receipts"
    storage.upload_file = AsyncMock(return_value={"Key": "receipts/path"})
    storage.delete_file = AsyncMock(return_value=None)
    storage.get_public_url = Mock(
        side_effect=lambda path: f"https://test.supabase.co/storage/v1/object/public/receipts/{path}"
    )
    return storage


@pytest.fixture
def sample_image() -> bytes:
    """Sample PNG content for testing.

    Returns:
        bytes: PNG signature followed by filler bytes
    """
    return b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture
def complete_ocr_json() -> str:
    return (
        '{"supplier_name": "Mitr Phol Sugar", "date": "2024-01-15", "total_amount": 45000, '
        '"cane_type": "Fresh cane", "weight_net": 45000, "price_per_ton": 1000}'
    )
