"""FastAPI application entry point."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from sugarop.api.v1.endpoints import health
from sugarop.api.v1.router import api_router
from sugarop.core.config import settings
from sugarop.core.database import async_session_maker, close_database, db_client, init_database
from sugarop.core.jwt import JWKSService, JWTVerifier
from sugarop.core.openrouter_client import OpenRouterVisionClient
from sugarop.services.receipt_events import ReceiptEventBus
from sugarop.services.storage_service import StorageService
from sugarop.utils.logging import get_logger

LOGGER = get_logger(__name__, level=settings.log_level)


class RootResponse(BaseModel):
    """Root endpoint response payload."""

    message: str = Field(..., description="Service status message")
    version: str = Field(..., description="Running application version")
    docs: str = Field(..., description="Path to the interactive API docs")
    health: str = Field(..., description="Path to the health check endpoint")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    LOGGER.info("Validating configuration...")
    if not settings.llm.openrouter_api_key:
        LOGGER.error("OPENROUTER_API_KEY is missing, uploads will be stored without OCR")
    if not settings.supabase.url or not settings.supabase.service_role_key:
        LOGGER.error("SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY is missing")

    LOGGER.info(
        "Starting application",
        extra={
            "app_name": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
        },
    )

    app.state.settings = settings
    app.state.db_client = db_client
    app.state.session_maker = async_session_maker
    app.state.vision_client = OpenRouterVisionClient.from_settings(settings.llm)
    app.state.storage = StorageService.from_settings(settings)
    app.state.event_bus = ReceiptEventBus(heartbeat_interval=settings.sse_heartbeat_seconds)
    jwks = JWKSService(settings.supabase.url, cache_ttl=settings.supabase.jwks_cache_ttl)
    app.state.jwt_verifier = JWTVerifier(settings.supabase.url, settings.supabase.jwt_secret, jwks=jwks)

    LOGGER.info("Starting database initialization...")
    try:
        await asyncio.wait_for(init_database(auto_migrate=settings.db.auto_migrate), timeout=30)
        LOGGER.info("Database initialized successfully")
    except asyncio.TimeoutError:
        LOGGER.error("Database initialization timed out after 30s")
    except Exception as e:
        LOGGER.error(f"Database initialization failed: {e}", exc_info=True)

    yield

    # Shutdown
    LOGGER.info("Shutting down application")
    for name, closer in (
        ("vision client", app.state.vision_client.aclose),
        ("storage client", app.state.storage.aclose),
        ("JWKS client", jwks.aclose),
    ):
        try:
            await closer()
        except Exception as e:
            LOGGER.error(f"Error closing {name}", exc_info=True, extra={"error": str(e)})

    try:
        await close_database()
    except Exception as e:
        LOGGER.error("Error closing database", exc_info=True, extra={"error": str(e)})


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Sugarcane receipt OCR ingestion service",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)


@app.middleware("http")
async def add_correlation_id(request: Request, call_next):
    correlation_id = request.headers.get("X-Correlation-ID", str(uuid4()))
    request.state.correlation_id = correlation_id
    response = await call_next(request)
    response.headers["X-Correlation-ID"] = correlation_id
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-ID"],
)

# Include routers
app.include_router(api_router, prefix=settings.api_v1_prefix)
app.include_router(health.router, prefix="/health", tags=["Health"])


@app.get(
    "/",
    response_model=RootResponse,
    tags=["Root"],
    summary="Root endpoint",
    description="Get basic information about the API",
    operation_id="get_public_root_metadata",
)
async def root() -> RootResponse:
    """Root endpoint.

    Returns:
        RootResponse: Basic API information
    """
    return RootResponse(
        message="Server is running",
        version=settings.app_version,
        docs="/docs",
        health="/health",
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "sugarop.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
