"""Health check API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from sugarop.api.dependencies import get_health_service
from sugarop.schemas.health import HealthCheckResponse, HealthReport
from sugarop.services.health_service import HealthService

router = APIRouter()


@router.get(
    "",
    response_model=HealthCheckResponse,
    summary="Health check endpoint",
    description="Check if the service is running and the database is reachable",
    operation_id="get_service_health_status",
)
async def health_check(request: Request) -> HealthCheckResponse:
    """Health check endpoint."""
    settings = request.app.state.settings
    db_health = await request.app.state.db_client.health_check()

    return HealthCheckResponse(
        status="healthy" if db_health["status"] == "healthy" else "degraded",
        version=settings.app_version,
        service=settings.app_name,
        database=db_health["status"],
    )


@router.get(
    "/detailed",
    response_model=HealthReport,
    summary="Detailed health check",
    description="Probe database, storage and AI configuration in parallel",
    operation_id="get_detailed_health_report",
)
async def detailed_health_check(
    health_service: Annotated[HealthService, Depends(get_health_service)],
) -> HealthReport:
    return await health_service.run()
