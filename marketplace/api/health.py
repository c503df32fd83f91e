"""Health check endpoints.

Provides endpoints for monitoring service health and readiness.
"""

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

router = APIRouter()

logger = structlog.get_logger()


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    service: str
    version: str
    database: str


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Check service health, including database connectivity.

    Returns:
        Health status with service name, version and database state.
    """
    database = "ok"
    try:
        async with request.app.state.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("Database health check failed", error=str(e))
        database = "unavailable"

    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        service="marketplace-orders",
        version=request.app.state.settings.api_version,
        database=database,
    )
