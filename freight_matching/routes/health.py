from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from datetime import datetime
import logging

from ..database import check_database_health, utcnow
from ..utils.redis_client import redis_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


class HealthResponse(BaseModel):
    status: str
    service: str
    timestamp: datetime
    dependencies: dict


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health_check(response: Response):
    """Health check endpoint for Kubernetes probes.

    The database is required; Redis only carries best-effort notifications,
    so a Redis outage is reported as "degraded" but still answers 200.
    """
    try:
        db_healthy = await check_database_health()
        redis_healthy = await redis_client.health_check()

        if not db_healthy:
            overall_status = "unhealthy"
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        elif not redis_healthy:
            overall_status = "degraded"
        else:
            overall_status = "healthy"

        return HealthResponse(
            status=overall_status,
            service="freight-matching",
            timestamp=utcnow(),
            dependencies={
                "database": "connected" if db_healthy else "disconnected",
                "redis": "connected" if redis_healthy else "disconnected"
            }
        )

    except Exception as e:
        logger.error(f"Health check failed: {e}")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="unhealthy",
            service="freight-matching",
            timestamp=utcnow(),
            dependencies={
                "database": "error",
                "redis": "error"
            }
        )
