"""
Health Check Routes

- Basic service health (/api/health)
- Component health (/api/health/detailed)
- Readiness probe (/api/health/ready)
- Liveness probe (/api/health/live)
"""

import logging
import time
from typing import Dict, Any, Optional
from datetime import datetime

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from helpdesk.database import get_client as get_mongo_client
from helpdesk.config import settings


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["health"])

SERVICE_START_TIME = time.time()
SERVICE_VERSION = "1.0.0"


class HealthStatus(BaseModel):
    """Health check response model"""
    status: str  # "healthy" | "degraded" | "unhealthy"
    timestamp: str
    uptime_seconds: float
    version: str
    environment: Optional[str] = None
    checks: Optional[Dict[str, Any]] = None


class ComponentHealth(BaseModel):
    """Individual component health"""
    status: str  # "up" | "down" | "degraded" | "disabled"
    response_time_ms: Optional[float] = None
    message: Optional[str] = None


def _health(overall: str, checks: Optional[Dict[str, Any]] = None) -> HealthStatus:
    return HealthStatus(
        status=overall,
        timestamp=datetime.utcnow().isoformat(),
        uptime_seconds=round(time.time() - SERVICE_START_TIME, 2),
        version=SERVICE_VERSION,
        environment=settings.environment,
        checks=checks,
    )


@router.get("/health", response_model=HealthStatus)
async def health_check() -> HealthStatus:
    """Returns 200 while the process is serving requests"""
    return _health("healthy")


@router.get("/health/detailed", response_model=HealthStatus)
async def detailed_health_check(response: Response) -> HealthStatus:
    """
    Component status: MongoDB (required) and email notifications (optional)

    Returns:
        200: Healthy or degraded
        503: MongoDB unreachable
    """
    mongo_health = await _check_mongodb()
    notifier_health = _check_notifications()

    overall = "healthy"
    if mongo_health.status == "down":
        overall = "unhealthy"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif mongo_health.status == "degraded":
        overall = "degraded"

    return _health(overall, {
        "mongodb": mongo_health.model_dump(),
        "notifications": notifier_health.model_dump(),
    })


@router.get("/health/ready")
async def readiness_check(response: Response) -> Dict[str, str]:
    """
    Readiness probe

    Returns:
        200: Ready to serve traffic
        503: MongoDB unavailable
    """
    mongo_health = await _check_mongodb()

    if mongo_health.status == "down":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {
            "status": "not_ready",
            "reason": "MongoDB unavailable"
        }

    return {"status": "ready"}


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    return {"status": "alive"}


async def _check_mongodb() -> ComponentHealth:
    """Ping MongoDB and time the round trip"""
    start_time = time.time()

    try:
        client = get_mongo_client()
        await client.admin.command('ping')
    except Exception as e:
        logger.error(f"MongoDB health check failed: {e}")
        return ComponentHealth(
            status="down",
            response_time_ms=round((time.time() - start_time) * 1000, 2),
            message="MongoDB unreachable",
        )

    response_time = round((time.time() - start_time) * 1000, 2)
    if response_time > 500:
        return ComponentHealth(status="degraded", response_time_ms=response_time, message="High latency")

    return ComponentHealth(status="up", response_time_ms=response_time)


def _check_notifications() -> ComponentHealth:
    if not settings.notifications_enabled:
        return ComponentHealth(status="disabled")
    if not (settings.smtp_from or settings.smtp_username):
        return ComponentHealth(status="degraded", message="No sender address configured")
    return ComponentHealth(status="up")
