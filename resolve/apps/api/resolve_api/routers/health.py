"""Health check endpoints."""

import logging

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.orm import Session

from resolve_api import __version__
from resolve_api.config import env
from resolve_api.db.redis_client import RedisClient
from resolve_api.db.session import get_db

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    services: dict[str, str]


def check_database(db: Session) -> str:
    """Check database connectivity.

    Returns:
        str: "up" if healthy, error message otherwise
    """
    try:
        db.execute(text("SELECT 1"))
        return "up"
    except Exception as e:
        logger.error(
            "health.database.down",
            extra={"event": "health.database.down", "error_type": type(e).__name__},
        )
        return f"down: {str(e)[:50]}"


def check_redis() -> str:
    """Check Redis connectivity.

    Returns:
        str: "up" if healthy, error message otherwise
    """
    try:
        RedisClient.get_client().ping()
        return "up"
    except Exception as e:
        logger.error(
            "health.redis.down",
            extra={"event": "health.redis.down", "error_type": type(e).__name__},
        )
        return f"down: {str(e)[:50]}"


def _configured(flag: bool) -> str:
    return "configured" if flag else "not_configured"


def check_stripe() -> str:
    try:
        env.get_stripe_secret_key()
    except ValueError:
        return _configured(False)
    return _configured(True)


@router.get("/health", response_model=HealthResponse)
async def health_check(response: Response, db: Session = Depends(get_db)) -> HealthResponse:
    """
    Health check endpoint.

    Reports dependency status and which integrations are configured.
    Returns 503 only when the database is down; Redis and the external
    integrations degrade individual features, not the whole API.
    """
    services = {
        "api": "up",
        "database": check_database(db),
        "redis": check_redis(),
        "openai": _configured(bool(env.get_openai_api_key())),
        "stripe": check_stripe(),
        "email": _configured(bool(env.get_ses_from_email())),
    }

    if services["database"] != "up":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="unhealthy", version=__version__, services=services)

    degraded = services["redis"] != "up"
    return HealthResponse(
        status="degraded" if degraded else "healthy",
        version=__version__,
        services=services,
    )


@router.get("/readyz", response_model=HealthResponse)
async def readiness_check(response: Response, db: Session = Depends(get_db)) -> HealthResponse:
    """
    Readiness check endpoint.

    Returns 503 if the database is unreachable.
    """
    services = {"api": "up", "database": check_database(db)}

    if services["database"] != "up":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="not_ready", version=__version__, services=services)

    return HealthResponse(status="ready", version=__version__, services=services)
