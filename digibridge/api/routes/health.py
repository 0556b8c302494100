"""
Health Check Endpoints.

Provides health status for the API and its dependencies.
"""
import os
import time
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from ..models import HealthStatus
from ..deps import get_store, get_redis_client
from ...database.user_store import UserStore
from ...errors import StorageError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["Health"])

# Version from environment or default
VERSION = os.getenv("APP_VERSION", "1.0.0")


@router.get("", response_model=HealthStatus)
def health_check(store: UserStore = Depends(get_store)):
    """
    Basic health check endpoint.

    Returns overall system status.
    """
    services = {}
    overall_healthy = True

    # Check user store
    try:
        start = time.time()
        store.ping()
        latency = (time.time() - start) * 1000
        services["user_store"] = f"healthy ({latency:.1f}ms)"
    except StorageError as e:
        services["user_store"] = f"unhealthy: {e}"
        overall_healthy = False

    # Redis failure is not critical - rate limiting and replay checks fall back to memory
    redis_client = get_redis_client()
    if redis_client is not None:
        services["redis"] = "healthy"
    else:
        services["redis"] = "fallback_mode (in-memory)"

    return HealthStatus(
        status="healthy" if overall_healthy else "unhealthy",
        version=VERSION,
        services=services,
        timestamp=datetime.now(timezone.utc),
    )
