"""
Health check endpoints.
Used for monitoring, deployment readiness checks, and basic connectivity tests.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from citizen_connect.core.container import ServiceContainer
from citizen_connect.core.dependencies import get_container
from citizen_connect.core.errors import StoreUnavailable
from citizen_connect.models.base import envelope, error_envelope
from citizen_connect.utils.clock import utc_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check(container: ServiceContainer = Depends(get_container)):
    """
    Basic health check endpoint.
    Returns 200 if service is running.
    """
    settings = container.settings
    return envelope(
        status="healthy",
        service=settings.APP_NAME,
        version=settings.APP_VERSION,
        timestamp=utc_now().isoformat(),
    )


@router.get("/db")
def database_health(container: ServiceContainer = Depends(get_container)):
    """
    Database connectivity check.
    Runs a lightweight read against both stores; 503 if either fails.
    """
    backend = "memory" if container.settings.USE_MOCK_DB else "firestore"
    try:
        container.credential_store.ping()
        container.request_store.ping()
    except StoreUnavailable as e:
        logger.warning(f"Database health check failed: {e.message}")
        return JSONResponse(
            status_code=e.status_code,
            content=error_envelope(e.message, database=backend, connected=False),
        )

    return envelope(
        status="healthy",
        database=backend,
        connected=True,
        timestamp=utc_now().isoformat(),
    )
