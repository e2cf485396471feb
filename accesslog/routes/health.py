"""
accesslog — Health Check Route
===============================

What:  Liveness endpoint for the demo application.
Why:   Load balancers probe it every few seconds; it is the usual candidate
       for ACCESSLOG_SKIP_PATHS.
"""

import logging
import time

from fastapi import APIRouter
from pydantic import BaseModel, Field

from accesslog import __version__

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Initialized once when the module loads
_start_time = time.time()


class HealthResponse(BaseModel):
    """Returned by GET /health."""

    status: str = Field(description="Overall service status")
    version: str = Field(description="Application version")
    uptime_seconds: float = Field(description="Seconds since service started")


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=__version__,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
