"""
Ebookshelf Backend: Health Check Route
========================================

What:  GET /health for container probes and load balancers.
How:   Runs `SELECT 1` on the engine. The service is "healthy" only when
       the database answers; otherwise it returns 503 with "unhealthy".
       The blob store is not probed.
"""

import logging
import time

from fastapi import APIRouter, Response
from sqlalchemy import text

from ebookshelf import __version__
from ebookshelf.database import get_engine
from ebookshelf.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(response: Response) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        response.status_code = 503
        logger.warning("Health check: database unreachable: %s", str(e))

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
