import time

import structlog
from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

import tutorfeed.core.database as db_module
from tutorfeed.schemas.health import HealthResponse

logger = structlog.get_logger()

router = APIRouter()

_start_time = time.monotonic()


@router.get("/api/health")
async def health_check() -> HealthResponse:
    """Liveness plus database reachability. No tenant header required."""
    try:
        async with db_module.async_session() as session:
            await session.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as exc:
        logger.warning("health_database_unreachable", error=str(exc))
        db_ok = False

    return HealthResponse(
        status="ok" if db_ok else "degraded",
        database_status="connected" if db_ok else "disconnected",
        uptime_seconds=round(time.monotonic() - _start_time, 1),
    )
