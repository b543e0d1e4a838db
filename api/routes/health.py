"""
Health check endpoint with database and pipeline status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from api.dependencies import get_db, get_registry
from ingestion.registry import RunRegistry
from models.base import RunStatus
from repositories.run_repository import RunRepository
from schemas.api import HealthCheckResponse
from datetime import datetime
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    registry: RunRegistry = Depends(get_registry)
):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Number of active pipeline runs
    - Status of the most recent run

    A failed most recent run reports "degraded"; no database reports "unhealthy".
    """

    # Check database connectivity
    db_connected = False

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except Exception as e:
        logger.error(f"Database connection failed: {str(e)}")

    last_run = None
    if db_connected:
        try:
            recent = await RunRepository(db).list_recent(limit=1)
            last_run = recent[0] if recent else None
        except Exception as e:
            logger.error(f"Failed to fetch latest pipeline run: {str(e)}")

    if not db_connected:
        overall = "unhealthy"
    elif last_run is not None and last_run.status == RunStatus.FAILED:
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthCheckResponse(
        status=overall,
        timestamp=datetime.utcnow(),
        database_connected=db_connected,
        active_runs=len(registry.active_run_ids()),
        last_run_status=last_run.status if last_run else None,
        last_run_at=last_run.started_at if last_run else None,
    )
