"""
Run control endpoints: start, stop, restart, status, executions, metrics
"""

from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db, get_registry
from core.config import settings
from core.exceptions import PipelineConfigurationError
from ingestion.registry import RunRegistry
from models.base import RunStatus
from repositories.run_repository import RunRepository
from schemas.api import (
    ErrorResponse,
    JobMetricsResponse,
    JobStartResponse,
    JobStatusResponse,
    JobStopResponse,
    PipelineRunResponse,
)
from schemas.pipeline import RunParameters

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/jobs", tags=["Jobs"])

METRICS_WINDOW = 100


def default_parameters() -> RunParameters:
    """Run parameters used when a start request has no body"""
    return RunParameters(
        scenario=settings.DEFAULT_SCENARIO,
        skip_every=settings.DEFAULT_SKIP_EVERY,
        retry_attempts=settings.DEFAULT_RETRY_ATTEMPTS,
        csv_path=settings.DEFAULT_CSV_PATH,
    )


async def _launch(registry: RunRegistry, parameters: RunParameters, request_id: str):
    try:
        run_id = await registry.launch(parameters)
    except PipelineConfigurationError as e:
        logger.error(f"[{request_id}] Rejected run configuration: {e}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=jsonable_encoder(ErrorResponse(error="Invalid run configuration", detail=e.message)),
        )

    logger.info(f"[{request_id}] Pipeline run {run_id} started ({parameters.scenario.value})")
    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content=jsonable_encoder(
            JobStartResponse(run_id=run_id, message=f"Job started with run ID: {run_id}")
        ),
    )


@router.post(
    "/start",
    response_model=JobStartResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={400: {"model": ErrorResponse}},
)
async def start_job(
    request: Request,
    parameters: Optional[RunParameters] = None,
    registry: RunRegistry = Depends(get_registry)
):
    """
    Start a pipeline run in the background.

    The body is optional; missing parameters fall back to the configured
    defaults. Returns as soon as the run record exists.
    """
    request_id = getattr(request.state, "request_id", "-")
    return await _launch(registry, parameters or default_parameters(), request_id)


@router.post("/stop", response_model=JobStopResponse)
async def stop_jobs(request: Request, registry: RunRegistry = Depends(get_registry)):
    """Ask every active run to stop at its next chunk boundary."""
    request_id = getattr(request.state, "request_id", "-")
    stopped = registry.request_stop_all()

    if not stopped:
        logger.info(f"[{request_id}] No running jobs to stop")
        return JobStopResponse(message="No running jobs found to stop")

    logger.info(f"[{request_id}] Stop requested for {len(stopped)} run(s)")
    return JobStopResponse(stopped_run_ids=stopped, message=f"Stopped {len(stopped)} running job(s)")


@router.post(
    "/restart",
    response_model=JobStartResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={400: {"model": ErrorResponse}},
)
async def restart_job(
    request: Request,
    db: AsyncSession = Depends(get_db),
    registry: RunRegistry = Depends(get_registry)
):
    """Launch a new run with the parameters of the most recent run."""
    request_id = getattr(request.state, "request_id", "-")
    recent = await RunRepository(db).list_recent(limit=1)

    if recent and recent[0].parameters:
        parameters = RunParameters(**recent[0].parameters)
    else:
        parameters = default_parameters()

    return await _launch(registry, parameters, request_id)


@router.get("/status", response_model=JobStatusResponse)
async def job_status(
    db: AsyncSession = Depends(get_db),
    registry: RunRegistry = Depends(get_registry)
):
    recent = await RunRepository(db).list_recent(limit=1)
    active = registry.active_run_ids()

    if not recent:
        return JobStatusResponse(active_run_ids=active, message="No job executions found")

    latest = PipelineRunResponse.model_validate(recent[0])
    return JobStatusResponse(
        active_run_ids=active,
        latest=latest,
        message=f"Latest run {latest.run_id}: {latest.status}",
    )


@router.get("/executions", response_model=List[PipelineRunResponse])
async def list_executions(
    limit: int = Query(20, ge=1, le=100, description="Number of recent runs to return"),
    db: AsyncSession = Depends(get_db)
):
    """Recent runs with their step statistics, newest first."""
    runs = await RunRepository(db).list_recent(limit=limit)
    return [PipelineRunResponse.model_validate(run) for run in runs]


@router.get("/executions/{run_id}", response_model=PipelineRunResponse)
async def get_execution(run_id: str, db: AsyncSession = Depends(get_db)):
    run = await RunRepository(db).get(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail=f"Run {run_id} not found")
    return PipelineRunResponse.model_validate(run)


@router.get("/metrics", response_model=JobMetricsResponse)
async def job_metrics(db: AsyncSession = Depends(get_db)):
    """Success rate and average duration over the most recent runs."""
    runs = await RunRepository(db).list_recent(limit=METRICS_WINDOW)

    total = len(runs)
    successful = sum(1 for run in runs if run.status == RunStatus.COMPLETED)
    failed = sum(1 for run in runs if run.status == RunStatus.FAILED)
    durations = [run.duration_seconds for run in runs if run.duration_seconds is not None]
    avg_duration_ms = round(sum(durations) / len(durations) * 1000) if durations else 0

    metrics = JobMetricsResponse(
        total_executions=total,
        successful_executions=successful,
        failed_executions=failed,
        avg_duration_ms=avg_duration_ms,
        success_rate=round(successful / total * 100, 1) if total else 0.0,
    )
    logger.info(f"Job metrics: {metrics.model_dump()}")
    return metrics
