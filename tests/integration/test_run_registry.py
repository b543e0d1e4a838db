"""
Background runs through the run registry
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock
from core.exceptions import PipelineConfigurationError
from ingestion.registry import RunRegistry
from ingestion.runner import PipelineRunner
from models.base import RunStatus
from repositories.run_repository import RunRepository
from schemas.pipeline import RunParameters


@pytest.fixture
def registry(session_factory, age_service, output_path):
    """Registry over the test database with latency-free runners"""
    return RunRegistry(
        session_factory=session_factory,
        runner_factory=lambda session, stop_event: PipelineRunner(
            session, service=age_service, stop_event=stop_event, output_path=output_path
        ),
    )


async def persisted_status(session_factory, run_id: str) -> RunStatus:
    async with session_factory() as session:
        run = await RunRepository(session).get(run_id)
        return run.status


@pytest.mark.asyncio
async def test_launch_runs_in_background_until_completed(registry, session_factory, sample_csv):
    run_id = await registry.launch(RunParameters(csv_path=sample_csv))

    assert registry.active_run_ids() == [run_id]

    result = await registry.wait(run_id)
    await asyncio.sleep(0)

    assert result.status == RunStatus.COMPLETED
    assert await persisted_status(session_factory, run_id) == RunStatus.COMPLETED
    # Finished runs are dropped from the registry
    assert registry.active_run_ids() == []
    assert registry.get(run_id) is None
    assert await registry.wait(run_id) is None


@pytest.mark.asyncio
async def test_request_stop_ends_run_as_stopped(registry, session_factory, sample_csv):
    run_id = await registry.launch(RunParameters(csv_path=sample_csv))

    assert registry.request_stop(run_id) is True
    result = await registry.wait(run_id)

    assert result.status == RunStatus.STOPPED
    assert await persisted_status(session_factory, run_id) == RunStatus.STOPPED


@pytest.mark.asyncio
async def test_request_stop_of_unknown_run(registry):
    assert registry.request_stop("does-not-exist") is False
    assert registry.request_stop_all() == []


@pytest.mark.asyncio
async def test_shutdown_stops_active_runs(registry, session_factory, sample_csv):
    run_id = await registry.launch(RunParameters(csv_path=sample_csv))

    await registry.shutdown()

    assert registry.active_run_ids() == []
    assert await persisted_status(session_factory, run_id) == RunStatus.STOPPED


@pytest.mark.asyncio
async def test_configuration_error_is_raised_before_any_task(session_factory):
    session = MagicMock()
    session.close = AsyncMock()
    runner = MagicMock()
    runner.start = AsyncMock(side_effect=PipelineConfigurationError("Enrich chunk size exceeds the age calculation batch limit"))
    registry = RunRegistry(session_factory=lambda: session, runner_factory=lambda s, e: runner)

    with pytest.raises(PipelineConfigurationError):
        await registry.launch(RunParameters())

    session.close.assert_awaited_once()
    assert registry.active_run_ids() == []


@pytest.mark.asyncio
async def test_crashed_run_is_recorded_as_failed(registry, session_factory, sample_csv, monkeypatch):
    async def broken_sweep(self, run_id):
        raise RuntimeError("sweep unavailable")

    monkeypatch.setattr(PipelineRunner, "_sweep", broken_sweep)

    run_id = await registry.launch(RunParameters(csv_path=sample_csv))
    result = await registry.wait(run_id)

    assert result.status == RunStatus.FAILED
    assert await persisted_status(session_factory, run_id) == RunStatus.FAILED
