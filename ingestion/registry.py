"""
In-process registry of active pipeline runs.

Each run executes as its own asyncio task with its own database session.
A stop request sets the run's stop event, which the chunk engine checks at
the next chunk boundary.
"""

from datetime import datetime
from typing import Callable, Dict, List, Optional
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from core.database import async_session_maker
from ingestion.runner import PipelineRunner
from models.pipeline_run import PipelineRun
from schemas.pipeline import RunParameters, RunResult

logger = logging.getLogger(__name__)

RunnerFactory = Callable[[AsyncSession, asyncio.Event], PipelineRunner]


class RunHandle:
    """A launched run: its identifier, stop event and task."""

    def __init__(self, run_id: str, parameters: RunParameters, stop_event: asyncio.Event):
        self.run_id = run_id
        self.parameters = parameters
        self.stop_event = stop_event
        self.started_at = datetime.utcnow()
        self.task: Optional["asyncio.Task[Optional[RunResult]]"] = None

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()


class RunRegistry:
    """
    Launch, stop and track background runs.

    Args:
        session_factory: Creates one session per run
        runner_factory: Builds the runner for a session and stop event
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] = async_session_maker,
        runner_factory: Optional[RunnerFactory] = None
    ):
        self.session_factory = session_factory
        self.runner_factory = runner_factory or (
            lambda session, stop_event: PipelineRunner(session, stop_event=stop_event)
        )
        self._runs: Dict[str, RunHandle] = {}

    async def launch(self, parameters: RunParameters) -> str:
        """
        Create the run record and start executing it in the background.

        Returns the run identifier as soon as the run exists. Configuration
        errors are raised here, before any task is created.
        """
        stop_event = asyncio.Event()
        session = self.session_factory()
        runner = self.runner_factory(session, stop_event)

        try:
            run = await runner.start(parameters)
        except Exception:
            await session.close()
            raise

        handle = RunHandle(run.run_id, parameters, stop_event)
        handle.task = asyncio.create_task(self._execute(session, runner, run, parameters))
        # Finished runs live on in the database only
        handle.task.add_done_callback(lambda _: self._runs.pop(handle.run_id, None))
        self._runs[run.run_id] = handle
        logger.info(f"Launched pipeline run {run.run_id}")
        return run.run_id

    async def _execute(
        self,
        session: AsyncSession,
        runner: PipelineRunner,
        run: PipelineRun,
        parameters: RunParameters
    ) -> Optional[RunResult]:
        try:
            return await runner.execute(run, parameters)
        except Exception:
            logger.exception(f"Pipeline run {run.run_id} crashed")
            return None
        finally:
            await session.close()

    def request_stop(self, run_id: str) -> bool:
        handle = self._runs.get(run_id)
        if handle is None or not handle.running:
            return False
        handle.stop_event.set()
        logger.info(f"Stop requested for pipeline run {run_id}")
        return True

    def request_stop_all(self) -> List[str]:
        """Signal every active run; returns the identifiers signalled."""
        return [run_id for run_id in self.active_run_ids() if self.request_stop(run_id)]

    def active_run_ids(self) -> List[str]:
        return [run_id for run_id, handle in self._runs.items() if handle.running]

    def get(self, run_id: str) -> Optional[RunHandle]:
        return self._runs.get(run_id)

    async def wait(self, run_id: str) -> Optional[RunResult]:
        """Result of an active run once it ends; None for unknown or already finished runs."""
        handle = self._runs.get(run_id)
        if handle is None or handle.task is None:
            return None
        return await handle.task

    async def shutdown(self) -> None:
        """Stop all active runs and wait for them to reach a chunk boundary."""
        stopped = self.request_stop_all()
        tasks = [self._runs[run_id].task for run_id in stopped]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._runs.clear()
