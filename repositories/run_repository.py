"""
Async repository over pipeline runs and their step executions.

Unlike the person repository, run bookkeeping commits immediately: a run's
status must be visible to the control surface while its steps execute.
"""

from typing import List, Optional, Dict, Any
from datetime import datetime
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from models.base import RunStatus
from models.pipeline_run import PipelineRun, StepExecution
from schemas.pipeline import StepResult
import uuid


class RunRepository:
    """Create, complete and query pipeline runs"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def create(self, parameters: Optional[Dict[str, Any]] = None) -> PipelineRun:
        run = PipelineRun(
            run_id=str(uuid.uuid4()),
            status=RunStatus.RUNNING,
            parameters=parameters or {},
            started_at=datetime.utcnow(),
        )
        self.db.add(run)
        await self.db.commit()
        await self.db.refresh(run)
        return run

    async def add_step(self, run: PipelineRun, result: StepResult) -> StepExecution:
        # Chunk rollbacks on the shared session expire the run instance
        await self.db.refresh(run)
        step = StepExecution(
            pipeline_run_id=run.id,
            step_name=result.step_name,
            status=result.status,
            read_count=result.read_count,
            write_count=result.write_count,
            filter_count=result.filter_count,
            skip_count=result.skip_count,
            read_skip_count=result.read_skip_count,
            process_skip_count=result.process_skip_count,
            write_skip_count=result.write_skip_count,
            retry_count=result.retry_count,
            commit_count=result.commit_count,
            rollback_count=result.rollback_count,
            inserted_count=result.inserted_count,
            updated_count=result.updated_count,
            written_count=result.written_count,
            started_at=result.started_at,
            ended_at=result.ended_at,
            duration_ms=result.duration_ms,
            skip_summary=result.skip_summary,
            execution_context=result.execution_context,
            error_message=result.error_message,
        )
        self.db.add(step)
        await self.db.commit()
        return step

    async def complete(
        self,
        run: PipelineRun,
        status: RunStatus,
        error_message: Optional[str] = None
    ) -> PipelineRun:
        await self.db.refresh(run)
        run.status = status
        run.completed_at = datetime.utcnow()
        run.duration_seconds = (run.completed_at - run.started_at).total_seconds()
        run.error_message = error_message
        await self.db.commit()
        return run

    async def get(self, run_id: str) -> Optional[PipelineRun]:
        result = await self.db.execute(
            select(PipelineRun).where(PipelineRun.run_id == run_id)
        )
        return result.scalar_one_or_none()

    async def list_recent(self, limit: int = 100) -> List[PipelineRun]:
        result = await self.db.execute(
            select(PipelineRun)
            .order_by(PipelineRun.started_at.desc(), PipelineRun.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
