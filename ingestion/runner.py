# ============================================================================
# File: ingestion/runner.py
# Description: Pipeline orchestrator: ingest → enrich → export under one run
# ============================================================================
"""
Pipeline Runner - drives the three steps of a person batch run.

Steps:
1. ingest  - CSV → upsert (strict policy)
2. enrich  - stored persons of the run → scenario processor →
             age calculation + upsert (skip/retry tolerant policy),
             followed by the end-of-enrich sweep
3. export  - stored persons of the run with an age → output file

Every step receives the same run identifier. The run stops at the first
step that does not complete; each executed step is persisted as a
StepExecution next to the PipelineRun.
"""

from typing import Optional
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.database import session_transaction
from core.exceptions import PipelineConfigurationError
from ingestion.chunk_engine import ChunkEngine, StepDefinition
from ingestion.enrichment import AgeCalculationService
from ingestion.fault_policy import FaultPolicy, RetryExhaustedAction
from ingestion.listeners import RunLoggingListener
from ingestion.processors import ScenarioProcessor
from ingestion.readers.csv_reader import CsvPersonReader
from ingestion.readers.person_reader import PersonStoreReader
from ingestion.step_context import ItemStage, StepEvent, StepEventType
from ingestion.writers.enrich_writer import EnrichThenUpsertWriter
from ingestion.writers.file_writer import PersonFileWriter
from ingestion.writers.upsert_writer import UpsertPersonWriter
from models.base import RunStatus, StepStatus
from models.pipeline_run import PipelineRun
from repositories.person_repository import PersonRepository
from repositories.run_repository import RunRepository
from schemas.pipeline import RunParameters, RunResult

logger = logging.getLogger(__name__)

INGEST_STEP = "ingest"
ENRICH_STEP = "enrich"
EXPORT_STEP = "export"


class PipelineRunner:
    """
    Pipeline Orchestrator

    Responsibilities:
    - Create the run and its identifier
    - Build and execute the three steps in order
    - Reject persons skipped during enrichment
    - Record per-step statistics and the final run status

    Chunk sizes, limits and the output path default to the settings and
    can be overridden per runner (tests, scripts).
    """

    def __init__(
        self,
        db_session: AsyncSession,
        service: Optional[AgeCalculationService] = None,
        stop_event: Optional[asyncio.Event] = None,
        output_path: Optional[str] = None,
        ingest_chunk_size: Optional[int] = None,
        enrich_chunk_size: Optional[int] = None,
        export_chunk_size: Optional[int] = None,
        skip_limit: Optional[int] = None,
        retry_limit: Optional[int] = None,
        retry_exhausted: RetryExhaustedAction = RetryExhaustedAction.FAIL
    ):
        self.db = db_session
        self.persons = PersonRepository(db_session)
        self.runs = RunRepository(db_session)
        self.service = service or AgeCalculationService()
        self.stop_event = stop_event or asyncio.Event()
        self.output_path = output_path or settings.OUTPUT_FILE_PATH
        self.ingest_chunk_size = settings.INGEST_CHUNK_SIZE if ingest_chunk_size is None else ingest_chunk_size
        self.enrich_chunk_size = settings.ENRICH_CHUNK_SIZE if enrich_chunk_size is None else enrich_chunk_size
        self.export_chunk_size = settings.EXPORT_CHUNK_SIZE if export_chunk_size is None else export_chunk_size
        self.skip_limit = settings.SKIP_LIMIT if skip_limit is None else skip_limit
        self.retry_limit = settings.RETRY_LIMIT if retry_limit is None else retry_limit
        self.retry_exhausted = retry_exhausted
        self.engine = ChunkEngine()
        self.listener = RunLoggingListener()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self, parameters: Optional[RunParameters] = None) -> RunResult:
        """Create a run and execute it to completion."""
        parameters = parameters or RunParameters()
        run = await self.start(parameters)
        return await self.execute(run, parameters)

    async def start(self, parameters: RunParameters) -> PipelineRun:
        """
        Validate the configuration and create the RUNNING run record.

        Raises:
            PipelineConfigurationError: the run cannot be executed as configured
        """
        self.validate()
        run = await self.runs.create(parameters.model_dump(mode="json"))
        logger.info(f"Created pipeline run {run.run_id}")
        return run

    def validate(self) -> None:
        if self.enrich_chunk_size > self.service.max_batch_size:
            raise PipelineConfigurationError(
                "Enrich chunk size exceeds the age calculation batch limit",
                context={
                    "enrich_chunk_size": self.enrich_chunk_size,
                    "max_batch_size": self.service.max_batch_size,
                }
            )
        for name in ("ingest_chunk_size", "enrich_chunk_size", "export_chunk_size"):
            if getattr(self, name) < 1:
                raise PipelineConfigurationError(
                    f"{name} must be >= 1",
                    context={name: getattr(self, name)}
                )

    async def execute(self, run: PipelineRun, parameters: RunParameters) -> RunResult:
        """Execute the steps of an already created run."""
        run_id = run.run_id
        self.listener.before_run(run_id, parameters)

        steps = []
        rejected_by_sweep = 0
        status = RunStatus.COMPLETED
        error_message = None

        builders = (
            lambda: self._ingest_step(parameters),
            lambda: self._enrich_step(run_id, parameters),
            lambda: self._export_step(run_id),
        )

        try:
            for build in builders:
                result = await self.engine.run_step(build(), run_id=run_id)
                steps.append(result)
                if result.status != StepStatus.COMPLETED:
                    # Nothing a failed step left on the session may be committed
                    await self.db.rollback()
                await self.runs.add_step(run, result)

                if result.status != StepStatus.COMPLETED:
                    status = RunStatus.STOPPED if result.status == StepStatus.STOPPED else RunStatus.FAILED
                    error_message = result.error_message
                    break

                if result.step_name == ENRICH_STEP:
                    rejected_by_sweep = await self._sweep(run_id)

        except Exception as e:
            logger.error(f"Pipeline run {run_id} failed outside a step: {e}")
            await self.db.rollback()
            status = RunStatus.FAILED
            error_message = getattr(e, "message", None) or str(e)

        await self.runs.complete(run, status, error_message)

        result = RunResult(
            run_id=run_id,
            status=status,
            steps=steps,
            started_at=run.started_at,
            completed_at=run.completed_at,
            duration_seconds=run.duration_seconds,
            rejected_by_sweep=rejected_by_sweep,
            output_file=self.output_path if status == RunStatus.COMPLETED else None,
            error_message=error_message,
        )
        self.listener.after_run(result)
        return result

    # ------------------------------------------------------------------
    # Step construction
    # ------------------------------------------------------------------

    def _ingest_step(self, parameters: RunParameters) -> StepDefinition:
        upsert = UpsertPersonWriter(self.persons)
        return StepDefinition(
            name=INGEST_STEP,
            reader=CsvPersonReader(parameters.csv_path or settings.DEFAULT_CSV_PATH),
            writer=upsert,
            chunk_size=self.ingest_chunk_size,
            policy=FaultPolicy.strict(),
            observers=[upsert.observe],
            transaction=session_transaction(self.db),
            should_stop=self.stop_event.is_set,
        )

    def _enrich_step(self, run_id: str, parameters: RunParameters) -> StepDefinition:
        upsert = UpsertPersonWriter(self.persons)
        return StepDefinition(
            name=ENRICH_STEP,
            reader=PersonStoreReader(self.persons, run_id=run_id),
            processor=ScenarioProcessor(parameters),
            writer=EnrichThenUpsertWriter(self.service, upsert),
            chunk_size=self.enrich_chunk_size,
            policy=FaultPolicy(
                skip_limit=self.skip_limit,
                retry_limit=self.retry_limit,
                retry_exhausted=self.retry_exhausted,
            ),
            observers=[self._reject_skipped, upsert.observe],
            transaction=session_transaction(self.db),
            should_stop=self.stop_event.is_set,
        )

    def _export_step(self, run_id: str) -> StepDefinition:
        return StepDefinition(
            name=EXPORT_STEP,
            reader=PersonStoreReader(self.persons, run_id=run_id, require_age=True),
            writer=PersonFileWriter(self.output_path),
            chunk_size=self.export_chunk_size,
            policy=FaultPolicy.strict(),
            should_stop=self.stop_event.is_set,
        )

    # ------------------------------------------------------------------
    # Rejection
    # ------------------------------------------------------------------

    async def _reject_skipped(self, event: StepEvent) -> None:
        """Persons skipped while processing become REJECTED, inside the chunk's transaction."""
        if event.type != StepEventType.ITEM_SKIPPED or event.stage != ItemStage.PROCESS:
            return
        email = getattr(event.item, "email", None)
        if email and await self.persons.mark_rejected(email):
            logger.info(f"Marked {email} as REJECTED")

    async def _sweep(self, run_id: str) -> int:
        async with session_transaction(self.db)():
            rejected = await self.persons.mark_all_non_processed_as_rejected(run_id)
        if rejected:
            logger.warning(f"End-of-enrich sweep rejected {rejected} persons of run {run_id}")
        return rejected
