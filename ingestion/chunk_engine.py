# ============================================================================
# File: ingestion/chunk_engine.py
# Description: Chunk-oriented step execution with bounded skip/retry
# ============================================================================
"""
Chunk Engine - drives one step: read → process → write, one chunk at a time.

This module provides:
- Fixed-size chunking of a reader's items
- Per-item processing with skip/retry decided by the step's FaultPolicy
- One transaction scope per chunk write (commit on success, rollback on error)
- Item-by-item rescan of a chunk whose write hit a skippable error
- Ordered observer notifications (step start, skip, retry, chunk commit, step end)
- Stop requests honoured at chunk boundaries

Chunk atomicity:
    The engine defines the boundary; the transaction factory provides the
    guarantee. With a database session every chunk commits or rolls back as
    a whole, including the REJECTED transitions triggered by skips in that
    chunk. Without a transaction factory (file output) writes are applied as
    they happen.
"""

from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Union
import inspect
import logging

from core.exceptions import RetryLimitExceededError
from ingestion.base import ItemProcessor, ItemReader, ItemWriter
from ingestion.fault_policy import FaultDecision, FaultPolicy
from ingestion.step_context import ItemStage, StepContext, StepEvent, StepEventType
from models.base import StepStatus
from schemas.pipeline import SkippedItem, StepResult

logger = logging.getLogger(__name__)

StepObserver = Callable[[StepEvent], Union[None, Awaitable[None]]]
TransactionFactory = Callable[[], Any]


@asynccontextmanager
async def _no_transaction():
    yield None


class StepDefinition:
    """
    Everything needed to execute one step.

    Attributes:
        name: Step name used in logs and statistics
        reader: Item source
        writer: Chunk sink
        chunk_size: Maximum items per chunk
        processor: Optional per-item transformation
        policy: Fault policy (strict by default)
        observers: Callables notified of StepEvents, in order
        transaction: Factory returning an async context manager per chunk
        should_stop: Polled before every chunk; True ends the step STOPPED
    """

    def __init__(
        self,
        name: str,
        reader: ItemReader,
        writer: ItemWriter,
        chunk_size: int,
        processor: Optional[ItemProcessor] = None,
        policy: Optional[FaultPolicy] = None,
        observers: Optional[List[StepObserver]] = None,
        transaction: Optional[TransactionFactory] = None,
        should_stop: Optional[Callable[[], bool]] = None
    ):
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self.name = name
        self.reader = reader
        self.writer = writer
        self.chunk_size = chunk_size
        self.processor = processor
        self.policy = policy or FaultPolicy.strict()
        self.observers = list(observers or [])
        self.transaction = transaction or _no_transaction
        self.should_stop = should_stop


class ChunkEngine:
    """
    Executes StepDefinitions.

    Item-level failures never escape ``run_step``: they are skipped,
    retried, or turned into a FAILED StepResult carrying the error.
    """

    async def run_step(self, step: StepDefinition, run_id: Optional[str] = None) -> StepResult:
        context = StepContext(step.name, run_id=run_id, chunk_size=step.chunk_size)
        status = StepStatus.FAILED
        failure: Optional[BaseException] = None

        logger.info(f"Starting step '{step.name}'")
        logger.info(f"   - Chunk size: {step.chunk_size}")
        logger.info(f"   - Fault policy: {step.policy.describe()}")

        try:
            await step.reader.open(context)
            await step.writer.open(context)
            await self._emit(step, StepEvent(StepEventType.STEP_STARTED, context))
            status = await self._run_chunks(step, context)
        except Exception as e:
            failure = e
            status = StepStatus.FAILED
            logger.error(f"Step '{step.name}' failed: {e}")

        for component in (step.reader, step.writer):
            try:
                await component.close(context)
            except Exception as e:
                logger.error(f"Closing {type(component).__name__} failed in step '{step.name}': {e}")
                if failure is None:
                    failure = e
                    status = StepStatus.FAILED

        context.finish()

        try:
            await self._emit(step, StepEvent(StepEventType.STEP_FINISHED, context, status=status))
        except Exception as e:
            logger.error(f"Step '{step.name}' end-of-step observer failed: {e}")
            if failure is None:
                failure = e
                status = StepStatus.FAILED

        result = context.to_result(status, failure)
        self._log_summary(result)
        return result

    # ------------------------------------------------------------------
    # Chunk loop
    # ------------------------------------------------------------------

    async def _run_chunks(self, step: StepDefinition, context: StepContext) -> StepStatus:
        while True:
            if step.should_stop is not None and step.should_stop():
                logger.warning(f"Stop requested; step '{step.name}' stops at chunk boundary")
                return StepStatus.STOPPED

            items, exhausted = await self._read_chunk(step, context)

            if items:
                outputs, pending_skips = await self._process_chunk(step, context, items)
                await self._write_chunk(step, context, outputs, pending_skips)

            if exhausted:
                return StepStatus.COMPLETED

    async def _read_chunk(self, step: StepDefinition, context: StepContext) -> Tuple[List[Any], bool]:
        items: List[Any] = []

        while len(items) < step.chunk_size:
            try:
                item = await step.reader.read()
            except Exception as e:
                # Read errors are never retried
                if step.policy.classify(e) is FaultDecision.SKIP:
                    await self._skip(step, context, ItemStage.READ, None, e, deliver=True)
                    continue
                raise

            if item is None:
                return items, True

            context.increment("read")
            items.append(item)

        return items, False

    async def _process_chunk(
        self,
        step: StepDefinition,
        context: StepContext,
        items: List[Any]
    ) -> Tuple[List[Any], List[StepEvent]]:
        if step.processor is None:
            return list(items), []

        outputs: List[Any] = []
        pending_skips: List[StepEvent] = []

        for item in items:
            attempt = 0
            while True:
                try:
                    result = await step.processor.process(item, context)
                except Exception as e:
                    attempt += 1
                    decision = await self._resolve(step, context, ItemStage.PROCESS, item, e, attempt)
                    if decision is FaultDecision.RETRY:
                        continue
                    pending_skips.append(
                        await self._skip(step, context, ItemStage.PROCESS, item, e, deliver=False)
                    )
                    break

                if result is None:
                    context.increment("filter")
                else:
                    outputs.append(result)
                break

        return outputs, pending_skips

    async def _write_chunk(
        self,
        step: StepDefinition,
        context: StepContext,
        outputs: List[Any],
        pending_skips: List[StepEvent]
    ) -> None:
        if not outputs and not pending_skips:
            return

        attempt = 0
        while True:
            try:
                async with step.transaction():
                    if outputs:
                        await step.writer.write(outputs, context)
                    for event in pending_skips:
                        await self._emit(step, event)
            except Exception as e:
                context.discard_chunk()
                context.increment("rollback")
                attempt += 1
                decision = await self._resolve(step, context, ItemStage.WRITE, None, e, attempt)
                if decision is FaultDecision.RETRY:
                    continue
                logger.warning(
                    f"Chunk of {len(outputs)} items rolled back in step '{step.name}'; "
                    f"rewriting items one by one"
                )
                await self._scan(step, context, outputs, pending_skips)
                return

            self._commit(context, len(outputs))
            await self._emit(
                step,
                StepEvent(StepEventType.CHUNK_COMMITTED, context, chunk_size=len(outputs))
            )
            return

    async def _scan(
        self,
        step: StepDefinition,
        context: StepContext,
        outputs: List[Any],
        pending_skips: List[StepEvent]
    ) -> None:
        """Write each item in its own transaction so one bad item cannot sink the chunk."""
        pending = list(pending_skips)
        written = 0

        for item in outputs:
            attempt = 0
            while True:
                try:
                    async with step.transaction():
                        await step.writer.write([item], context)
                except Exception as e:
                    context.discard_chunk()
                    context.increment("rollback")
                    attempt += 1
                    decision = await self._resolve(step, context, ItemStage.WRITE, item, e, attempt)
                    if decision is FaultDecision.RETRY:
                        continue
                    pending.append(
                        await self._skip(step, context, ItemStage.WRITE, item, e, deliver=False)
                    )
                    break

                self._commit(context, 1)
                written += 1
                break

        if pending:
            async with step.transaction():
                for event in pending:
                    await self._emit(step, event)

        await self._emit(step, StepEvent(StepEventType.CHUNK_COMMITTED, context, chunk_size=written))

    # ------------------------------------------------------------------
    # Fault handling
    # ------------------------------------------------------------------

    async def _resolve(
        self,
        step: StepDefinition,
        context: StepContext,
        stage: ItemStage,
        item: Any,
        error: Exception,
        attempt: int
    ) -> FaultDecision:
        """
        Decide what happens after a failed attempt.

        Returns RETRY or SKIP; raises for FATAL so the step aborts.
        """
        decision = step.policy.classify(error)

        if decision is FaultDecision.RETRY:
            if step.policy.can_retry(attempt):
                context.increment("retry")
                logger.warning(
                    f"Retrying {stage.value} in step '{step.name}' "
                    f"(attempt {attempt}/{step.policy.retry_limit}) for {_describe(item)}: {error}"
                )
                await self._emit(
                    step,
                    StepEvent(
                        StepEventType.ITEM_RETRIED, context,
                        item=item, error=error, stage=stage, attempt=attempt
                    )
                )
                return FaultDecision.RETRY

            decision = step.policy.decision_after_retries()
            if decision is FaultDecision.FATAL:
                raise RetryLimitExceededError(
                    f"Retry limit of {step.policy.retry_limit} exceeded",
                    context={
                        "step": step.name,
                        "stage": stage.value,
                        "item": _describe(item),
                    },
                    original_exception=error
                )

        if decision is FaultDecision.FATAL:
            raise error

        return decision

    async def _skip(
        self,
        step: StepDefinition,
        context: StepContext,
        stage: ItemStage,
        item: Any,
        error: Exception,
        deliver: bool
    ) -> StepEvent:
        context.increment(f"{stage.value}_skip")
        step.policy.check_skip_limit(context.skip_count, error)

        reason = getattr(error, "message", None) or str(error) or "Unknown"
        context.skipped_items.append(
            SkippedItem(
                stage=stage.value,
                email=getattr(item, "email", None),
                first_name=getattr(item, "first_name", None),
                last_name=getattr(item, "last_name", None),
                reason=reason,
                exception_type=type(error).__name__,
            )
        )
        logger.warning(f"Skipped during {stage.value} in step '{step.name}': {_describe(item)}. Reason: {reason}")

        event = StepEvent(StepEventType.ITEM_SKIPPED, context, item=item, error=error, stage=stage)
        if deliver:
            await self._emit(step, event)
        return event

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _commit(context: StepContext, written: int) -> None:
        context.commit_chunk()
        context.increment("write", written)
        context.increment("commit")

    @staticmethod
    async def _emit(step: StepDefinition, event: StepEvent) -> None:
        for observer in step.observers:
            outcome = observer(event)
            if inspect.isawaitable(outcome):
                await outcome

    @staticmethod
    def _log_summary(result: StepResult) -> None:
        log = logger.info if result.status == StepStatus.COMPLETED else logger.error
        log(f"Finished step '{result.step_name}': {result.status.value}")
        logger.info(f"   - Read count: {result.read_count}")
        logger.info(f"   - Write count: {result.write_count}")
        logger.info(f"   - Skip count: {result.skip_count}")
        if result.retry_count:
            logger.info(f"   - Retry count: {result.retry_count}")
        if result.duration_ms is not None:
            logger.info(f"   - Duration: {result.duration_ms}ms")
        if result.skip_summary:
            logger.warning(f"   - {result.skip_summary}")
        if result.error_message:
            logger.error(f"   - Error: {result.error_message}")


def _describe(item: Any) -> str:
    if item is None:
        return "<chunk>"
    email = getattr(item, "email", None)
    if email is None:
        return repr(item)
    return f"{getattr(item, 'first_name', '')} {getattr(item, 'last_name', '')} ({email})".strip()
