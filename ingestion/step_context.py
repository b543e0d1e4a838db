"""
Per-step execution state: counters, execution context and lifecycle events.

A StepContext lives for exactly one step execution. The engine creates it
at step start and freezes it into a StepResult at step end, so nothing
carries over between steps or runs.
"""

from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional
import enum

from models.base import StepStatus
from schemas.pipeline import SkippedItem, StepResult


class ItemStage(str, enum.Enum):
    """Where in the step an item failed"""
    READ = "read"
    PROCESS = "process"
    WRITE = "write"


class StepEventType(str, enum.Enum):
    STEP_STARTED = "step_started"
    ITEM_SKIPPED = "item_skipped"
    ITEM_RETRIED = "item_retried"
    CHUNK_COMMITTED = "chunk_committed"
    STEP_FINISHED = "step_finished"


class StepEvent:
    """Notification handed to every observer of a step, in registration order"""

    def __init__(
        self,
        type: StepEventType,
        context: "StepContext",
        item: Any = None,
        error: Optional[BaseException] = None,
        stage: Optional[ItemStage] = None,
        attempt: Optional[int] = None,
        chunk_size: Optional[int] = None,
        status: Optional[StepStatus] = None,
    ):
        self.type = type
        self.context = context
        self.item = item
        self.error = error
        self.stage = stage
        self.attempt = attempt
        self.chunk_size = chunk_size
        self.status = status

    def __repr__(self) -> str:
        return f"<StepEvent {self.type.value} step={self.context.step_name} stage={self.stage}>"


class StepContext:
    """
    Counters and scratch state of one step execution.

    Counter keys used by the engine: read, write, filter, read_skip,
    process_skip, write_skip, retry, commit, rollback. Writers add their
    own keys through ``stage``.
    """

    def __init__(self, step_name: str, run_id: Optional[str] = None, chunk_size: int = 1):
        self.step_name = step_name
        self.run_id = run_id
        self.chunk_size = chunk_size
        self.started_at = datetime.utcnow()
        self.ended_at: Optional[datetime] = None
        self.execution_context: Dict[str, Any] = {}
        self.skipped_items: List[SkippedItem] = []
        self._counts: Counter = Counter()
        self._staged: Counter = Counter()

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------

    def increment(self, key: str, amount: int = 1) -> int:
        """Count immediately, regardless of the current chunk's fate."""
        self._counts[key] += amount
        return self._counts[key]

    def stage(self, key: str, amount: int = 1) -> None:
        """Count provisionally for the chunk currently being written."""
        self._staged[key] += amount

    def commit_chunk(self) -> None:
        self._counts.update(self._staged)
        self._staged.clear()

    def discard_chunk(self) -> None:
        self._staged.clear()

    def count(self, key: str) -> int:
        return self._counts[key]

    @property
    def skip_count(self) -> int:
        return self._counts["read_skip"] + self._counts["process_skip"] + self._counts["write_skip"]

    # ------------------------------------------------------------------
    # Freezing
    # ------------------------------------------------------------------

    def finish(self) -> None:
        self.ended_at = datetime.utcnow()
        if self.skip_count > 0:
            self.execution_context["skip.summary"] = (
                f"Skipped {self.skip_count} items during processing "
                f"(see logs for item details)"
            )

    @property
    def duration_ms(self) -> Optional[int]:
        if self.ended_at is None:
            return None
        return int((self.ended_at - self.started_at).total_seconds() * 1000)

    def to_result(self, status: StepStatus, error: Optional[BaseException] = None) -> StepResult:
        message = None
        if error is not None:
            message = getattr(error, "message", None) or str(error)
        return StepResult(
            step_name=self.step_name,
            status=status,
            read_count=self._counts["read"],
            write_count=self._counts["write"],
            filter_count=self._counts["filter"],
            read_skip_count=self._counts["read_skip"],
            process_skip_count=self._counts["process_skip"],
            write_skip_count=self._counts["write_skip"],
            retry_count=self._counts["retry"],
            commit_count=self._counts["commit"],
            rollback_count=self._counts["rollback"],
            started_at=self.started_at,
            ended_at=self.ended_at,
            duration_ms=self.duration_ms,
            skipped_items=list(self.skipped_items),
            execution_context=dict(self.execution_context),
            error_message=message,
            error_type=type(error).__name__ if error is not None else None,
        )
