"""
Item processor of the enrich step.

In normal operation it passes records through untouched; the age itself is
calculated per chunk by the writer. Its only job is to be the place where
per-item failures happen under the step's fault policy, which the
demonstration scenarios exploit.
"""

from collections import Counter
from typing import Optional
import logging

from core.exceptions import AgeCalculationRetryableError, AgeCalculationSkippableError
from ingestion.base import ItemProcessor
from ingestion.step_context import StepContext
from schemas.person import PersonRecord
from schemas.pipeline import RunParameters, ScenarioMode

logger = logging.getLogger(__name__)


class ScenarioProcessor(ItemProcessor):
    """
    Scenario-driven pass-through.

    SUCCESS: every record passes
    PARTIAL: every ``skip_every``-th processed record raises a skippable error
    FAIL: every record raises an unclassified error
    RETRYABLE: each email fails ``retry_attempts`` times with a retryable
        error, then passes

    State (processed counter, attempts per email) lives on the instance,
    and the orchestrator builds one instance per run.
    """

    def __init__(self, parameters: Optional[RunParameters] = None):
        self.parameters = parameters or RunParameters()
        self.processed = 0
        self.attempts: Counter = Counter()

    async def process(self, item: PersonRecord, context: StepContext) -> Optional[PersonRecord]:
        scenario = self.parameters.scenario

        if scenario == ScenarioMode.FAIL:
            raise RuntimeError(f"Forced failure while processing {item.email}")

        if scenario == ScenarioMode.RETRYABLE:
            self.attempts[item.email] += 1
            if self.attempts[item.email] <= self.parameters.retry_attempts:
                raise AgeCalculationRetryableError(
                    "Transient age calculation failure",
                    context={"email": item.email, "attempt": self.attempts[item.email]}
                )

        self.processed += 1

        if scenario == ScenarioMode.PARTIAL:
            skip_every = self.parameters.skip_every
            if skip_every > 0 and self.processed % skip_every == 0:
                raise AgeCalculationSkippableError(
                    f"Age calculation rejected for {item.email}",
                    context={"email": item.email, "position": self.processed}
                )

        return item
