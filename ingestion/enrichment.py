"""
Age calculation service.

Stands in for an external enrichment API: every call costs one round trip
(simulated latency) regardless of batch size, so the enrich step calls it
once per chunk.
"""

from datetime import date
from typing import Callable, List, Optional
import asyncio
import logging

from core.config import settings
from core.exceptions import EnrichmentBatchTooLargeError
from schemas.person import PersonRecord

logger = logging.getLogger(__name__)


class AgeCalculationService:
    """
    Calculate ages in whole years.

    Args:
        latency_ms: Simulated round-trip time per call
        max_batch_size: Largest batch accepted by one call
        clock: Returns "today"; injectable for tests
    """

    def __init__(
        self,
        latency_ms: Optional[int] = None,
        max_batch_size: Optional[int] = None,
        clock: Callable[[], date] = date.today
    ):
        self.latency_ms = settings.ENRICHMENT_LATENCY_MS if latency_ms is None else latency_ms
        self.max_batch_size = settings.ENRICHMENT_MAX_BATCH_SIZE if max_batch_size is None else max_batch_size
        self.clock = clock
        self.calls = 0

    async def calculate_ages(self, records: List[PersonRecord]) -> List[PersonRecord]:
        """Set ``age`` on every record in place; one simulated call per batch."""
        if not records:
            return records

        if len(records) > self.max_batch_size:
            raise EnrichmentBatchTooLargeError(
                "Batch exceeds the age calculation service limit",
                context={"batch_size": len(records), "max_batch_size": self.max_batch_size}
            )

        self.calls += 1
        if self.latency_ms > 0:
            await asyncio.sleep(self.latency_ms / 1000)

        today = self.clock()
        for record in records:
            record.age = self.calculate_age(record.date_of_birth, today)

        logger.debug(f"Calculated ages for {len(records)} persons")
        return records

    def calculate_age(self, date_of_birth: date, today: Optional[date] = None) -> int:
        today = today or self.clock()
        years = today.year - date_of_birth.year
        if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
            years -= 1
        return years
