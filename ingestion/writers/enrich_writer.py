"""
Composite writer of the enrich step: calculate ages for the whole chunk,
then upsert it.
"""

from typing import List

from ingestion.base import ItemWriter
from ingestion.enrichment import AgeCalculationService
from ingestion.step_context import StepContext
from ingestion.writers.upsert_writer import UpsertPersonWriter
from schemas.person import PersonRecord


class EnrichThenUpsertWriter(ItemWriter):
    """One service call per chunk, then delegate to the upsert writer."""

    def __init__(self, service: AgeCalculationService, delegate: UpsertPersonWriter):
        self.service = service
        self.delegate = delegate

    async def write(self, items: List[PersonRecord], context: StepContext) -> None:
        if not items:
            return
        await self.service.calculate_ages(items)
        await self.delegate.write(items, context)
