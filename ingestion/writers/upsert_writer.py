"""
Upsert persons into the store by natural key (email)
"""

from typing import List
import logging

from sqlalchemy.exc import SQLAlchemyError

from core.exceptions import UpsertError
from ingestion.base import ItemWriter
from ingestion.step_context import StepContext, StepEvent, StepEventType
from models.base import ProcessingStatus
from models.person import Person
from repositories.person_repository import PersonRepository
from schemas.person import PersonRecord

logger = logging.getLogger(__name__)


class UpsertPersonWriter(ItemWriter):
    """
    Reconcile each record of a chunk with the store.

    Ensures:
    - No duplicate rows on repeated runs (email is the natural key)
    - Existing rows are overwritten and marked PROCESSED
    - New rows are inserted as IMPORTED
    - Every written row is attributed to the current run

    Counters (inserted, updated, written) are staged on the step context,
    so a rolled-back chunk never inflates them. Register the writer as a
    step observer to have the totals published into the execution context
    at step end.
    """

    def __init__(self, repository: PersonRepository):
        self.repository = repository

    async def write(self, items: List[PersonRecord], context: StepContext) -> None:
        for record in items:
            try:
                existing = await self.repository.find_by_email(record.email)

                if existing is not None:
                    existing.first_name = record.first_name
                    existing.last_name = record.last_name
                    existing.date_of_birth = record.date_of_birth
                    existing.age = record.age
                    existing.run_id = context.run_id
                    existing.processing_status = ProcessingStatus.PROCESSED
                    await self.repository.save(existing)
                    context.stage("updated")
                else:
                    person = Person(
                        first_name=record.first_name,
                        last_name=record.last_name,
                        email=record.email,
                        date_of_birth=record.date_of_birth,
                        age=record.age,
                        run_id=context.run_id,
                        processing_status=ProcessingStatus.IMPORTED,
                    )
                    await self.repository.save(person)
                    context.stage("inserted")

                context.stage("written")

            except SQLAlchemyError as e:
                raise UpsertError(
                    "Failed to upsert person",
                    context={"email": record.email, "run_id": context.run_id},
                    original_exception=e
                )

    def observe(self, event: StepEvent) -> None:
        """Publish the upsert totals once the step is over."""
        if event.type != StepEventType.STEP_FINISHED:
            return

        context = event.context
        inserted = context.count("inserted")
        updated = context.count("updated")
        written = context.count("written")

        context.execution_context["inserted.count"] = inserted
        context.execution_context["updated.count"] = updated
        context.execution_context["written.count"] = written

        logger.info(
            f"Upsert summary for step '{context.step_name}': "
            f"Inserted={inserted}, Updated={updated}, Written={written}"
        )
