"""
Reader over persons already in the store
"""

from typing import List, Optional
import logging

from ingestion.base import ItemReader
from ingestion.step_context import StepContext
from models.base import ProcessingStatus
from repositories.person_repository import PersonRepository
from schemas.person import PersonRecord

logger = logging.getLogger(__name__)


class PersonStoreReader(ItemReader):
    """
    Snapshot of the persons of one run (or of the whole store), excluding
    REJECTED rows, in insertion order.

    The snapshot is taken once at open and converted to detached
    PersonRecords; rows written by the same step are not re-read.
    """

    def __init__(
        self,
        repository: PersonRepository,
        run_id: Optional[str] = None,
        require_age: bool = False
    ):
        self.repository = repository
        self.run_id = run_id
        self.require_age = require_age
        self._records: List[PersonRecord] = []
        self._position = 0

    async def open(self, context: StepContext) -> None:
        if self.run_id is not None:
            rows = await self.repository.find_by_run(self.run_id, exclude_status=ProcessingStatus.REJECTED)
        else:
            rows = await self.repository.find_all(exclude_status=ProcessingStatus.REJECTED)

        if self.require_age:
            rows = [row for row in rows if row.age is not None]

        self._records = [PersonRecord.model_validate(row) for row in rows]
        self._position = 0
        logger.info(
            f"Loaded {len(self._records)} persons for step '{context.step_name}'"
            + (f" (run {self.run_id})" if self.run_id else "")
        )

    async def read(self) -> Optional[PersonRecord]:
        if self._position >= len(self._records):
            return None
        record = self._records[self._position]
        self._position += 1
        return record

    async def close(self, context: StepContext) -> None:
        self._records = []
        self._position = 0
