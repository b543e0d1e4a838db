"""
Async repository over the persons table.

The repository never commits: the transaction belongs to the caller (the
chunk engine opens one per chunk). Writes are flushed so that later lookups
in the same chunk see them.
"""

from typing import List, Optional
from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from models.base import ProcessingStatus
from models.person import Person
import logging

logger = logging.getLogger(__name__)


class PersonRepository:
    """Find-by-key, find-by-run, save and bulk status updates for persons"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def find_by_email(self, email: str) -> Optional[Person]:
        result = await self.db.execute(select(Person).where(Person.email == email))
        return result.scalar_one_or_none()

    async def find_by_run(
        self,
        run_id: str,
        exclude_status: Optional[ProcessingStatus] = ProcessingStatus.REJECTED
    ) -> List[Person]:
        """Persons attributed to ``run_id``, in insertion order."""
        query = select(Person).where(Person.run_id == run_id)
        if exclude_status is not None:
            query = query.where(Person.processing_status != exclude_status)
        result = await self.db.execute(query.order_by(Person.id))
        return list(result.scalars().all())

    async def find_all(self, exclude_status: Optional[ProcessingStatus] = None) -> List[Person]:
        query = select(Person)
        if exclude_status is not None:
            query = query.where(Person.processing_status != exclude_status)
        result = await self.db.execute(query.order_by(Person.id))
        return list(result.scalars().all())

    async def list(
        self,
        limit: int = 100,
        offset: int = 0,
        run_id: Optional[str] = None,
        status: Optional[ProcessingStatus] = None
    ) -> List[Person]:
        query = self._filtered(select(Person), run_id, status)
        result = await self.db.execute(query.order_by(Person.id).offset(offset).limit(limit))
        return list(result.scalars().all())

    async def count(
        self,
        run_id: Optional[str] = None,
        status: Optional[ProcessingStatus] = None
    ) -> int:
        query = self._filtered(select(func.count()).select_from(Person), run_id, status)
        result = await self.db.execute(query)
        return result.scalar() or 0

    @staticmethod
    def _filtered(query, run_id: Optional[str], status: Optional[ProcessingStatus]):
        if run_id is not None:
            query = query.where(Person.run_id == run_id)
        if status is not None:
            query = query.where(Person.processing_status == status)
        return query

    async def save(self, person: Person) -> Person:
        self.db.add(person)
        await self.db.flush()
        return person

    async def mark_rejected(self, email: str) -> bool:
        """Drive one person to REJECTED. Returns False when the email is unknown."""
        person = await self.find_by_email(email)
        if person is None:
            return False
        person.processing_status = ProcessingStatus.REJECTED
        await self.db.flush()
        return True

    async def mark_all_non_processed_as_rejected(self, run_id: str) -> int:
        """End-of-run sweep: every row of ``run_id`` not PROCESSED becomes REJECTED."""
        result = await self.db.execute(
            update(Person)
            .where(
                Person.run_id == run_id,
                Person.processing_status != ProcessingStatus.PROCESSED
            )
            .values(processing_status=ProcessingStatus.REJECTED)
        )
        return result.rowcount or 0

    async def delete_by_run(self, run_id: str) -> int:
        """Administrative cleanup; never called by the pipeline itself."""
        result = await self.db.execute(
            delete(Person)
            .where(Person.run_id == run_id)
        )
        logger.info(f"Deleted {result.rowcount} persons of run {run_id}")
        return result.rowcount or 0
