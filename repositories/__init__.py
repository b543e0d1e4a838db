"""
Async repositories over the ORM models.

Modules:
    person_repository: find-by-email, find-by-run, save, bulk status updates
    run_repository: pipeline run and step execution bookkeeping
"""

from repositories.person_repository import PersonRepository
from repositories.run_repository import RunRepository

__all__ = ["PersonRepository", "RunRepository"]
