"""
SQLAlchemy ORM models for database tables.

Models:
    base: Base declarative class and shared enums (ProcessingStatus, RunStatus, StepStatus)
    person: Person records keyed by email, enriched with age
    pipeline_run: Pipeline runs and their per-step statistics

Usage:
    from models.person import Person
    from models.pipeline_run import PipelineRun, StepExecution
    from models.base import ProcessingStatus, RunStatus

Relationships:
    - PipelineRun → StepExecution (one-to-many, ordered)
    - Person.run_id → PipelineRun.run_id (soft reference, no FK, so that
      administrative run cleanup never cascades into person rows)
"""

from models.base import Base, ProcessingStatus, RunStatus, StepStatus
from models.person import Person
from models.pipeline_run import PipelineRun, StepExecution

__all__ = [
    "Base",
    "ProcessingStatus",
    "RunStatus",
    "StepStatus",
    "Person",
    "PipelineRun",
    "StepExecution",
]
