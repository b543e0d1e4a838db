from sqlalchemy import (
    Column, BigInteger, Integer, String, Enum, DateTime, Float, Text, JSON, ForeignKey, Index
)
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
from models.base import Base, RunStatus, StepStatus


class PipelineRun(Base):
    """
    One end-to-end execution of the ingest → enrich → export pipeline.

    Purpose:
    - Audit trail of all runs
    - Source of the run identifier threaded through every step
    - Per-step statistics for the control surface
    """
    __tablename__ = "pipeline_runs"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    run_id = Column(String(36), default=lambda: str(uuid.uuid4()), unique=True, nullable=False, index=True)

    status = Column(Enum(RunStatus), default=RunStatus.RUNNING, nullable=False, index=True)

    # Launch parameters (scenario, skip_every, retry_attempts, csv_path)
    parameters = Column(JSON, nullable=True)

    # Timestamps
    started_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Float, nullable=True)

    # Error tracking
    error_message = Column(Text, nullable=True)

    steps = relationship(
        "StepExecution",
        back_populates="run",
        order_by="StepExecution.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_pipeline_run_status", "status", "started_at"),
    )


class StepExecution(Base):
    """Frozen statistics of one step inside a pipeline run."""
    __tablename__ = "step_executions"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    pipeline_run_id = Column(
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("pipeline_runs.id"),
        nullable=False,
        index=True,
    )

    step_name = Column(String(100), nullable=False)
    status = Column(Enum(StepStatus), nullable=False)

    # Engine counters
    read_count = Column(Integer, default=0)
    write_count = Column(Integer, default=0)
    filter_count = Column(Integer, default=0)
    skip_count = Column(Integer, default=0)
    read_skip_count = Column(Integer, default=0)
    process_skip_count = Column(Integer, default=0)
    write_skip_count = Column(Integer, default=0)
    retry_count = Column(Integer, default=0)
    commit_count = Column(Integer, default=0)
    rollback_count = Column(Integer, default=0)

    # Upsert counters
    inserted_count = Column(Integer, default=0)
    updated_count = Column(Integer, default=0)
    written_count = Column(Integer, default=0)

    # Timing
    started_at = Column(DateTime, nullable=True)
    ended_at = Column(DateTime, nullable=True)
    duration_ms = Column(Integer, nullable=True)

    skip_summary = Column(Text, nullable=True)
    execution_context = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)

    run = relationship("PipelineRun", back_populates="steps")
