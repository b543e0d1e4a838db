"""
Pydantic schemas for run parameters and step/run results
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
import enum
from models.base import RunStatus, StepStatus


class ScenarioMode(str, enum.Enum):
    """Demonstration behaviour of the enrich step's processor"""
    SUCCESS = "SUCCESS"
    PARTIAL = "PARTIAL"      # every Nth item raises a skippable error
    FAIL = "FAIL"            # every item raises an unclassified error
    RETRYABLE = "RETRYABLE"  # transient errors, then success


class RunParameters(BaseModel):
    """Parameters of one pipeline run"""
    scenario: ScenarioMode = ScenarioMode.SUCCESS
    skip_every: int = Field(default=0, ge=0, description="PARTIAL: skip every Nth processed item")
    retry_attempts: int = Field(default=2, ge=0, description="RETRYABLE: failures per item before success")
    csv_path: Optional[str] = Field(default=None, description="Input CSV; falls back to configured paths")

    @field_validator("scenario", mode="before")
    @classmethod
    def normalize_scenario(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("csv_path")
    @classmethod
    def blank_path_is_none(cls, v):
        if v is not None and not v.strip():
            return None
        return v


class SkippedItem(BaseModel):
    """An item discarded by the fault policy"""
    stage: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    reason: str
    exception_type: str


class StepResult(BaseModel):
    """Frozen statistics of one step execution"""
    step_name: str
    status: StepStatus
    read_count: int = 0
    write_count: int = 0
    filter_count: int = 0
    read_skip_count: int = 0
    process_skip_count: int = 0
    write_skip_count: int = 0
    retry_count: int = 0
    commit_count: int = 0
    rollback_count: int = 0
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    skipped_items: List[SkippedItem] = Field(default_factory=list)
    execution_context: Dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None
    error_type: Optional[str] = None

    class Config:
        frozen = True

    @property
    def skip_count(self) -> int:
        return self.read_skip_count + self.process_skip_count + self.write_skip_count

    @property
    def inserted_count(self) -> int:
        return int(self.execution_context.get("inserted.count", 0))

    @property
    def updated_count(self) -> int:
        return int(self.execution_context.get("updated.count", 0))

    @property
    def written_count(self) -> int:
        return int(self.execution_context.get("written.count", self.write_count))

    @property
    def skip_summary(self) -> Optional[str]:
        return self.execution_context.get("skip.summary")


class RunResult(BaseModel):
    """Outcome of a whole pipeline run"""
    run_id: str
    status: RunStatus
    steps: List[StepResult] = Field(default_factory=list)
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    rejected_by_sweep: int = 0
    output_file: Optional[str] = None
    error_message: Optional[str] = None

    def step(self, name: str) -> Optional[StepResult]:
        for step in self.steps:
            if step.step_name == name:
                return step
        return None
