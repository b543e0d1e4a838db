"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from models.base import RunStatus, StepStatus
from schemas.person import PersonResponse


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    database_connected: bool
    active_runs: int = 0
    last_run_status: Optional[RunStatus] = None
    last_run_at: Optional[datetime] = None

    class Config:
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "database_connected": True,
                "active_runs": 0,
                "last_run_status": "COMPLETED",
                "last_run_at": "2024-01-15T10:00:00Z"
            }
        }


# ============================================================================
# Job Control Schemas
# ============================================================================

class JobStartResponse(BaseModel):
    """Response to a start/restart request"""
    run_id: str
    status: RunStatus = RunStatus.RUNNING
    message: str

    class Config:
        use_enum_values = True


class JobStopResponse(BaseModel):
    """Response to a stop request"""
    stopped_run_ids: List[str] = Field(default_factory=list)
    message: str


class StepExecutionResponse(BaseModel):
    """Statistics of one step of a run"""
    step_name: str
    status: StepStatus
    read_count: int = 0
    write_count: int = 0
    filter_count: int = 0
    skip_count: int = 0
    read_skip_count: int = 0
    process_skip_count: int = 0
    write_skip_count: int = 0
    retry_count: int = 0
    commit_count: int = 0
    rollback_count: int = 0
    inserted_count: int = 0
    updated_count: int = 0
    written_count: int = 0
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    skip_summary: Optional[str] = None
    execution_context: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None

    class Config:
        from_attributes = True
        use_enum_values = True


class PipelineRunResponse(BaseModel):
    """A pipeline run with its step statistics"""
    run_id: str
    status: RunStatus
    parameters: Optional[Dict[str, Any]] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    error_message: Optional[str] = None
    steps: List[StepExecutionResponse] = Field(default_factory=list)

    class Config:
        from_attributes = True
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "run_id": "3f1c2b9e-7a55-4f0e-9a64-2a1f0c9b8e11",
                "status": "COMPLETED",
                "parameters": {"scenario": "SUCCESS", "skip_every": 0},
                "started_at": "2024-01-15T10:00:00Z",
                "completed_at": "2024-01-15T10:00:02Z",
                "duration_seconds": 2.1,
                "steps": [
                    {"step_name": "ingest", "status": "COMPLETED", "read_count": 5, "write_count": 5},
                    {"step_name": "enrich", "status": "COMPLETED", "read_count": 5, "write_count": 5},
                    {"step_name": "export", "status": "COMPLETED", "read_count": 5, "write_count": 5}
                ]
            }
        }


class JobStatusResponse(BaseModel):
    """Active runs and the most recent run"""
    active_run_ids: List[str] = Field(default_factory=list)
    latest: Optional[PipelineRunResponse] = None
    message: str


class JobMetricsResponse(BaseModel):
    """Aggregate statistics over recorded runs"""
    total_executions: int
    successful_executions: int
    failed_executions: int
    avg_duration_ms: int
    success_rate: float = Field(..., ge=0, le=100, description="Success rate percentage")


# ============================================================================
# Person Schemas
# ============================================================================

class PaginationMetadata(BaseModel):
    """Pagination metadata"""
    total_items: int
    total_pages: int
    current_page: int
    page_size: int
    has_next: bool
    has_previous: bool


class PersonListResponse(BaseModel):
    """Paginated persons"""
    items: List[PersonResponse]
    pagination: PaginationMetadata
    filters_applied: Dict[str, Any] = Field(default_factory=dict)


class PersonCountResponse(BaseModel):
    count: int


class GenerateSampleResponse(BaseModel):
    """A generated sample CSV"""
    file_path: str
    total_lines: int
    invalid_lines: int


# ============================================================================
# Error Response Schema
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    detail: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        json_schema_extra = {
            "example": {
                "error": "Invalid run configuration",
                "detail": "Enrich chunk size exceeds the age calculation batch limit",
                "timestamp": "2024-01-15T10:30:00Z"
            }
        }
