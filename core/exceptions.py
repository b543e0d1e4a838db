"""
Custom exceptions for the batch pipeline with structured error context.

Every exception carries a ``kind`` tag that the fault policy dispatches on
(see ingestion.fault_policy). Exceptions that do not come from this module
have no tag and are treated as FATAL.

Exception Hierarchy:
    PipelineException (base, FATAL)
    ├── ReadError
    │   ├── CsvSourceNotFoundError
    │   └── NoValidRecordsError
    ├── SkippableError (SKIPPABLE)
    │   └── AgeCalculationSkippableError
    ├── RetryableError (RETRYABLE)
    │   └── AgeCalculationRetryableError
    ├── WriteError
    │   ├── UpsertError
    │   └── ExportError
    ├── EnrichmentError
    │   └── EnrichmentBatchTooLargeError
    ├── StepExecutionError
    │   ├── SkipLimitExceededError
    │   └── RetryLimitExceededError
    └── PipelineConfigurationError
"""

from typing import Optional, Dict, Any
from datetime import datetime
import enum


class ErrorKind(str, enum.Enum):
    """How the fault policy should treat an error"""
    SKIPPABLE = "skippable"
    RETRYABLE = "retryable"
    FATAL = "fatal"


class PipelineException(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (step, email, line, etc.)
        original_exception: The original exception that was caught (if any)
        kind: Fault classification tag
    """

    kind: ErrorKind = ErrorKind.FATAL

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(
                f"{k}={v}" for k, v in self.context.items() if k != "error_timestamp"
            )
            if context_str:
                base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "kind": self.kind.value,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Read Errors
# ============================================================================

class ReadError(PipelineException):
    """Base exception for record source failures."""
    pass


class CsvSourceNotFoundError(ReadError):
    """
    Raised when no CSV file exists at any of the candidate locations.

    Context should include:
        - searched_paths: Paths that were tried, in order
    """
    pass


class NoValidRecordsError(ReadError):
    """
    Raised when the CSV was fully read but not a single line passed validation.

    Context should include:
        - file_path: The CSV that was read
        - total_lines: Number of data lines
        - invalid_lines: Number of rejected lines
    """
    pass


# ============================================================================
# Classified item errors
# ============================================================================

class SkippableError(PipelineException):
    """Item-level error that skips the item and counts toward the skip limit."""
    kind = ErrorKind.SKIPPABLE


class RetryableError(PipelineException):
    """
    Item-level transient error that re-invokes the failing stage.

    Use this for transient errors like:
    - Timeouts of the age calculation service
    - Temporary database connection issues
    """
    kind = ErrorKind.RETRYABLE


class AgeCalculationSkippableError(SkippableError):
    """Age could not be calculated for this person; the person is rejected."""
    pass


class AgeCalculationRetryableError(RetryableError):
    """Age calculation hit a transient failure and may succeed on retry."""
    pass


# ============================================================================
# Write Errors
# ============================================================================

class WriteError(PipelineException):
    """Base exception for sink failures."""
    pass


class UpsertError(WriteError):
    """
    Raised when reconciling a person against the store fails.

    Context should include:
        - email: Natural key of the record
        - run_id: Current run identifier
    """
    pass


class ExportError(WriteError):
    """
    Raised when the output file cannot be written.

    Context should include:
        - file_path: Output file path
    """
    pass


# ============================================================================
# Enrichment Errors
# ============================================================================

class EnrichmentError(PipelineException):
    """Base exception for the age calculation service."""
    pass


class EnrichmentBatchTooLargeError(EnrichmentError):
    """
    Raised when a batch exceeds the service's maximum batch size.

    Context should include:
        - batch_size: Size of the rejected batch
        - max_batch_size: Configured service limit
    """
    pass


# ============================================================================
# Step / run level errors
# ============================================================================

class StepExecutionError(PipelineException):
    """Base exception for errors that abort a step."""
    pass


class SkipLimitExceededError(StepExecutionError):
    """Cumulative skips in one step exceeded the configured skip limit."""
    pass


class RetryLimitExceededError(StepExecutionError):
    """One item kept failing with a retryable error after all retries."""
    pass


class PipelineConfigurationError(PipelineException):
    """Run parameters or settings are inconsistent; the run never starts."""
    pass
