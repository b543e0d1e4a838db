"""
Core utilities and configuration for the person batch pipeline.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Async database engine, session factory and transaction scopes
    exceptions: Exception hierarchy with fault classification tags
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import async_session_maker, session_transaction
    from core.exceptions import AgeCalculationSkippableError, ErrorKind
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Get database session
    async with async_session_maker() as session:
        # Perform database operations
        pass
"""

__all__ = [
    "settings",
    "async_session_maker",
    "session_transaction",
    "setup_logging",
    # Exceptions
    "ErrorKind",
    "PipelineException",
    "ReadError",
    "CsvSourceNotFoundError",
    "NoValidRecordsError",
    "SkippableError",
    "RetryableError",
    "AgeCalculationSkippableError",
    "AgeCalculationRetryableError",
    "WriteError",
    "UpsertError",
    "ExportError",
    "EnrichmentError",
    "EnrichmentBatchTooLargeError",
    "StepExecutionError",
    "SkipLimitExceededError",
    "RetryLimitExceededError",
    "PipelineConfigurationError",
]
