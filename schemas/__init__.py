"""
Pydantic schemas for validation and serialization.

Schemas:
    person: CSV line validation, pipeline records and person responses
    pipeline: Run parameters and frozen step/run results
    api: API endpoint request/response schemas

Usage:
    from schemas.person import PersonCsvRow, PersonRecord
    from schemas.pipeline import RunParameters, ScenarioMode
    from schemas.api import JobStartResponse, PersonListResponse

Example:
    # Validate one CSV line and turn it into a pipeline record
    row = PersonCsvRow(
        first_name="John",
        last_name="Doe",
        email="john.doe@example.com",
        date_of_birth="1998-05-15"
    )
    record = row.to_record()
    assert record.age is None
"""

__all__ = [
    "PersonCsvRow",
    "PersonRecord",
    "PersonResponse",
    "RunParameters",
    "ScenarioMode",
    "StepResult",
    "RunResult",
]
