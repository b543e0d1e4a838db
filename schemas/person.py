"""
Pydantic schemas for person records with validation
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import date, datetime
import re
from models.base import ProcessingStatus

DATE_FORMAT = "%Y-%m-%d"
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MAX_AGE_YEARS = 150


class PersonRecord(BaseModel):
    """
    A person travelling through the pipeline.

    Detached from the ORM so that chunk rollbacks never leave expired
    instances in the item stream. The enrichment service sets ``age`` in
    place; the upsert writer maps the record back onto a row by email.
    """

    email: str = Field(..., min_length=1, max_length=320)
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field(..., min_length=1, max_length=255)
    date_of_birth: date
    age: Optional[int] = None
    run_id: Optional[str] = None
    processing_status: ProcessingStatus = ProcessingStatus.IMPORTED

    class Config:
        from_attributes = True


class PersonCsvRow(BaseModel):
    """
    One CSV data line: FirstName, LastName, Email, DateOfBirth.

    Rejects empty fields, emails without '@', dates not in YYYY-MM-DD,
    dates in the future and dates more than 150 years ago.
    """

    first_name: str
    last_name: str
    email: str
    date_of_birth: date

    @field_validator("first_name", "last_name", "email", mode="before")
    @classmethod
    def strip_required(cls, v, info):
        v = "" if v is None else str(v).strip()
        if not v:
            raise ValueError(f"Empty required field '{info.field_name}'")
        return v

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        if "@" not in v:
            raise ValueError(f"Invalid email format: {v}")
        return v

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def parse_date_of_birth(cls, v):
        if isinstance(v, date):
            return v
        raw = "" if v is None else str(v).strip()
        if not raw:
            raise ValueError("Empty required field 'date_of_birth'")
        if not DATE_PATTERN.match(raw):
            raise ValueError(f"Invalid date format '{raw}'. Expected format: yyyy-MM-dd")
        try:
            return datetime.strptime(raw, DATE_FORMAT).date()
        except ValueError:
            raise ValueError(f"Invalid date format '{raw}'. Expected format: yyyy-MM-dd")

    @field_validator("date_of_birth")
    @classmethod
    def check_date_range(cls, v):
        today = date.today()
        if v > today:
            raise ValueError(f"Date of birth is in the future: {v.isoformat()}")
        try:
            oldest = today.replace(year=today.year - MAX_AGE_YEARS)
        except ValueError:
            # Feb 29th
            oldest = today.replace(year=today.year - MAX_AGE_YEARS, day=28)
        if v < oldest:
            raise ValueError(f"Date of birth seems unrealistic: {v.isoformat()}")
        return v

    def to_record(self) -> PersonRecord:
        return PersonRecord(
            email=self.email,
            first_name=self.first_name,
            last_name=self.last_name,
            date_of_birth=self.date_of_birth,
        )


class PersonResponse(BaseModel):
    """Schema for API responses"""
    id: int
    first_name: str
    last_name: str
    email: str
    date_of_birth: date
    age: Optional[int] = None
    run_id: Optional[str] = None
    processing_status: ProcessingStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        use_enum_values = True
