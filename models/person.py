from sqlalchemy import Column, BigInteger, String, Integer, Date, DateTime, Enum, Index
from datetime import datetime
from models.base import Base, ProcessingStatus


class Person(Base):
    """
    A person imported from CSV and enriched with a calculated age.

    Design:
    - email is the natural key; unique across the whole store
    - run_id attributes the row to the last pipeline run that wrote it
    - age stays NULL until the enrich step writes the row
    """
    __tablename__ = "persons"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)

    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    email = Column(String(320), nullable=False, unique=True)
    date_of_birth = Column(Date, nullable=False)

    # Derived field
    age = Column(Integer, nullable=True)

    # Run attribution and lifecycle
    run_id = Column(String(36), nullable=True, index=True)
    processing_status = Column(
        Enum(ProcessingStatus), default=ProcessingStatus.IMPORTED, nullable=False
    )

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_person_run_status", "run_id", "processing_status"),
    )

    def __repr__(self) -> str:
        return f"<Person {self.email} status={self.processing_status} age={self.age}>"
