"""
Pytest configuration and fixtures
"""

import os

# Must be set before core.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"

import pytest
import pytest_asyncio
from datetime import date
from pathlib import Path
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool
from models.base import Base
from ingestion.enrichment import AgeCalculationService
from ingestion.runner import PipelineRunner
from typing import AsyncGenerator

# Ages below are computed against this date
TODAY = date(2024, 1, 1)

SAMPLE_PERSONS = [
    ("John", "Doe", "john.doe@example.com", "1998-05-15"),
    ("Jane", "Smith", "jane.smith@example.com", "1993-08-22"),
    ("Bob", "Johnson", "bob.johnson@example.com", "1985-12-10"),
    ("Alice", "Brown", "alice.brown@example.com", "1990-03-28"),
    ("Charlie", "Wilson", "charlie.wilson@example.com", "1988-11-05"),
]

EXPECTED_LINES = [
    "John,25",
    "Jane,30",
    "Bob,38",
    "Alice,33",
    "Charlie,35",
]


def write_csv(path: Path, rows, header: str = "FirstName,LastName,Email,DateOfBirth") -> str:
    """Write a person CSV; rows may be tuples or raw lines."""
    lines = [header]
    for row in rows:
        lines.append(row if isinstance(row, str) else ",".join(row))
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return str(path)


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create test database engine"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,  # Disable connection pooling for tests
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables after test
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def age_service():
    """Age service without latency, pinned to TODAY"""
    return AgeCalculationService(latency_ms=0, max_batch_size=500, clock=lambda: TODAY)


@pytest.fixture
def sample_csv(tmp_path):
    """The five sample persons"""
    return write_csv(tmp_path / "persons.csv", SAMPLE_PERSONS)


@pytest.fixture
def output_path(tmp_path):
    return str(tmp_path / "output" / "persons_with_age.txt")


@pytest.fixture
def make_runner(db_session, age_service, output_path):
    """Build a PipelineRunner over the test session; keyword overrides pass through."""

    def _make(**overrides):
        options = {"service": age_service, "output_path": output_path}
        options.update(overrides)
        return PipelineRunner(db_session, **options)

    return _make
