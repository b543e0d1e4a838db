"""
End-to-end pipeline runs against a temporary SQLite database
"""

import asyncio
import pytest
from pathlib import Path
from sqlalchemy.exc import OperationalError
from core.exceptions import PipelineConfigurationError
from ingestion.enrichment import AgeCalculationService
from ingestion.runner import ENRICH_STEP, EXPORT_STEP, INGEST_STEP
from models.base import ProcessingStatus, RunStatus, StepStatus
from repositories.person_repository import PersonRepository
from repositories.run_repository import RunRepository
from schemas.pipeline import RunParameters, ScenarioMode
from tests.conftest import EXPECTED_LINES, TODAY, write_csv


def read_lines(path: str):
    return Path(path).read_text(encoding="utf-8").splitlines()


async def stored_fields(session_factory):
    async with session_factory() as session:
        persons = await PersonRepository(session).find_all()
        return {
            p.email: (p.first_name, p.last_name, p.date_of_birth, p.age, p.processing_status)
            for p in persons
        }


async def statuses(session_factory):
    async with session_factory() as session:
        persons = await PersonRepository(session).find_all()
        return {p.first_name: p.processing_status for p in persons}


@pytest.mark.asyncio
async def test_success_run_exports_every_person(make_runner, sample_csv, output_path, session_factory):
    """All three steps complete and the file holds one line per person."""
    runner = make_runner()

    result = await runner.run(RunParameters(csv_path=sample_csv))

    assert result.status == RunStatus.COMPLETED
    assert result.output_file == output_path
    assert read_lines(output_path) == EXPECTED_LINES
    assert [s.step_name for s in result.steps] == [INGEST_STEP, ENRICH_STEP, EXPORT_STEP]
    assert result.step(INGEST_STEP).inserted_count == 5
    assert result.step(ENRICH_STEP).updated_count == 5
    assert result.step(EXPORT_STEP).write_count == 5
    assert result.rejected_by_sweep == 0

    assert set((await statuses(session_factory)).values()) == {ProcessingStatus.PROCESSED}

    async with session_factory() as session:
        run = await RunRepository(session).get(result.run_id)
        assert run.status == RunStatus.COMPLETED
        assert run.parameters["csv_path"] == sample_csv
        assert [step.step_name for step in run.steps] == [INGEST_STEP, ENRICH_STEP, EXPORT_STEP]
        assert all(step.status == StepStatus.COMPLETED for step in run.steps)
        assert run.steps[0].inserted_count == 5


@pytest.mark.asyncio
async def test_fail_scenario_stops_before_export(make_runner, sample_csv, output_path, session_factory):
    runner = make_runner()

    result = await runner.run(RunParameters(scenario=ScenarioMode.FAIL, csv_path=sample_csv))

    assert result.status == RunStatus.FAILED
    assert result.output_file is None
    assert result.step(ENRICH_STEP).status == StepStatus.FAILED
    assert result.step(ENRICH_STEP).error_type == "RuntimeError"
    assert result.step(EXPORT_STEP) is None
    assert not Path(output_path).exists()
    # The failed enrich chunk is rolled back; nothing reaches PROCESSED
    assert set((await statuses(session_factory)).values()) == {ProcessingStatus.IMPORTED}

    async with session_factory() as session:
        run = await RunRepository(session).get(result.run_id)
        assert run.status == RunStatus.FAILED
        assert len(run.steps) == 2
        assert run.error_message


@pytest.mark.asyncio
async def test_partial_scenario_rejects_skipped_persons(make_runner, sample_csv, output_path, session_factory):
    runner = make_runner()

    result = await runner.run(
        RunParameters(scenario=ScenarioMode.PARTIAL, skip_every=2, csv_path=sample_csv)
    )

    assert result.status == RunStatus.COMPLETED
    enrich = result.step(ENRICH_STEP)
    assert enrich.process_skip_count == 2
    assert enrich.write_count == 3
    assert enrich.skip_summary == "Skipped 2 items during processing (see logs for item details)"
    assert [item.email for item in enrich.skipped_items] == [
        "jane.smith@example.com",
        "alice.brown@example.com",
    ]

    assert read_lines(output_path) == ["John,25", "Bob,38", "Charlie,35"]
    assert await statuses(session_factory) == {
        "John": ProcessingStatus.PROCESSED,
        "Jane": ProcessingStatus.REJECTED,
        "Bob": ProcessingStatus.PROCESSED,
        "Alice": ProcessingStatus.REJECTED,
        "Charlie": ProcessingStatus.PROCESSED,
    }


@pytest.mark.asyncio
async def test_partial_scenario_over_skip_limit_fails(make_runner, sample_csv, output_path, session_factory):
    runner = make_runner(skip_limit=1)

    result = await runner.run(
        RunParameters(scenario=ScenarioMode.PARTIAL, skip_every=2, csv_path=sample_csv)
    )

    assert result.status == RunStatus.FAILED
    assert result.step(ENRICH_STEP).error_type == "SkipLimitExceededError"
    assert not Path(output_path).exists()
    # The first skip never committed, so nobody was rejected
    assert ProcessingStatus.REJECTED not in (await statuses(session_factory)).values()


@pytest.mark.asyncio
async def test_retryable_scenario_recovers_within_retry_limit(make_runner, sample_csv, output_path):
    runner = make_runner(retry_limit=3)

    result = await runner.run(
        RunParameters(scenario=ScenarioMode.RETRYABLE, retry_attempts=2, csv_path=sample_csv)
    )

    assert result.status == RunStatus.COMPLETED
    assert result.step(ENRICH_STEP).retry_count == 10
    assert result.step(ENRICH_STEP).skip_count == 0
    assert read_lines(output_path) == EXPECTED_LINES


@pytest.mark.asyncio
async def test_retryable_scenario_beyond_retry_limit_fails(make_runner, sample_csv, output_path):
    runner = make_runner(retry_limit=3)

    result = await runner.run(
        RunParameters(scenario=ScenarioMode.RETRYABLE, retry_attempts=4, csv_path=sample_csv)
    )

    assert result.status == RunStatus.FAILED
    enrich = result.step(ENRICH_STEP)
    assert enrich.error_type == "RetryLimitExceededError"
    assert enrich.retry_count == 3
    assert not Path(output_path).exists()


@pytest.mark.asyncio
async def test_export_only_includes_persons_of_the_current_run(make_runner, sample_csv, output_path, tmp_path):
    await make_runner().run(RunParameters(csv_path=sample_csv))

    second_csv = write_csv(
        tmp_path / "second.csv",
        [
            ("Dave", "Miller", "dave.miller@example.com", "2000-01-01"),
            ("Eve", "Davis", "eve.davis@example.com", "1995-07-04"),
        ],
    )
    result = await make_runner().run(RunParameters(csv_path=second_csv))

    assert result.status == RunStatus.COMPLETED
    assert read_lines(output_path) == ["Dave,24", "Eve,28"]


@pytest.mark.asyncio
async def test_reingesting_the_same_file_updates_in_place(make_runner, sample_csv, output_path, db_session, session_factory):
    await make_runner().run(RunParameters(csv_path=sample_csv))
    before = await stored_fields(session_factory)
    result = await make_runner().run(RunParameters(csv_path=sample_csv))

    ingest = result.step(INGEST_STEP)
    assert ingest.inserted_count == 0
    assert ingest.updated_count == 5
    assert await PersonRepository(db_session).count() == 5
    assert read_lines(output_path) == EXPECTED_LINES
    assert await stored_fields(session_factory) == before


@pytest.mark.asyncio
async def test_invalid_csv_lines_are_reported_not_ingested(make_runner, tmp_path, output_path):
    csv_path = write_csv(
        tmp_path / "mixed.csv",
        [
            ("John", "Doe", "john.doe@example.com", "1998-05-15"),
            ("Bad", "Email", "not-an-email", "1990-01-01"),
            ("Bad", "Date", "bad.date@example.com", "15/05/1998"),
            ("Jane", "Smith", "jane.smith@example.com", "1993-08-22"),
        ],
    )

    result = await make_runner().run(RunParameters(csv_path=csv_path))

    assert result.status == RunStatus.COMPLETED
    ingest = result.step(INGEST_STEP)
    assert ingest.read_count == 2
    assert len(ingest.execution_context["validation.errors"]) == 2
    assert read_lines(output_path) == ["John,25", "Jane,30"]


@pytest.mark.asyncio
async def test_missing_csv_fails_ingest(make_runner, tmp_path, monkeypatch):
    monkeypatch.setattr("ingestion.readers.csv_reader.FALLBACK_PATHS", [])
    monkeypatch.setattr("core.config.settings.INPUT_CSV_PATH", str(tmp_path / "absent.csv"))

    result = await make_runner().run(RunParameters(csv_path=str(tmp_path / "missing.csv")))

    assert result.status == RunStatus.FAILED
    assert result.step(INGEST_STEP).error_type == "CsvSourceNotFoundError"
    assert len(result.steps) == 1


@pytest.mark.asyncio
async def test_stop_request_stops_at_chunk_boundary(make_runner, sample_csv, session_factory):
    stop_event = asyncio.Event()
    stop_event.set()

    result = await make_runner(stop_event=stop_event).run(RunParameters(csv_path=sample_csv))

    assert result.status == RunStatus.STOPPED
    assert result.step(INGEST_STEP).status == StepStatus.STOPPED
    assert result.step(INGEST_STEP).write_count == 0


@pytest.mark.asyncio
async def test_chunk_size_above_service_limit_is_rejected_before_run(make_runner, db_session):
    runner = make_runner(
        service=AgeCalculationService(latency_ms=0, max_batch_size=10, clock=lambda: TODAY),
        enrich_chunk_size=50,
    )

    with pytest.raises(PipelineConfigurationError):
        await runner.run(RunParameters())

    assert await RunRepository(db_session).list_recent() == []


@pytest.mark.asyncio
async def test_enrichment_is_called_once_per_chunk(make_runner, sample_csv, age_service):
    result = await make_runner(enrich_chunk_size=2).run(RunParameters(csv_path=sample_csv))

    assert result.status == RunStatus.COMPLETED
    assert age_service.calls == 3
    assert result.step(ENRICH_STEP).commit_count == 3


@pytest.mark.asyncio
async def test_database_error_outside_a_step_fails_the_run(make_runner, sample_csv, output_path, session_factory, monkeypatch):
    async def unavailable(self, run_id):
        raise OperationalError("UPDATE persons", {}, Exception("database is locked"))

    monkeypatch.setattr(PersonRepository, "mark_all_non_processed_as_rejected", unavailable)

    result = await make_runner().run(RunParameters(csv_path=sample_csv))

    assert result.status == RunStatus.FAILED
    assert "database is locked" in result.error_message
    assert result.step(EXPORT_STEP) is None
    assert not Path(output_path).exists()

    async with session_factory() as session:
        run = await RunRepository(session).get(result.run_id)
        assert run.status == RunStatus.FAILED
        assert run.completed_at is not None
        assert [step.step_name for step in run.steps] == [INGEST_STEP, ENRICH_STEP]
