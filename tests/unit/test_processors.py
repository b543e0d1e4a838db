"""
Unit tests for the scenario processor and the age calculation service
"""

import pytest
from datetime import date
from core.exceptions import (
    AgeCalculationRetryableError,
    AgeCalculationSkippableError,
    EnrichmentBatchTooLargeError,
)
from ingestion.enrichment import AgeCalculationService
from ingestion.processors import ScenarioProcessor
from ingestion.step_context import StepContext
from schemas.person import PersonRecord
from schemas.pipeline import RunParameters, ScenarioMode


def person(n: int, dob: date = date(1990, 6, 15)) -> PersonRecord:
    return PersonRecord(
        email=f"person{n}@example.com",
        first_name=f"First{n}",
        last_name=f"Last{n}",
        date_of_birth=dob,
    )


class TestScenarioProcessor:

    @pytest.mark.asyncio
    async def test_success_passes_records_through(self):
        processor = ScenarioProcessor(RunParameters(scenario=ScenarioMode.SUCCESS))
        record = person(1)

        assert await processor.process(record, StepContext("enrich")) is record

    @pytest.mark.asyncio
    async def test_partial_skips_every_nth_record(self):
        processor = ScenarioProcessor(RunParameters(scenario="partial", skip_every=3))
        context = StepContext("enrich")
        outcomes = []

        for n in range(1, 8):
            try:
                await processor.process(person(n), context)
                outcomes.append("ok")
            except AgeCalculationSkippableError:
                outcomes.append("skip")

        assert outcomes == ["ok", "ok", "skip", "ok", "ok", "skip", "ok"]

    @pytest.mark.asyncio
    async def test_partial_without_skip_every_never_skips(self):
        processor = ScenarioProcessor(RunParameters(scenario=ScenarioMode.PARTIAL, skip_every=0))

        for n in range(1, 5):
            await processor.process(person(n), StepContext("enrich"))

    @pytest.mark.asyncio
    async def test_fail_raises_unclassified_error(self):
        processor = ScenarioProcessor(RunParameters(scenario=ScenarioMode.FAIL))

        with pytest.raises(RuntimeError):
            await processor.process(person(1), StepContext("enrich"))

    @pytest.mark.asyncio
    async def test_retryable_fails_configured_attempts_per_email(self):
        processor = ScenarioProcessor(RunParameters(scenario=ScenarioMode.RETRYABLE, retry_attempts=2))
        context = StepContext("enrich")
        record = person(1)

        for _ in range(2):
            with pytest.raises(AgeCalculationRetryableError):
                await processor.process(record, context)

        assert await processor.process(record, context) is record
        # Another email has its own budget
        with pytest.raises(AgeCalculationRetryableError):
            await processor.process(person(2), context)


class TestAgeCalculationService:

    def test_calculate_age_respects_birthday(self):
        service = AgeCalculationService(latency_ms=0, clock=lambda: date(2024, 6, 15))

        assert service.calculate_age(date(1990, 6, 15)) == 34
        assert service.calculate_age(date(1990, 6, 16)) == 33
        assert service.calculate_age(date(2024, 6, 15)) == 0

    @pytest.mark.asyncio
    async def test_calculate_ages_sets_age_in_place_with_one_call(self):
        service = AgeCalculationService(latency_ms=0, clock=lambda: date(2024, 1, 1))
        records = [person(1, date(1998, 5, 15)), person(2, date(1985, 12, 10))]

        result = await service.calculate_ages(records)

        assert result is records
        assert [r.age for r in records] == [25, 38]
        assert service.calls == 1

    @pytest.mark.asyncio
    async def test_oversized_batch_is_rejected(self):
        service = AgeCalculationService(latency_ms=0, max_batch_size=2)

        with pytest.raises(EnrichmentBatchTooLargeError) as exc_info:
            await service.calculate_ages([person(n) for n in range(3)])

        assert exc_info.value.context["batch_size"] == 3
        assert service.calls == 0

    @pytest.mark.asyncio
    async def test_empty_batch_makes_no_call(self):
        service = AgeCalculationService(latency_ms=0)

        assert await service.calculate_ages([]) == []
        assert service.calls == 0
