"""
Unit tests for step statistics
"""

from ingestion.step_context import StepContext
from models.base import StepStatus


class TestStepContext:

    def test_staged_counters_merge_on_commit_and_drop_on_discard(self):
        context = StepContext("enrich", run_id="run-1")

        context.stage("inserted", 2)
        context.discard_chunk()
        context.stage("inserted", 3)
        context.commit_chunk()

        assert context.count("inserted") == 3

    def test_finish_records_skip_summary_only_when_skipping(self):
        clean = StepContext("ingest")
        clean.finish()
        assert "skip.summary" not in clean.execution_context

        skipping = StepContext("enrich")
        skipping.increment("process_skip", 2)
        skipping.increment("write_skip")
        skipping.finish()
        assert skipping.execution_context["skip.summary"] == (
            "Skipped 3 items during processing (see logs for item details)"
        )

    def test_to_result_freezes_counters(self):
        context = StepContext("export")
        context.increment("read", 4)
        context.increment("write", 4)
        context.increment("commit")
        context.execution_context["written.count"] = 4
        context.finish()

        result = context.to_result(StepStatus.COMPLETED)
        context.increment("read")

        assert result.read_count == 4
        assert result.written_count == 4
        assert result.duration_ms is not None
        assert result.error_message is None
