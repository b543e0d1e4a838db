"""
Unit tests for fault classification and limits
"""

import pytest
from core.exceptions import (
    AgeCalculationRetryableError,
    AgeCalculationSkippableError,
    ErrorKind,
    NoValidRecordsError,
    PipelineException,
    SkipLimitExceededError,
)
from ingestion.fault_policy import FaultDecision, FaultPolicy, RetryExhaustedAction


class TestFaultPolicy:
    """Classification dispatches on the kind tag"""

    def test_classifies_by_kind(self):
        policy = FaultPolicy(skip_limit=10, retry_limit=3)

        assert policy.classify(AgeCalculationSkippableError("x")) == FaultDecision.SKIP
        assert policy.classify(AgeCalculationRetryableError("x")) == FaultDecision.RETRY
        assert policy.classify(NoValidRecordsError("x")) == FaultDecision.FATAL

    def test_untagged_exceptions_are_fatal(self):
        policy = FaultPolicy(skip_limit=10, retry_limit=3)

        assert policy.classify(RuntimeError("boom")) == FaultDecision.FATAL
        assert policy.classify(ValueError("bad")) == FaultDecision.FATAL

    def test_kind_tag_wins_over_type(self):
        class Transient(PipelineException):
            kind = ErrorKind.RETRYABLE

        assert FaultPolicy().classify(Transient("x")) == FaultDecision.RETRY

    def test_strict_policy_treats_everything_as_fatal(self):
        policy = FaultPolicy.strict()

        assert policy.classify(AgeCalculationSkippableError("x")) == FaultDecision.FATAL
        assert policy.classify(AgeCalculationRetryableError("x")) == FaultDecision.FATAL

    def test_retry_budget_is_per_item_reattempts(self):
        policy = FaultPolicy(retry_limit=3)

        assert policy.can_retry(1)
        assert policy.can_retry(3)
        assert not policy.can_retry(4)

    def test_retry_exhausted_action(self):
        assert FaultPolicy().decision_after_retries() == FaultDecision.FATAL
        assert (
            FaultPolicy(retry_exhausted=RetryExhaustedAction.SKIP).decision_after_retries()
            == FaultDecision.SKIP
        )

    def test_skip_limit_allows_exactly_limit_skips(self):
        policy = FaultPolicy(skip_limit=2)

        policy.check_skip_limit(2)
        with pytest.raises(SkipLimitExceededError) as exc_info:
            policy.check_skip_limit(3, AgeCalculationSkippableError("third"))

        assert exc_info.value.context["skip_limit"] == 2
        assert exc_info.value.original_exception is not None

    def test_negative_limits_rejected(self):
        with pytest.raises(ValueError):
            FaultPolicy(skip_limit=-1)
