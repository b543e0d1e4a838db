"""
Skip/retry policy for item-level failures.

Classification dispatches on the ``kind`` tag carried by pipeline
exceptions (core.exceptions.ErrorKind), never on the exception type:

    SKIPPABLE → SKIP   drop the item, count toward skip_limit
    RETRYABLE → RETRY  re-invoke the failing stage, up to retry_limit
                       re-attempts per item
    anything  → FATAL  abort the step

When an item exhausts its retries the policy's ``retry_exhausted`` action
decides between failing the step (default) and skipping the item.
"""

from typing import Any, Dict, Optional
import enum

from core.exceptions import ErrorKind, SkipLimitExceededError


class FaultDecision(str, enum.Enum):
    SKIP = "SKIP"
    RETRY = "RETRY"
    FATAL = "FATAL"


class RetryExhaustedAction(str, enum.Enum):
    FAIL = "FAIL"
    SKIP = "SKIP"


class FaultPolicy:
    """
    Bounded error tolerance for one step.

    Attributes:
        skip_limit: Maximum cumulative skips per step; one more fails the step
        retry_limit: Maximum re-attempts per item (total attempts = 1 + retry_limit)
        retry_exhausted: What to do with an item that is still failing after
            its last retry
        fault_tolerant: When False every error is FATAL
    """

    def __init__(
        self,
        skip_limit: int = 0,
        retry_limit: int = 0,
        retry_exhausted: RetryExhaustedAction = RetryExhaustedAction.FAIL,
        fault_tolerant: bool = True
    ):
        if skip_limit < 0 or retry_limit < 0:
            raise ValueError("skip_limit and retry_limit must be >= 0")
        self.skip_limit = skip_limit
        self.retry_limit = retry_limit
        self.retry_exhausted = retry_exhausted
        self.fault_tolerant = fault_tolerant

    @classmethod
    def strict(cls) -> "FaultPolicy":
        """No skips, no retries: the first error fails the step."""
        return cls(fault_tolerant=False)

    def classify(self, exc: BaseException) -> FaultDecision:
        if not self.fault_tolerant:
            return FaultDecision.FATAL

        kind = getattr(exc, "kind", ErrorKind.FATAL)
        if not isinstance(kind, ErrorKind):
            return FaultDecision.FATAL

        if kind == ErrorKind.SKIPPABLE:
            return FaultDecision.SKIP
        if kind == ErrorKind.RETRYABLE:
            return FaultDecision.RETRY
        return FaultDecision.FATAL

    def can_retry(self, attempt: int) -> bool:
        """``attempt`` is the number of failed attempts so far for one item."""
        return attempt <= self.retry_limit

    def decision_after_retries(self) -> FaultDecision:
        if self.retry_exhausted == RetryExhaustedAction.SKIP:
            return FaultDecision.SKIP
        return FaultDecision.FATAL

    def check_skip_limit(self, skip_count: int, cause: Optional[BaseException] = None) -> None:
        """Raise once the cumulative skip count goes past skip_limit."""
        if skip_count > self.skip_limit:
            raise SkipLimitExceededError(
                f"Skip limit of {self.skip_limit} exceeded",
                context={"skip_count": skip_count, "skip_limit": self.skip_limit},
                original_exception=cause if isinstance(cause, Exception) else None
            )

    def describe(self) -> Dict[str, Any]:
        return {
            "fault_tolerant": self.fault_tolerant,
            "skip_limit": self.skip_limit,
            "retry_limit": self.retry_limit,
            "retry_exhausted": self.retry_exhausted.value,
        }

    def __repr__(self) -> str:
        return f"<FaultPolicy {self.describe()}>"
