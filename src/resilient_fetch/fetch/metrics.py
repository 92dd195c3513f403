"""Metrics collection for the fetch layer."""

from dataclasses import dataclass, field
from typing import ClassVar

from resilient_fetch.fetch.models import FetchErrorClass


@dataclass
class FetchMetrics:
    """Metrics for fetch and backoff operations.

    Singleton class that tracks attempts, retries, waits, cache outcomes,
    and failures by class.
    """

    attempts_total: int = 0
    retries_total: int = 0
    backoff_sleep_seconds_total: float = 0.0
    successes_total: int = 0
    not_modified_total: int = 0
    cancellations_total: int = 0
    failures_total: dict[str, int] = field(default_factory=dict)

    _instance: ClassVar["FetchMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "FetchMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_attempt(self) -> None:
        """Record one invocation of a wrapped operation."""
        self.attempts_total += 1

    def record_retry(self, sleep_seconds: float) -> None:
        """Record a completed backoff wait before a retry.

        Args:
            sleep_seconds: Length of the wait in seconds.
        """
        self.retries_total += 1
        self.backoff_sleep_seconds_total += sleep_seconds

    def record_success(self) -> None:
        """Record a successful attempt."""
        self.successes_total += 1

    def record_not_modified(self) -> None:
        """Record a 304 response."""
        self.not_modified_total += 1

    def record_cancellation(self) -> None:
        """Record a cancelled backoff wait."""
        self.cancellations_total += 1

    def record_failure(self, error_class: FetchErrorClass) -> None:
        """Record a failure.

        Args:
            error_class: Classification of the failure.
        """
        key = error_class.value
        self.failures_total[key] = self.failures_total.get(key, 0) + 1

    def to_dict(self) -> dict[str, int | float | dict[str, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "attempts_total": self.attempts_total,
            "retries_total": self.retries_total,
            "backoff_sleep_seconds_total": self.backoff_sleep_seconds_total,
            "successes_total": self.successes_total,
            "not_modified_total": self.not_modified_total,
            "cancellations_total": self.cancellations_total,
            "failures_total": dict(self.failures_total),
        }
