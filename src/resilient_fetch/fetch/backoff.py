"""Exponential backoff executor.

Retries a fallible operation, sleeping between failures for a delay that is
multiplied by the base after every wait. The loop ends on the first success,
when the delay exceeds ``base ** power``, or when the wait is cancelled.

A base of 1 never grows, so such a loop only ends on success or cancellation.
"""

from collections.abc import Callable
from typing import Protocol, TypeVar

import structlog

from resilient_fetch.fetch.cancellation import CancellationToken
from resilient_fetch.fetch.metrics import FetchMetrics
from resilient_fetch.fetch.models import Attempt, BackoffOutcome, FetchErrorClass


logger = structlog.get_logger()

T = TypeVar("T")


class Waiter(Protocol):
    """Anything that can sleep and report cancellation."""

    def wait(self, seconds: float) -> bool:
        """Sleep for ``seconds``; return True if cancelled."""
        ...


def is_success(result: object) -> bool:
    """Decide whether an operation result counts as success.

    An ``Attempt`` states it explicitly. Any other value succeeds unless it is
    None or ``False``.
    """
    if isinstance(result, Attempt):
        return result.succeeded
    return result is not None and result is not False


def _unwrap(result: object) -> object:
    if isinstance(result, Attempt):
        return result.value
    return result


class BackoffExecutor:
    """Runs an operation with exponential backoff between failed attempts.

    Attempts are strictly sequential. Nothing raised by the operation or by
    the wait escapes; failures come back as the last value held.
    """

    def __init__(
        self,
        log: structlog.stdlib.BoundLogger | None = None,
        metrics: FetchMetrics | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            log: Bound logger.
            metrics: Metrics sink (defaults to the shared instance).
        """
        self._log = log or logger.bind(component="backoff")
        self._metrics = metrics or FetchMetrics.get_instance()

    def run(
        self,
        operation: Callable[[], T | Attempt[T] | None],
        timeout: int,
        power: int,
        cancel_token: Waiter | None = None,
        record_failures: bool = True,
    ) -> BackoffOutcome[T]:
        """Run ``operation`` until it succeeds or the budget is spent.

        Args:
            operation: Zero-argument callable performing one attempt.
            timeout: Base delay in seconds, also the growth factor.
            power: Exponent giving the largest delay, ``timeout ** power``.
            cancel_token: Waiter used for the sleeps between attempts.
            record_failures: Count failed results as OPERATION failures. Callers
                that classify their own failures pass False; exceptions raised
                by the operation are counted either way.

        Returns:
            Outcome holding the last value and how the loop ended.
        """
        waiter = cancel_token if cancel_token is not None else CancellationToken()
        base_timeout = timeout
        max_timeout = base_timeout**power
        delay = timeout
        result: object = None
        attempts = 0
        slept = 0.0
        cancelled = False

        while delay <= max_timeout:
            attempts += 1
            self._metrics.record_attempt()
            raised = False
            try:
                result = operation()
            except Exception:
                self._log.exception("request_failed", attempt=attempts)
                result = None
                raised = True

            if is_success(result):
                self._metrics.record_success()
                break

            if raised or record_failures:
                self._metrics.record_failure(FetchErrorClass.OPERATION)
            self._log.info(
                "backoff_waiting",
                attempt=attempts,
                delay_seconds=delay,
                max_delay_seconds=max_timeout,
            )
            try:
                cancelled = waiter.wait(delay)
            except Exception:
                self._log.exception("backoff_wait_failed", attempt=attempts)
                cancelled = True
            if cancelled:
                self._metrics.record_cancellation()
                self._log.warning("backoff_cancelled", attempt=attempts)
                break

            slept += delay
            self._metrics.record_retry(delay)
            delay = delay * base_timeout

        return BackoffOutcome(
            value=_unwrap(result),  # type: ignore[arg-type]
            succeeded=is_success(result),
            attempts=attempts,
            total_sleep_seconds=slept,
            cancelled=cancelled,
        )

    def execute(
        self,
        operation: Callable[[], T | Attempt[T] | None],
        timeout: int,
        power: int,
        cancel_token: Waiter | None = None,
        record_failures: bool = True,
    ) -> T | None:
        """Run ``operation`` with backoff and return only its last value.

        None or ``False`` signals that no attempt succeeded.
        """
        return self.run(operation, timeout, power, cancel_token, record_failures).value
