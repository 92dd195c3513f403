"""Data models for the fetch layer."""

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from resilient_fetch.fetch.constants import (
    DEFAULT_BACKOFF_BASE_SECONDS,
    DEFAULT_BACKOFF_EXPONENT,
    HTTP_STATUS_NOT_MODIFIED,
)


T = TypeVar("T")


class FetchErrorClass(str, Enum):
    """Classification of failed attempts for logging and metrics.

    - CONNECTION_OPEN: Connection could not be opened or TLS policy installed
    - INVALID_CONNECTION: An absent or unbound connection was passed in
    - STREAM_READ: The response body could not be read or decoded
    - OPERATION: The wrapped operation raised or returned a failure
    - HTTP_STATUS: The response status was neither 200 nor 304
    """

    CONNECTION_OPEN = "CONNECTION_OPEN"
    INVALID_CONNECTION = "INVALID_CONNECTION"
    STREAM_READ = "STREAM_READ"
    OPERATION = "OPERATION"
    HTTP_STATUS = "HTTP_STATUS"


class RetryBudget(BaseModel):
    """Base delay and attempt ceiling for the backoff executor.

    The delay starts at ``base_delay_seconds`` and is multiplied by it after
    every failure until it exceeds ``base_delay_seconds ** retry_exponent``.
    A base of 1 would never grow, so configured budgets start at 2.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_delay_seconds: Annotated[int, Field(ge=2, le=60)] = DEFAULT_BACKOFF_BASE_SECONDS
    retry_exponent: Annotated[int, Field(ge=0, le=10)] = DEFAULT_BACKOFF_EXPONENT

    @property
    def max_delay_seconds(self) -> int:
        """Largest delay the executor will still sleep for."""
        return int(self.base_delay_seconds**self.retry_exponent)


@dataclass(frozen=True)
class Attempt(Generic[T]):
    """Explicit outcome of one operation attempt.

    Lets an operation whose legitimate result is ``False`` or ``None`` report
    success without colliding with the failure sentinels.
    """

    succeeded: bool
    value: T | None = None
    reason: str | None = None

    @classmethod
    def ok(cls, value: T) -> "Attempt[T]":
        """Build a successful attempt carrying ``value``."""
        return cls(succeeded=True, value=value)

    @classmethod
    def failed(cls, reason: str | None = None) -> "Attempt[T]":
        """Build a failed attempt."""
        return cls(succeeded=False, reason=reason)


@dataclass(frozen=True)
class BackoffOutcome(Generic[T]):
    """Result of one backoff executor invocation.

    Attributes:
        value: Last value produced by the operation (unwrapped from Attempt).
        succeeded: Whether the last attempt succeeded.
        attempts: Number of times the operation was invoked.
        total_sleep_seconds: Sum of completed backoff waits.
        cancelled: Whether the loop ended because a wait was cancelled.
    """

    value: T | None
    succeeded: bool
    attempts: int
    total_sleep_seconds: float
    cancelled: bool = False


class FetchResult(BaseModel):
    """Result of a composed conditional fetch.

    A 304 response yields ``not_modified=True`` and no body; a 200 response
    carries the decoded body, which may be the empty string.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: Annotated[str, Field(min_length=1, description="Requested URL")]
    status_code: int = Field(ge=100, le=599, description="HTTP status code")
    body: str | None = Field(default=None, description="Decoded response body")
    last_modified: int = Field(
        default=0, ge=0, description="Last-Modified of the response, ms since epoch"
    )

    @property
    def not_modified(self) -> bool:
        """Check if the server reported the resource unchanged."""
        return self.status_code == HTTP_STATUS_NOT_MODIFIED
