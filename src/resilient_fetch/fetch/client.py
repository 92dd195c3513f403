"""Client composing secure connections, conditional requests, and backoff."""

from collections.abc import Callable
from typing import TypeVar

import httpx
import structlog

from resilient_fetch.fetch.backoff import BackoffExecutor, Waiter
from resilient_fetch.fetch.cache import ConditionalRequestAnnotator, FreshnessStore
from resilient_fetch.fetch.config import FetchConfig
from resilient_fetch.fetch.connection import Connection, open_connection
from resilient_fetch.fetch.constants import HTTP_STATUS_NOT_MODIFIED, HTTP_STATUS_OK
from resilient_fetch.fetch.errors import FetchLayerError
from resilient_fetch.fetch.metrics import FetchMetrics
from resilient_fetch.fetch.models import Attempt, FetchErrorClass, FetchResult
from resilient_fetch.fetch.reader import read_stream
from resilient_fetch.fetch.trust import TrustPolicy


logger = structlog.get_logger()

T = TypeVar("T")


class Client:
    """Functionality common to all callers fetching over HTTP.

    Provides:
    - Connections with an optional TLS trust policy
    - If-Modified-Since preconditions from stored freshness markers
    - Persisting Last-Modified values after a response
    - Body reading that reports failure as None
    - Exponential backoff around any operation

    No operation raises; failures are logged and returned as None or False.
    """

    def __init__(
        self,
        store: FreshnessStore,
        log: structlog.stdlib.BoundLogger | None = None,
        trust_policy: TrustPolicy | None = None,
        config: FetchConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            store: Storage for freshness markers.
            log: Log sink; defaults to a logger bound to this component.
            trust_policy: Trust policy for HTTPS connections.
            config: Fetch configuration.
            transport: Transport override passed to every connection.
        """
        self._config = config or FetchConfig()
        self._trust_policy = trust_policy
        self._transport = transport
        self._metrics = FetchMetrics.get_instance()
        self._log = log or logger.bind(component="fetch")
        self._annotator = ConditionalRequestAnnotator(store, self._log)
        self._executor = BackoffExecutor(self._log, self._metrics)

    @property
    def config(self) -> FetchConfig:
        """Fetch configuration in use."""
        return self._config

    def open_connection(self, url: str) -> Connection | None:
        """Open a connection to ``url``.

        Args:
            url: Absolute URL of the endpoint.

        Returns:
            An open Connection, or None if it could not be opened.
        """
        connection = open_connection(
            url,
            self._config,
            trust_policy=self._trust_policy,
            transport=self._transport,
            log=self._log,
        )
        if connection is None:
            self._metrics.record_failure(FetchErrorClass.CONNECTION_OPEN)
        return connection

    def set_if_modified_since(self, connection: Connection | None) -> None:
        """Add an If-Modified-Since header from the stored marker, if any."""
        if connection is None:
            self._metrics.record_failure(FetchErrorClass.INVALID_CONNECTION)
        self._annotator.set_if_modified_since(connection)

    def save_last_modified(self, connection: Connection | None) -> None:
        """Store the response's Last-Modified value, if positive."""
        if connection is None:
            self._metrics.record_failure(FetchErrorClass.INVALID_CONNECTION)
        self._annotator.save_last_modified(connection)

    def read_stream(self, connection: Connection | None) -> str | None:
        """Read the response body as text, or None on failure."""
        body = read_stream(connection, self._log)
        if body is None:
            self._metrics.record_failure(
                FetchErrorClass.INVALID_CONNECTION
                if connection is None
                else FetchErrorClass.STREAM_READ
            )
        return body

    def execute(
        self,
        operation: Callable[[], T | Attempt[T] | None],
        timeout: int,
        power: int,
        cancel_token: Waiter | None = None,
    ) -> T | None:
        """Execute ``operation`` with exponential backoff.

        Args:
            operation: Zero-argument callable performing one attempt.
            timeout: Base delay in seconds and growth factor.
            power: Number of doublings (for base 2) before giving up.
            cancel_token: Token whose cancellation ends the waits.

        Returns:
            The successful value, or the last failing value (None or False).
        """
        return self._executor.execute(operation, timeout, power, cancel_token)

    def fetch(
        self,
        url: str,
        timeout: int | None = None,
        power: int | None = None,
        cancel_token: Waiter | None = None,
    ) -> FetchResult | None:
        """Conditionally GET ``url`` with backoff.

        Each attempt opens a fresh connection, applies the stored
        precondition, and sends. A 200 response stores its Last-Modified
        value and returns the body; a 304 returns without a body.

        Args:
            url: Absolute URL of the endpoint.
            timeout: Base delay in seconds (defaults to the configured one).
            power: Backoff exponent (defaults to the configured one).
            cancel_token: Token whose cancellation ends the waits.

        Returns:
            FetchResult on success, None if every attempt failed.
        """
        budget = self._config.backoff
        result = self._executor.execute(
            lambda: self._fetch_once(url),
            timeout if timeout is not None else budget.base_delay_seconds,
            power if power is not None else budget.retry_exponent,
            cancel_token,
            record_failures=False,
        )
        self._log.info(
            "fetch_complete",
            url=url,
            status_code=result.status_code if result else None,
            not_modified=result.not_modified if result else None,
            chars=len(result.body) if result and result.body is not None else 0,
        )
        return result

    def _fetch_once(self, url: str) -> FetchResult | None:
        """Run a single open, annotate, send, and read sequence."""
        connection = self.open_connection(url)
        if connection is None:
            return None

        with connection:
            self.set_if_modified_since(connection)
            try:
                connection.send()
            except (httpx.HTTPError, FetchLayerError) as e:
                self._metrics.record_failure(FetchErrorClass.CONNECTION_OPEN)
                self._log.info(
                    "send_failed",
                    url=url,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                return None
            status_code = connection.status_code

            if status_code == HTTP_STATUS_NOT_MODIFIED:
                self._metrics.record_not_modified()
                return FetchResult(url=connection.url, status_code=status_code)

            if status_code != HTTP_STATUS_OK:
                self._metrics.record_failure(FetchErrorClass.HTTP_STATUS)
                self._log.info("unexpected_status", url=url, status_code=status_code)
                return None

            body = self.read_stream(connection)
            if body is None:
                return None
            self.save_last_modified(connection)
            return FetchResult(
                url=connection.url,
                status_code=status_code,
                body=body,
                last_modified=connection.last_modified,
            )
