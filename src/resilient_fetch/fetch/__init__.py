"""Resilient HTTP fetch layer.

This module provides:
- Connections with an optional TLS trust policy pinned to the endpoint host
- If-Modified-Since / Last-Modified conditional requests
- Body reading with deterministic stream cleanup
- Exponential backoff with cancellable waits
"""

from resilient_fetch.fetch.backoff import BackoffExecutor, is_success
from resilient_fetch.fetch.cache import ConditionalRequestAnnotator, FreshnessStore
from resilient_fetch.fetch.cancellation import CancellationToken
from resilient_fetch.fetch.client import Client
from resilient_fetch.fetch.config import FetchConfig
from resilient_fetch.fetch.connection import (
    Connection,
    format_http_date,
    open_connection,
    parse_http_date,
)
from resilient_fetch.fetch.constants import (
    DEFAULT_BACKOFF_BASE_SECONDS,
    DEFAULT_BACKOFF_EXPONENT,
    HEADER_IF_MODIFIED_SINCE,
    HEADER_LAST_MODIFIED,
    MAX_BACKOFF_TIMEOUT,
)
from resilient_fetch.fetch.errors import (
    FetchLayerError,
    HostnameVerificationError,
    StreamReadError,
)
from resilient_fetch.fetch.metrics import FetchMetrics
from resilient_fetch.fetch.models import (
    Attempt,
    BackoffOutcome,
    FetchErrorClass,
    FetchResult,
    RetryBudget,
)
from resilient_fetch.fetch.reader import read_stream
from resilient_fetch.fetch.trust import (
    TrustPolicy,
    pin_hostname_verifier,
    platform_hostname_verifier,
)


__all__ = [
    # Client
    "Client",
    # Components
    "BackoffExecutor",
    "CancellationToken",
    "ConditionalRequestAnnotator",
    "Connection",
    "FreshnessStore",
    "open_connection",
    "read_stream",
    "is_success",
    # Trust
    "TrustPolicy",
    "pin_hostname_verifier",
    "platform_hostname_verifier",
    # Config
    "FetchConfig",
    "RetryBudget",
    # Models
    "Attempt",
    "BackoffOutcome",
    "FetchErrorClass",
    "FetchResult",
    # Errors
    "FetchLayerError",
    "HostnameVerificationError",
    "StreamReadError",
    # Constants
    "DEFAULT_BACKOFF_BASE_SECONDS",
    "DEFAULT_BACKOFF_EXPONENT",
    "HEADER_IF_MODIFIED_SINCE",
    "HEADER_LAST_MODIFIED",
    "MAX_BACKOFF_TIMEOUT",
    # Helpers
    "format_http_date",
    "parse_http_date",
    # Metrics
    "FetchMetrics",
]
