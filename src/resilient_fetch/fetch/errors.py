"""Exceptions raised inside the fetch layer.

These never escape the public ``Client`` operations; they are raised at the
points where a lower layer fails and converted to sentinel values plus a log
record by the operation that catches them.
"""


class FetchLayerError(Exception):
    """Base exception for errors raised within the fetch layer."""


class HostnameVerificationError(FetchLayerError):
    """Raised when the pinned hostname verifier rejects a TLS session."""

    def __init__(self, host: str) -> None:
        """Initialize the error.

        Args:
            host: The endpoint host the session was verified against.
        """
        self.host = host
        super().__init__(f"Hostname verification failed for {host}")


class StreamReadError(FetchLayerError):
    """Raised when a response body cannot be opened for reading."""

    def __init__(self, url: str, status_code: int) -> None:
        """Initialize the error.

        Args:
            url: URL of the connection whose stream was requested.
            status_code: HTTP status that prevented reading.
        """
        self.url = url
        self.status_code = status_code
        super().__init__(f"Cannot read body of {url} (HTTP {status_code})")
