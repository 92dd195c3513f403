"""Connection handles and the secure connection opener.

A :class:`Connection` is bound to one endpoint for one attempt. It owns its
own ``httpx.Client`` so nothing is shared between attempts, and it keeps the
outgoing request mutable until :meth:`Connection.send` is called.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from email.utils import format_datetime, parsedate_to_datetime
from io import BytesIO
from typing import Any

import httpx
import structlog

from resilient_fetch.fetch.config import FetchConfig
from resilient_fetch.fetch.constants import (
    DEFAULT_CHARSET,
    DEFAULT_CHUNK_SIZE,
    HEADER_IF_MODIFIED_SINCE,
    HEADER_LAST_MODIFIED,
    HTTP_STATUS_BAD_REQUEST,
    MARKER_UNKNOWN,
    SECURE_SCHEME,
    TLS_HANDSHAKE_COMPLETE_SUFFIX,
)
from resilient_fetch.fetch.errors import HostnameVerificationError, StreamReadError
from resilient_fetch.fetch.trust import HostnameVerifier, TrustPolicy, pin_hostname_verifier


logger = structlog.get_logger()

SUPPORTED_SCHEMES = frozenset({"http", SECURE_SCHEME})

TraceCallback = Callable[[str, dict[str, Any]], None]


def format_http_date(timestamp_ms: int) -> str:
    """Encode a millisecond timestamp as an HTTP date (IMF-fixdate).

    Sub-second precision is dropped, as HTTP dates carry whole seconds.

    Args:
        timestamp_ms: Milliseconds since the epoch.

    Returns:
        Date such as ``Thu, 01 Jan 1970 00:00:01 GMT``.
    """
    moment = datetime.fromtimestamp(timestamp_ms // 1000, tz=UTC)
    return format_datetime(moment, usegmt=True)


def parse_http_date(value: str | None) -> int:
    """Decode an HTTP date header into milliseconds since the epoch.

    Args:
        value: Header value, possibly missing.

    Returns:
        Milliseconds since the epoch, or 0 if absent or unparseable.
    """
    if not value:
        return MARKER_UNKNOWN
    try:
        moment = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return MARKER_UNKNOWN
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return max(MARKER_UNKNOWN, int(moment.timestamp() * 1000))


def hostname_check_trace(host: str, verifier: HostnameVerifier) -> TraceCallback:
    """Build an httpcore trace callback that verifies the TLS session.

    The callback runs when a handshake with the endpoint completes, whether
    the connection is direct or tunnelled through a proxy, before the request
    is written. It raises to abort the attempt if ``verifier`` rejects it.

    Args:
        host: Endpoint host, used when the session reports none.
        verifier: Hostname verifier to consult.

    Returns:
        Callback suitable for the ``trace`` request extension.
    """

    def trace(event_name: str, info: dict[str, Any]) -> None:
        if not event_name.endswith(TLS_HANDSHAKE_COMPLETE_SUFFIX):
            return
        stream = info.get("return_value")
        session = stream.get_extra_info("ssl_object") if stream is not None else None
        reported = getattr(session, "server_hostname", None) or host
        if not verifier(reported, session):
            raise HostnameVerificationError(host)

    return trace


class BodyStream:
    """Readable view over a streamed response body."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response

    @property
    def encoding(self) -> str:
        """Charset declared by the response, or UTF-8."""
        return self._response.charset_encoding or DEFAULT_CHARSET

    def read(self) -> bytes:
        """Read the stream until it is exhausted."""
        buffer = BytesIO()
        for chunk in self._response.iter_bytes(chunk_size=DEFAULT_CHUNK_SIZE):
            buffer.write(chunk)
        return buffer.getvalue()

    def close(self) -> None:
        """Release the underlying response."""
        self._response.close()


class Connection:
    """An open, request-ready handle bound to a single endpoint and attempt."""

    def __init__(
        self,
        client: httpx.Client,
        request: httpx.Request,
        hostname_verifier: HostnameVerifier | None = None,
    ) -> None:
        """Initialize the connection.

        Args:
            client: Client owned exclusively by this connection.
            request: Prepared GET request for the endpoint.
            hostname_verifier: Pinned verifier installed on a secure handle.
        """
        self._client = client
        self._request = request
        self._hostname_verifier = hostname_verifier
        self._if_modified_since = MARKER_UNKNOWN
        self._response: httpx.Response | None = None

    @property
    def url(self) -> str:
        """Canonical string form of the endpoint."""
        return str(self._request.url)

    @property
    def host(self) -> str:
        """Host of the endpoint."""
        return self._request.url.host

    @property
    def is_secure(self) -> bool:
        """Whether the endpoint uses TLS."""
        return self._request.url.scheme == SECURE_SCHEME

    @property
    def hostname_verifier(self) -> HostnameVerifier | None:
        """Verifier installed by the opener, if a trust policy applied."""
        return self._hostname_verifier

    @property
    def request(self) -> httpx.Request:
        """Outgoing request."""
        return self._request

    @property
    def response(self) -> httpx.Response | None:
        """Response, once the request has been sent."""
        return self._response

    @property
    def if_modified_since(self) -> int:
        """Precondition timestamp in ms, or 0 when unset."""
        return self._if_modified_since

    @if_modified_since.setter
    def if_modified_since(self, timestamp_ms: int) -> None:
        if self._response is not None:
            msg = "Cannot set a precondition after the request was sent"
            raise RuntimeError(msg)
        self._if_modified_since = timestamp_ms
        if timestamp_ms > MARKER_UNKNOWN:
            self._request.headers[HEADER_IF_MODIFIED_SINCE] = format_http_date(
                timestamp_ms
            )
        else:
            self._request.headers.pop(HEADER_IF_MODIFIED_SINCE, None)

    @property
    def status_code(self) -> int:
        """HTTP status of the response, or 0 before sending."""
        return self._response.status_code if self._response is not None else 0

    @property
    def last_modified(self) -> int:
        """Last-Modified of the response in ms, or 0 when absent."""
        if self._response is None:
            return MARKER_UNKNOWN
        return parse_http_date(self._response.headers.get(HEADER_LAST_MODIFIED))

    def send(self) -> httpx.Response:
        """Send the request once and return the streamed response.

        Repeated calls return the same response.

        Returns:
            The response, with its body not yet read.
        """
        if self._response is None:
            self._response = self._client.send(self._request, stream=True)
        return self._response

    def open_stream(self) -> BodyStream:
        """Open the response body, sending the request first if needed.

        Returns:
            Stream over the response body.

        Raises:
            StreamReadError: If the response status is an error.
        """
        response = self.send()
        if response.status_code >= HTTP_STATUS_BAD_REQUEST:
            raise StreamReadError(self.url, response.status_code)
        return BodyStream(response)

    def close(self) -> None:
        """Release the response and the client."""
        if self._response is not None:
            self._response.close()
        self._client.close()

    def __enter__(self) -> "Connection":
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()


def open_connection(
    url: str,
    config: FetchConfig,
    trust_policy: TrustPolicy | None = None,
    transport: httpx.BaseTransport | None = None,
    log: structlog.stdlib.BoundLogger | None = None,
) -> Connection | None:
    """Open a connection to ``url``, applying ``trust_policy`` for HTTPS.

    For plain HTTP the trust policy is ignored. For HTTPS without a policy the
    platform TLS defaults apply unchanged. Any failure is logged and reported
    as None so the caller may retry.

    Args:
        url: Absolute URL of the endpoint.
        config: Fetch configuration.
        trust_policy: Optional certificate and hostname verification.
        transport: Optional transport override.
        log: Bound logger.

    Returns:
        An open Connection, or None if opening failed.
    """
    log = log or logger.bind(component="connection")
    host: str | None = None

    try:
        endpoint = httpx.URL(url)
        host = endpoint.host
        if endpoint.scheme not in SUPPORTED_SCHEMES:
            msg = f"Unsupported scheme: {endpoint.scheme!r}"
            raise ValueError(msg)

        secure = endpoint.scheme == SECURE_SCHEME
        client_kwargs: dict[str, Any] = {
            "timeout": config.timeout_seconds,
            "follow_redirects": config.follow_redirects,
            "headers": {"User-Agent": config.user_agent},
            "transport": transport,
        }
        if secure and trust_policy is not None:
            client_kwargs["verify"] = trust_policy.ssl_context

        client = httpx.Client(**client_kwargs)
        try:
            request = client.build_request("GET", endpoint)
            verifier: HostnameVerifier | None = None
            if secure and trust_policy is not None:
                ascii_host = endpoint.raw_host.decode("ascii")
                verifier = pin_hostname_verifier(
                    ascii_host, trust_policy.hostname_verifier
                )
                request.extensions["sni_hostname"] = ascii_host
                request.extensions["trace"] = hostname_check_trace(ascii_host, verifier)
        except Exception:
            client.close()
            raise

        if verifier is not None:
            log.info("secure_connection_established", host=host)
        return Connection(client, request, verifier)

    except Exception as e:  # noqa: BLE001
        log.warning("connection_open_failed", host=host or url, error=str(e))
        return None
