"""Response body reading."""

from contextlib import closing

import structlog

from resilient_fetch.fetch.connection import Connection


logger = structlog.get_logger()


def read_stream(
    connection: Connection | None,
    log: structlog.stdlib.BoundLogger | None = None,
) -> str | None:
    """Read and decode the whole response body of ``connection``.

    The stream is closed on every exit path. An empty body yields ``""``;
    any failure to open, read, or decode yields None.

    Args:
        connection: Connection to read from; the request is sent if needed.
        log: Bound logger.

    Returns:
        The decoded body, or None on failure.
    """
    log = log or logger.bind(component="reader")
    if connection is None:
        log.error("invalid_connection", operation="read_stream")
        return None

    try:
        with closing(connection.open_stream()) as stream:
            return stream.read().decode(stream.encoding)
    except Exception as e:  # noqa: BLE001
        log.warning("stream_read_failed", url=connection.url, error=str(e))
        return None
