"""Conditional request handling backed by persisted freshness markers.

Encapsulates the Last-Modified / If-Modified-Since round trip: the stored
marker is read before a request is sent and written after a response arrives.
"""

from typing import Protocol

import structlog

from resilient_fetch.fetch.connection import Connection
from resilient_fetch.fetch.constants import MARKER_UNKNOWN


logger = structlog.get_logger()


class FreshnessStore(Protocol):
    """Protocol for freshness marker storage.

    Maps a URL string to a Last-Modified timestamp in ms since the epoch.
    """

    def get_long(self, key: str, default: int) -> int:
        """Retrieve the marker stored for ``key``.

        Args:
            key: Canonical URL string.
            default: Value returned when nothing is stored.

        Returns:
            Stored marker, or ``default``.
        """
        ...

    def save_long(self, key: str, value: int) -> None:
        """Store ``value`` for ``key``, overwriting any prior marker.

        Args:
            key: Canonical URL string.
            value: Marker in ms since the epoch.
        """
        ...


class ConditionalRequestAnnotator:
    """Applies If-Modified-Since preconditions and persists Last-Modified.

    Handles:
    - Setting the precondition from a stored, strictly positive marker
    - Storing a response's strictly positive Last-Modified value
    - Leaving stored markers untouched when the server sends none
    """

    def __init__(
        self,
        store: FreshnessStore,
        log: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        """Initialize the annotator.

        Args:
            store: Storage backend for freshness markers.
            log: Bound logger.
        """
        self._store = store
        self._log = log or logger.bind(component="cache")

    def set_if_modified_since(self, connection: Connection | None) -> None:
        """Add an If-Modified-Since precondition if a marker is stored.

        Args:
            connection: Connection whose request has not been sent yet.
        """
        if connection is None or not connection.url:
            self._log.error("invalid_connection", operation="set_if_modified_since")
            return
        if connection.response is not None:
            self._log.error(
                "precondition_after_send",
                url=connection.url,
            )
            return

        last_modified = self._store.get_long(connection.url, MARKER_UNKNOWN)
        if last_modified > MARKER_UNKNOWN:
            connection.if_modified_since = last_modified

        self._log.debug(
            "cache_lookup",
            url=connection.url,
            if_modified_since=last_modified if last_modified > MARKER_UNKNOWN else None,
        )

    def save_last_modified(self, connection: Connection | None) -> None:
        """Store the response's Last-Modified value for the connection URL.

        A missing or non-positive value is logged and leaves the stored
        marker as it was.

        Args:
            connection: Connection whose response has been received.
        """
        if connection is None or not connection.url:
            self._log.error("invalid_connection", operation="save_last_modified")
            return

        last_modified = connection.last_modified
        if last_modified > MARKER_UNKNOWN:
            self._store.save_long(connection.url, last_modified)
            self._log.debug(
                "cache_update",
                url=connection.url,
                last_modified=last_modified,
            )
        else:
            self._log.warning("last_modified_missing", url=connection.url)
