"""SQLite freshness marker store."""

import sqlite3
from datetime import UTC, datetime
from pathlib import Path

import structlog

from resilient_fetch.store.errors import StoreConnectionError
from resilient_fetch.store.migrations import CURRENT_VERSION, MigrationManager


logger = structlog.get_logger()


class StateStore:
    """SQLite store mapping URL strings to Last-Modified markers.

    Implements the ``FreshnessStore`` protocol. Reads and writes are single
    statements; concurrent fetches of one URL get last-writer-wins.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Initialize the state store.

        Args:
            db_path: Path to SQLite database file.
        """
        self._db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._log = logger.bind(component="store", db_path=str(self._db_path))

    @property
    def db_path(self) -> Path:
        """Get the database path."""
        return self._db_path

    @property
    def is_connected(self) -> bool:
        """Check if connected to database."""
        return self._conn is not None

    def connect(self) -> None:
        """Open the database, creating it and applying migrations as needed."""
        if self._conn is not None:
            return

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")

        applied = MigrationManager(self._conn).apply_migrations()
        self._log.info(
            "database_connected",
            schema_version=CURRENT_VERSION,
            migrations_applied=applied,
        )

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._log.info("database_closed")

    def __enter__(self) -> "StateStore":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()

    def _ensure_connected(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreConnectionError("Database not connected. Call connect() first.")
        return self._conn

    def get_long(self, key: str, default: int) -> int:
        """Get the marker stored for ``key``.

        Args:
            key: Canonical URL string.
            default: Value returned when nothing is stored.

        Returns:
            Stored marker, or ``default``.
        """
        conn = self._ensure_connected()
        row = conn.execute(
            "SELECT value FROM freshness_markers WHERE key = ?", (key,)
        ).fetchone()
        return int(row["value"]) if row is not None else default

    def save_long(self, key: str, value: int) -> None:
        """Store ``value`` for ``key``, replacing any prior marker.

        Args:
            key: Canonical URL string.
            value: Marker in ms since the epoch.
        """
        conn = self._ensure_connected()
        with conn:
            conn.execute(
                """
                INSERT INTO freshness_markers (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value, datetime.now(UTC).isoformat()),
            )
        self._log.debug("marker_saved", key=key, value=value)

    def delete(self, key: str) -> bool:
        """Remove the marker for ``key``.

        Returns:
            True if a marker was removed.
        """
        conn = self._ensure_connected()
        with conn:
            cursor = conn.execute("DELETE FROM freshness_markers WHERE key = ?", (key,))
        return cursor.rowcount > 0

    def keys(self) -> list[str]:
        """List stored keys in sorted order."""
        conn = self._ensure_connected()
        rows = conn.execute("SELECT key FROM freshness_markers ORDER BY key").fetchall()
        return [row["key"] for row in rows]
