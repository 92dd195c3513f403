"""Exceptions for the freshness marker store.

Infrastructure errors (database issues) are separated from the fetch layer,
which never sees them unless the store itself fails.
"""


class StateStoreError(Exception):
    """Base exception for all state store errors."""


class StoreConnectionError(StateStoreError):
    """Raised when the database connection is missing or unusable."""

    def __init__(self, message: str = "Database not connected") -> None:
        """Initialize the connection error.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)


class MigrationError(StateStoreError):
    """Raised when a schema migration fails."""

    def __init__(self, version: int, message: str) -> None:
        """Initialize the migration error.

        Args:
            version: The migration version that failed.
            message: Human-readable error message.
        """
        self.version = version
        super().__init__(f"Migration {version} failed: {message}")
