"""In-memory freshness marker store."""

import threading


class MemoryStore:
    """Dict-backed store implementing the ``FreshnessStore`` protocol."""

    def __init__(self, initial: dict[str, int] | None = None) -> None:
        self._values: dict[str, int] = dict(initial or {})
        self._lock = threading.Lock()

    def get_long(self, key: str, default: int) -> int:
        with self._lock:
            return self._values.get(key, default)

    def save_long(self, key: str, value: int) -> None:
        with self._lock:
            self._values[key] = value

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._values.pop(key, None) is not None

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._values)
