"""Cooperative cancellation for backoff waits.

The backoff executor suspends between attempts with :meth:`CancellationToken.wait`.
Calling :meth:`CancellationToken.cancel` from any thread wakes the waiter and
ends the retry loop after the current attempt.
"""

import threading


class CancellationToken:
    """Thread-safe token whose wait can be interrupted by ``cancel``.

    Examples:
        >>> token = CancellationToken()
        >>> token.wait(0)
        False
        >>> token.cancel()
        >>> token.wait(30)
        True
    """

    def __init__(self) -> None:
        """Initialize a token that is not cancelled."""
        self._event = threading.Event()

    def cancel(self) -> None:
        """Signal cancellation, waking any thread blocked in ``wait``."""
        self._event.set()

    def is_cancelled(self) -> bool:
        """Check if cancellation has been requested."""
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep for ``seconds`` unless cancelled first.

        Args:
            seconds: How long to sleep.

        Returns:
            True if the wait ended because of cancellation.
        """
        return self._event.wait(timeout=seconds)

    def reset(self) -> None:
        """Clear a previous cancellation so the token can be reused."""
        self._event.clear()
