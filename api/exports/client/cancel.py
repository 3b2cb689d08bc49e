from __future__ import annotations

import threading


class CancelToken:
    """Cooperative cancellation flag checked by the poll loop before each request.

    Waiting happens on the token itself, so ``cancel()`` also cuts a pending
    interval short.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; return True if cancelled meanwhile."""
        if timeout <= 0:
            return self._event.is_set()
        return self._event.wait(timeout)
