"""
Cooperative cancellation for long-running executions.
"""

import threading

from .errors import CancellationError


class CancellationToken:
    """
    Flag checked between gate applications and between shot chunks.

    Safe to cancel from another thread.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, operation: str = "execution"):
        """Raise CancellationError if cancel() has been called."""
        if self._event.is_set():
            raise CancellationError(operation)
