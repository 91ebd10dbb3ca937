"""
Cancellation for running pipelines.

A CancellationToken is shared by every stage of one pipeline. Blocking reads
and writes on inter-stage connections poll it and raise PipelineCancelled
once it is set, so internal handlers exit at their next suspension point.
"""

import threading
from typing import Optional

from .exceptions import ShellError
from .exit_codes import EXIT_CODE_INTERRUPTED

# Seconds between cancellation checks while blocked on a connection
POLL_INTERVAL = 0.05


class PipelineCancelled(ShellError):
    """Raised inside a stage when its pipeline has been cancelled."""

    def __init__(self, message: str = "Pipeline cancelled"):
        super().__init__(message, exit_code=EXIT_CODE_INTERRUPTED)


class CancellationToken:
    """
    Cooperative cancellation signal.

    Example:
        >>> token = CancellationToken()
        >>> token.cancel()
        >>> token.cancelled
        True
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise PipelineCancelled()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or timeout; returns True if cancelled"""
        return self._event.wait(timeout)

    def __repr__(self):
        return f"CancellationToken(cancelled={self.cancelled})"
