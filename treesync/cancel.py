"""
Cooperative cancellation shared by every phase of a run
"""
import threading
from typing import Optional

from .errors import SyncInterrupted


class CancelToken:
    """
    A stop request passed explicitly into scanning, applying and waiting.
    Nothing is ever interrupted mid-write: phases poll the token between steps.
    """

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "stop requested"):
        if not self._event.is_set():
            self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def check(self):
        """Raise SyncInterrupted if a stop was requested."""
        if self._event.is_set():
            raise SyncInterrupted(self.reason or "stop requested")

    def wait(self, timeout: float) -> bool:
        """Sleep up to *timeout* seconds; returns True as soon as cancelled."""
        return self._event.wait(timeout)
