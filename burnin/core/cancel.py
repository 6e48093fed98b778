"""Cooperative cancellation shared by the exporters and the FFmpeg runner."""

import threading

from ..errors import ExportCancelled


class CancelToken:
    """Set once by the caller; checked by long-running work between steps."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        return self._event.wait(timeout)

    def raise_if_cancelled(self, what: str = "Export"):
        if self._event.is_set():
            raise ExportCancelled(f"{what} cancelled")
