import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional


class SessionStatus:
    """Shared loading/error slot read by the front-end.

    Only the latest error is kept; starting a new operation clears it.
    `loading` is a counter so overlapping operations keep it raised until the
    last one finishes.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._busy = 0
        self._error: Optional[str] = None
        self._last_sync_at: Optional[float] = None

    @property
    def loading(self) -> bool:
        with self._lock:
            return self._busy > 0

    @property
    def error(self) -> Optional[str]:
        with self._lock:
            return self._error

    @property
    def last_sync_at(self) -> Optional[float]:
        with self._lock:
            return self._last_sync_at

    def set_error(self, message: Optional[str]) -> None:
        with self._lock:
            self._error = message

    def clear_error(self) -> None:
        self.set_error(None)

    def mark_synced(self, when: Optional[float] = None) -> None:
        with self._lock:
            self._last_sync_at = time.time() if when is None else float(when)

    @contextmanager
    def busy(self, *, clear_error: bool = True) -> Iterator["SessionStatus"]:
        with self._lock:
            self._busy += 1
            if clear_error:
                self._error = None
        try:
            yield self
        finally:
            with self._lock:
                self._busy = max(0, self._busy - 1)
