from __future__ import annotations

import threading


class MessageIdGenerator:
    """Process-unique, strictly increasing message ids.

    The first id issued is ``start + 1``. Nothing is persisted across restarts.
    """

    def __init__(self, start: int = 0) -> None:
        self._lock = threading.Lock()
        self._last = int(start)

    def next_id(self) -> int:
        with self._lock:
            self._last += 1
            return self._last

    @property
    def last_issued(self) -> int:
        with self._lock:
            return self._last
