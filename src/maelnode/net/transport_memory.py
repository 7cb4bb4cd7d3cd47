from __future__ import annotations

import json
import threading
from typing import Any, Iterable, Iterator, List


class MemoryTransport:
    """
    In-process transport used by unit tests and harnesses.

    - Input lines are queued with feed() and consumed by lines()
    - Output lines are kept in order; drain() hands them over and clears
    """

    def __init__(self, lines: Iterable[str] = ()) -> None:
        self._inbox: List[str] = list(lines)
        self._sent: List[str] = []
        self._lock = threading.Lock()

    def feed(self, *lines: str) -> None:
        with self._lock:
            self._inbox.extend(lines)

    def lines(self) -> Iterator[str]:
        while True:
            with self._lock:
                if not self._inbox:
                    return
                line = self._inbox.pop(0).strip()
            if line:
                yield line

    def write_line(self, line: str) -> None:
        with self._lock:
            self._sent.append(line)

    # ---- helpers for tests / harness ----

    @property
    def sent(self) -> List[str]:
        with self._lock:
            return list(self._sent)

    def sent_json(self) -> List[Any]:
        return [json.loads(s) for s in self.sent]

    def drain(self) -> List[str]:
        with self._lock:
            out = list(self._sent)
            self._sent.clear()
        return out
