"""
maelnode: line transport

The node reads one JSON envelope per line and writes one per line. This
module only moves lines: no parsing and no dispatch.

  - diagnostics never go through a transport (they go to stderr logging)
  - write_line() emits and flushes a whole line under a lock, so lines
    written from several threads never interleave
"""

from __future__ import annotations

import sys
import threading
from typing import Iterator, Protocol, TextIO, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    def lines(self) -> Iterator[str]: ...
    def write_line(self, line: str) -> None: ...


class LineTransport:
    def __init__(self, input: TextIO, output: TextIO) -> None:
        self._in = input
        self._out = output
        self._lock = threading.Lock()

    @classmethod
    def stdio(cls) -> "LineTransport":
        return cls(sys.stdin, sys.stdout)

    def lines(self) -> Iterator[str]:
        """Yield stripped non-empty lines until end of input."""
        for raw in self._in:
            line = raw.strip()
            if line:
                yield line

    def write_line(self, line: str) -> None:
        with self._lock:
            self._out.write(line + "\n")
            self._out.flush()
