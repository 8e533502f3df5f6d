"""A bounded in-memory pipe between a reader and a writer."""

from __future__ import annotations

import errno
import threading

PIPESIZE = 512


class PipeClosed(BrokenPipeError):
    """Raised when writing to a full pipe whose read end is closed."""


class Pipe:
    """A byte channel of PIPESIZE bytes; writers block while it is full."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._data = bytearray()
        self.nread = 0
        self.nwrite = 0
        self.readopen = True
        self.writeopen = True

    @property
    def closed(self) -> bool:
        return not self.readopen and not self.writeopen

    def write(self, data: bytes) -> int:
        """Write all of ``data``, waiting for room; returns its length."""
        view = memoryview(bytes(data))
        pos = 0
        with self._cond:
            while pos < len(view):
                while len(self._data) == PIPESIZE:
                    if not self.readopen:
                        raise PipeClosed(errno.EPIPE, "read end of pipe is closed")
                    self._cond.notify_all()
                    self._cond.wait()
                take = min(PIPESIZE - len(self._data), len(view) - pos)
                self._data += view[pos : pos + take]
                self.nwrite += take
                pos += take
            self._cond.notify_all()
        return len(view)

    def read(self, n: int) -> bytes:
        """Wait for data and return up to ``n`` bytes; b"" once the writer is gone."""
        with self._cond:
            while not self._data and self.writeopen:
                self._cond.wait()
            chunk = bytes(self._data[: max(n, 0)])
            del self._data[: len(chunk)]
            self.nread += len(chunk)
            self._cond.notify_all()
        return chunk

    def close(self, writable: bool) -> None:
        """Close the write end if ``writable`` is true, else the read end."""
        with self._cond:
            if writable:
                self.writeopen = False
            else:
                self.readopen = False
            self._cond.notify_all()