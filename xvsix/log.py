"""A redo log that makes groups of block writes atomic."""

from __future__ import annotations

import struct
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from .disk import Buffer, BufferCache
from .params import BSIZE, LOGSIZE, MAXOPBLOCKS, ROOTDEV, FsPanic, Superblock

_HEADER = struct.Struct(f"<i{LOGSIZE}i")


class Log:
    """Collects the writes of concurrent operations and commits them together.

    Operations bracket their work with begin_op/end_op; the log commits
    once no operation is outstanding.
    """

    def __init__(
        self, cache: BufferCache, dev: int = ROOTDEV, superblock: Superblock | None = None
    ) -> None:
        if _HEADER.size >= BSIZE:
            raise FsPanic("initlog: too big logheader")
        if superblock is None:
            buf = cache.read(dev, 1)
            superblock = Superblock.unpack(buf.data)
            cache.release(buf)
        self.cache = cache
        self.dev = dev
        self.start = superblock.logstart
        self.size = superblock.nlog
        self.outstanding = 0
        self.committing = False
        self.blocks: list[int] = []
        self._cond = threading.Condition()
        self._recover()

    def _install(self) -> None:
        for tail, blockno in enumerate(self.blocks):
            lbuf = self.cache.read(self.dev, self.start + tail + 1)
            dbuf = self.cache.read(self.dev, blockno)
            dbuf.data[:] = lbuf.data
            self.cache.write(dbuf)
            self.cache.release(lbuf)
            self.cache.release(dbuf)

    def _read_head(self) -> None:
        buf = self.cache.read(self.dev, self.start)
        n, *entries = _HEADER.unpack_from(buf.data)
        self.cache.release(buf)
        self.blocks = entries[: max(n, 0)]

    def _write_head(self) -> None:
        buf = self.cache.read(self.dev, self.start)
        entries = self.blocks + [0] * (LOGSIZE - len(self.blocks))
        buf.data[: _HEADER.size] = _HEADER.pack(len(self.blocks), *entries)
        self.cache.write(buf)
        self.cache.release(buf)

    def _recover(self) -> None:
        self._read_head()
        self._install()
        self.blocks = []
        self._write_head()

    def _write_log(self) -> None:
        for tail, blockno in enumerate(self.blocks):
            to = self.cache.read(self.dev, self.start + tail + 1)
            src = self.cache.read(self.dev, blockno)
            to.data[:] = src.data
            self.cache.write(to)
            self.cache.release(src)
            self.cache.release(to)

    def _commit(self) -> None:
        if self.blocks:
            self._write_log()
            self._write_head()  # the real commit point
            self._install()
            self.blocks = []
            self._write_head()

    def begin_op(self) -> None:
        """Start an operation, waiting while the log is committing or short of space."""
        with self._cond:
            while (
                self.committing
                or len(self.blocks) + (self.outstanding + 1) * MAXOPBLOCKS > LOGSIZE
            ):
                self._cond.wait()
            self.outstanding += 1

    def end_op(self) -> None:
        """Finish an operation; the last one out commits."""
        with self._cond:
            self.outstanding -= 1
            if self.committing:
                raise FsPanic("log.committing")
            do_commit = self.outstanding == 0
            if do_commit:
                self.committing = True
            else:
                self._cond.notify_all()
        if do_commit:
            self._commit()
            with self._cond:
                self.committing = False
                self._cond.notify_all()

    def write(self, buf: Buffer) -> None:
        """Record a modified buffer and pin it in the cache until commit."""
        if len(self.blocks) >= LOGSIZE or len(self.blocks) >= self.size - 1:
            raise FsPanic("too big a transaction")
        if self.outstanding < 1:
            raise FsPanic("log_write outside of trans")
        with self._cond:
            if buf.blockno not in self.blocks:
                self.blocks.append(buf.blockno)
            buf.dirty = True

    @contextmanager
    def transaction(self) -> Iterator[Log]:
        """Run the body as one operation."""
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()