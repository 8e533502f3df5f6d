"""An in-memory disk and the block buffer cache in front of it."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from .params import BSIZE, FSSIZE, NBUF, ROOTDEV, FsPanic


class MemDisk:
    """A disk whose blocks live in a byte array."""

    def __init__(
        self, image: bytes | None = None, nblocks: int = FSSIZE, dev: int = ROOTDEV
    ) -> None:
        self._image = bytearray(image if image is not None else bytes(nblocks * BSIZE))
        self.dev = dev
        self.disksize = len(self._image) // BSIZE

    @property
    def image(self) -> bytes:
        return bytes(self._image)

    def _check(self, blockno: int) -> int:
        if not 0 <= blockno < self.disksize:
            raise FsPanic("iderw: block out of range")
        return blockno * BSIZE

    def read_block(self, blockno: int) -> bytes:
        start = self._check(blockno)
        return bytes(self._image[start : start + BSIZE])

    def write_block(self, blockno: int, data: bytes) -> None:
        if len(data) != BSIZE:
            raise ValueError(f"a block is {BSIZE} bytes, got {len(data)}")
        start = self._check(blockno)
        self._image[start : start + BSIZE] = data

    def sync(self, buf: Buffer) -> None:
        """Write a dirty buffer out, or fill an invalid one from disk."""
        if not buf.held:
            raise FsPanic("iderw: buf not locked")
        if buf.valid and not buf.dirty:
            raise FsPanic("iderw: nothing to do")
        if buf.dev != self.dev:
            raise FsPanic("iderw: request not for disk 1")
        if buf.dirty:
            self.write_block(buf.blockno, bytes(buf.data))
            buf.dirty = False
        else:
            buf.data[:] = self.read_block(buf.blockno)
        buf.valid = True


@dataclass(eq=False)
class Buffer:
    """A cached copy of one disk block."""

    dev: int = -1
    blockno: int = -1
    data: bytearray = field(default_factory=lambda: bytearray(BSIZE))
    valid: bool = False
    dirty: bool = False
    refcnt: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _owner: int | None = field(default=None, repr=False)

    @property
    def held(self) -> bool:
        return self._owner == threading.get_ident()

    def _acquire(self) -> None:
        self._lock.acquire()
        self._owner = threading.get_ident()

    def _release(self) -> None:
        self._owner = None
        self._lock.release()


class BufferCache:
    """A fixed set of buffers kept in most-recently-used order."""

    def __init__(self, disk: MemDisk, nbuf: int = NBUF) -> None:
        self.disk = disk
        self._lock = threading.Lock()
        self._mru = [Buffer() for _ in range(nbuf)]

    def _get(self, dev: int, blockno: int) -> Buffer:
        with self._lock:
            found = next(
                (b for b in self._mru if b.dev == dev and b.blockno == blockno), None
            )
            if found is not None:
                found.refcnt += 1
            else:
                # A dirty buffer with no references is still pinned by the log.
                found = next(
                    (b for b in reversed(self._mru) if b.refcnt == 0 and not b.dirty),
                    None,
                )
                if found is None:
                    raise FsPanic("bget: no buffers")
                found.dev = dev
                found.blockno = blockno
                found.valid = False
                found.dirty = False
                found.refcnt = 1
        found._acquire()
        return found

    def read(self, dev: int, blockno: int) -> Buffer:
        """Return a locked buffer holding the block's contents."""
        buf = self._get(dev, blockno)
        if not buf.valid:
            self.disk.sync(buf)
        return buf

    def write(self, buf: Buffer) -> None:
        """Write a locked buffer's contents to disk."""
        if not buf.held:
            raise FsPanic("bwrite")
        buf.dirty = True
        self.disk.sync(buf)

    def release(self, buf: Buffer) -> None:
        """Unlock a buffer; once unreferenced it becomes most recently used."""
        if not buf.held:
            raise FsPanic("brelse")
        buf._release()
        with self._lock:
            buf.refcnt -= 1
            if buf.refcnt == 0:
                self._mru.remove(buf)
                self._mru.insert(0, buf)