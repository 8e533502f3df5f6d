"""Inodes, directories and path names on top of the log and buffer cache."""

from __future__ import annotations

import errno
import struct
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import NamedTuple

from .disk import BufferCache
from .log import Log
from .params import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    DIRENT_SIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDEV,
    NDIRECT,
    NINDIRECT,
    NINODE,
    ROOTDEV,
    ROOTINO,
    Dirent,
    DiskInode,
    FsPanic,
    InodeType,
    Stat,
    Superblock,
    bblock,
    iblock,
)

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")

DeviceRead = Callable[["Inode", int], bytes]
DeviceWrite = Callable[["Inode", bytes], int]


class _Device(NamedTuple):
    read: DeviceRead | None
    write: DeviceWrite | None


@dataclass(eq=False)
class Inode:
    """In-memory copy of an inode, plus cache bookkeeping."""

    dev: int = 0
    inum: int = 0
    ref: int = 0
    valid: bool = False
    type: int = InodeType.FREE
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))
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


def skipelem(path: str) -> tuple[str, str] | None:
    """Split off the first path element.

    Returns ``(name, rest)`` where ``rest`` has no leading slashes and
    ``name`` is cut to DIRSIZ characters, or None when no element is left.
    """
    path = path.lstrip("/")
    if not path:
        return None
    elem, _, rest = path.partition("/")
    return elem[:DIRSIZ], rest.lstrip("/")


def namecmp(s: str, t: str) -> int:
    """Compare two names over their first DIRSIZ characters."""
    a, b = s[:DIRSIZ], t[:DIRSIZ]
    return (a > b) - (a < b)


class FileSystem:
    """The inode layer of one disk device."""

    def __init__(
        self, cache: BufferCache, log: Log, dev: int = ROOTDEV, ninode: int = NINODE
    ) -> None:
        self.cache = cache
        self.log = log
        self.dev = dev
        buf = cache.read(dev, 1)
        self.sb: Superblock = Superblock.unpack(bytes(buf.data))
        cache.release(buf)
        self._icache_lock = threading.Lock()
        self._inodes = [Inode() for _ in range(ninode)]
        self._devsw: dict[int, _Device] = {}

    # Devices

    def register_device(
        self, major: int, read: DeviceRead | None, write: DeviceWrite | None
    ) -> None:
        """Attach read and write handlers to a major device number."""
        if not 0 <= major < NDEV:
            raise ValueError(f"major device number must be in [0, {NDEV})")
        self._devsw[major] = _Device(read, write)

    def _device(self, ip: Inode, op: str) -> Callable:
        dev = self._devsw.get(ip.major)
        handler = getattr(dev, op) if dev is not None else None
        if handler is None:
            raise OSError(errno.ENODEV, f"no {op} handler for device {ip.major}")
        return handler

    # Blocks

    def _bzero(self, bno: int) -> None:
        bp = self.cache.read(self.dev, bno)
        bp.data[:] = bytes(BSIZE)
        self.log.write(bp)
        self.cache.release(bp)

    def _balloc(self) -> int:
        for base in range(0, self.sb.size, BPB):
            bp = self.cache.read(self.dev, bblock(base, self.sb))
            for bi in range(min(BPB, self.sb.size - base)):
                mask = 1 << (bi % 8)
                if not bp.data[bi // 8] & mask:
                    bp.data[bi // 8] |= mask
                    self.log.write(bp)
                    self.cache.release(bp)
                    self._bzero(base + bi)
                    return base + bi
            self.cache.release(bp)
        raise FsPanic("balloc: out of blocks")

    def _bfree(self, b: int) -> None:
        bp = self.cache.read(self.dev, bblock(b, self.sb))
        bi = b % BPB
        mask = 1 << (bi % 8)
        if not bp.data[bi // 8] & mask:
            self.cache.release(bp)
            raise FsPanic("freeing free block")
        bp.data[bi // 8] &= ~mask & 0xFF
        self.log.write(bp)
        self.cache.release(bp)

    # Inodes

    @staticmethod
    def _slot(inum: int) -> slice:
        start = (inum % IPB) * DINODE_SIZE
        return slice(start, start + DINODE_SIZE)

    def ialloc(self, type: int) -> Inode:
        """Allocate a free inode of the given type; returned unlocked and referenced."""
        for inum in range(1, self.sb.ninodes):
            bp = self.cache.read(self.dev, iblock(inum, self.sb))
            slot = self._slot(inum)
            if DiskInode.unpack(bytes(bp.data[slot])).type == InodeType.FREE:
                bp.data[slot] = DiskInode(type=type).pack()
                self.log.write(bp)
                self.cache.release(bp)
                return self.iget(inum)
            self.cache.release(bp)
        raise FsPanic("ialloc: no inodes")

    def iupdate(self, ip: Inode) -> None:
        """Copy a locked inode's fields to disk."""
        bp = self.cache.read(ip.dev, iblock(ip.inum, self.sb))
        bp.data[self._slot(ip.inum)] = DiskInode(
            ip.type, ip.major, ip.minor, ip.nlink, ip.size, list(ip.addrs)
        ).pack()
        self.log.write(bp)
        self.cache.release(bp)

    def iget(self, inum: int) -> Inode:
        """Find or make the cache entry for an inode; neither locks nor reads it."""
        with self._icache_lock:
            empty = None
            for ip in self._inodes:
                if ip.ref > 0 and ip.dev == self.dev and ip.inum == inum:
                    ip.ref += 1
                    return ip
                if empty is None and ip.ref == 0:
                    empty = ip
            if empty is None:
                raise FsPanic("iget: no inodes")
            empty.dev = self.dev
            empty.inum = inum
            empty.ref = 1
            empty.valid = False
            return empty

    def idup(self, ip: Inode) -> Inode:
        """Take one more reference to an inode."""
        with self._icache_lock:
            ip.ref += 1
        return ip

    def ilock(self, ip: Inode) -> None:
        """Lock an inode, reading it from disk if needed."""
        if ip is None or ip.ref < 1:
            raise FsPanic("ilock")
        ip._acquire()
        if not ip.valid:
            bp = self.cache.read(ip.dev, iblock(ip.inum, self.sb))
            d = DiskInode.unpack(bytes(bp.data[self._slot(ip.inum)]))
            self.cache.release(bp)
            ip.type, ip.major, ip.minor = d.type, d.major, d.minor
            ip.nlink, ip.size, ip.addrs = d.nlink, d.size, list(d.addrs)
            ip.valid = True
            if ip.type == InodeType.FREE:
                ip.valid = False
                ip._release()
                raise FsPanic("ilock: no type")

    def iunlock(self, ip: Inode) -> None:
        if ip is None or not ip.held or ip.ref < 1:
            raise FsPanic("iunlock")
        ip._release()

    def iput(self, ip: Inode) -> None:
        """Drop a reference; free the inode on disk when it is the last and unlinked."""
        ip._acquire()
        try:
            if ip.valid and ip.nlink == 0:
                with self._icache_lock:
                    r = ip.ref
                if r == 1:
                    self._itrunc(ip)
                    ip.type = InodeType.FREE
                    self.iupdate(ip)
                    ip.valid = False
        finally:
            ip._release()
        with self._icache_lock:
            ip.ref -= 1

    def iunlockput(self, ip: Inode) -> None:
        self.iunlock(ip)
        self.iput(ip)

    def _bmap(self, ip: Inode, bn: int) -> int:
        if bn < NDIRECT:
            if ip.addrs[bn] == 0:
                ip.addrs[bn] = self._balloc()
            return ip.addrs[bn]
        bn -= NDIRECT
        if bn < NINDIRECT:
            if ip.addrs[NDIRECT] == 0:
                ip.addrs[NDIRECT] = self._balloc()
            bp = self.cache.read(ip.dev, ip.addrs[NDIRECT])
            entries = list(_INDIRECT.unpack_from(bp.data))
            addr = entries[bn]
            if addr == 0:
                addr = entries[bn] = self._balloc()
                _INDIRECT.pack_into(bp.data, 0, *entries)
                self.log.write(bp)
            self.cache.release(bp)
            return addr
        raise FsPanic("bmap: out of range")

    def _itrunc(self, ip: Inode) -> None:
        for i, addr in enumerate(ip.addrs[:NDIRECT]):
            if addr:
                self._bfree(addr)
                ip.addrs[i] = 0
        if ip.addrs[NDIRECT]:
            bp = self.cache.read(ip.dev, ip.addrs[NDIRECT])
            entries = _INDIRECT.unpack_from(bp.data)
            for addr in entries:
                if addr:
                    self._bfree(addr)
            self.cache.release(bp)
            self._bfree(ip.addrs[NDIRECT])
            ip.addrs[NDIRECT] = 0
        ip.size = 0
        self.iupdate(ip)

    def stati(self, ip: Inode) -> Stat:
        """Metadata of a locked inode."""
        return Stat(type=ip.type, dev=ip.dev, ino=ip.inum, nlink=ip.nlink, size=ip.size)

    # Content

    def readi(self, ip: Inode, off: int, n: int) -> bytes:
        """Read up to ``n`` bytes at ``off`` from a locked inode."""
        if ip.type == InodeType.DEV:
            return self._device(ip, "read")(ip, n)
        if off < 0 or n < 0 or off > ip.size:
            raise ValueError(f"cannot read {n} bytes at offset {off}")
        end = off + min(n, ip.size - off)
        out = bytearray()
        while off < end:
            bp = self.cache.read(ip.dev, self._bmap(ip, off // BSIZE))
            start = off % BSIZE
            m = min(end - off, BSIZE - start)
            out += bp.data[start : start + m]
            self.cache.release(bp)
            off += m
        return bytes(out)

    def writei(self, ip: Inode, data: bytes, off: int) -> int:
        """Write ``data`` at ``off`` into a locked inode; returns the count written."""
        if ip.type == InodeType.DEV:
            return self._device(ip, "write")(ip, bytes(data))
        n = len(data)
        if off < 0 or off > ip.size:
            raise ValueError(f"cannot write at offset {off}")
        if off + n > MAXFILE * BSIZE:
            raise ValueError("write would exceed the maximum file size")
        view = memoryview(bytes(data))
        pos = 0
        while pos < n:
            bp = self.cache.read(ip.dev, self._bmap(ip, off // BSIZE))
            start = off % BSIZE
            m = min(n - pos, BSIZE - start)
            bp.data[start : start + m] = view[pos : pos + m]
            self.log.write(bp)
            self.cache.release(bp)
            pos += m
            off += m
        if n > 0 and off > ip.size:
            ip.size = off
            self.iupdate(ip)
        return n

    # Directories

    def dirlookup(self, dp: Inode, name: str) -> tuple[Inode, int] | None:
        """Find ``name`` in a locked directory; returns the inode and entry offset."""
        if dp.type != InodeType.DIR:
            raise FsPanic("dirlookup not DIR")
        for off in range(0, dp.size, DIRENT_SIZE):
            raw = self.readi(dp, off, DIRENT_SIZE)
            if len(raw) != DIRENT_SIZE:
                raise FsPanic("dirlookup read")
            de = Dirent.unpack(raw)
            if de.inum and namecmp(name, de.name) == 0:
                return self.iget(de.inum), off
        return None

    def dirlink(self, dp: Inode, name: str, inum: int) -> None:
        """Add an entry to a locked directory, reusing a free slot if there is one."""
        found = self.dirlookup(dp, name)
        if found is not None:
            self.iput(found[0])
            raise FileExistsError(errno.EEXIST, "entry exists", name)
        off = next(
            (
                o
                for o in range(0, dp.size, DIRENT_SIZE)
                if Dirent.unpack(self.readi(dp, o, DIRENT_SIZE)).inum == 0
            ),
            dp.size - dp.size % DIRENT_SIZE if dp.size % DIRENT_SIZE == 0 else dp.size,
        )
        if self.writei(dp, Dirent(inum, name[:DIRSIZ]).pack(), off) != DIRENT_SIZE:
            raise FsPanic("dirlink")

    # Paths

    def _namex(self, path: str, parent: bool, cwd: Inode | None) -> tuple[Inode, str]:
        original = path
        if path.startswith("/") or cwd is None:
            ip = self.iget(ROOTINO)
        else:
            ip = self.idup(cwd)
        name = ""
        while (step := skipelem(path)) is not None:
            name, path = step
            self.ilock(ip)
            if ip.type != InodeType.DIR:
                self.iunlockput(ip)
                raise NotADirectoryError(errno.ENOTDIR, "not a directory", original)
            if parent and path == "":
                self.iunlock(ip)
                return ip, name
            found = self.dirlookup(ip, name)
            self.iunlockput(ip)
            if found is None:
                raise FileNotFoundError(errno.ENOENT, "no such file", original)
            ip = found[0]
        if parent:
            self.iput(ip)
            raise FileNotFoundError(errno.ENOENT, "path has no final element", original)
        return ip, name

    def namei(self, path: str, cwd: Inode | None = None) -> Inode:
        """Look up the inode for a path; relative paths start at ``cwd`` (or root)."""
        return self._namex(path, False, cwd)[0]

    def nameiparent(self, path: str, cwd: Inode | None = None) -> tuple[Inode, str]:
        """Return the parent directory's inode and the final path element."""
        return self._namex(path, True, cwd)