"""Build a file system image holding a root directory and a set of files."""

from __future__ import annotations

import struct
import sys
from pathlib import Path

from .params import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    DIRSIZ,
    FSSIZE,
    IPB,
    LOGSIZE,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    Dirent,
    DiskInode,
    InodeType,
    Superblock,
    iblock,
)

NINODES = 200

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class ImageBuilder:
    """Lays out a fresh image: boot, superblock, log, inodes, bitmap, data."""

    def __init__(
        self, fssize: int = FSSIZE, ninodes: int = NINODES, nlog: int = LOGSIZE
    ) -> None:
        self.fssize = fssize
        self.ninodes = ninodes
        self.nlog = nlog
        self.nbitmap = fssize // BPB + 1
        self.ninodeblocks = ninodes // IPB + 1
        self.nmeta = 2 + nlog + self.ninodeblocks + self.nbitmap
        self.nblocks = fssize - self.nmeta
        if self.nblocks <= 0:
            raise ValueError("image too small for its metadata")
        self.sb = Superblock(
            size=fssize,
            nblocks=self.nblocks,
            ninodes=ninodes,
            nlog=nlog,
            logstart=2,
            inodestart=2 + nlog,
            bmapstart=2 + nlog + self.ninodeblocks,
        )
        self._image = bytearray(fssize * BSIZE)
        self._freeinode = 1
        self.freeblock = self.nmeta
        self._wsect(self._image, 1, self.sb.pack().ljust(BSIZE, b"\0"))

        self.rootino = self._ialloc(InodeType.DIR)
        if self.rootino != ROOTINO:
            raise RuntimeError("root inode is not the first inode")
        self._iappend(self.rootino, Dirent(self.rootino, ".").pack())
        self._iappend(self.rootino, Dirent(self.rootino, "..").pack())

    # Sectors and inodes

    def _offset(self, sec: int) -> int:
        if not 0 <= sec < self.fssize:
            raise ValueError(f"sector {sec} is outside the image")
        return sec * BSIZE

    def _wsect(self, img: bytearray, sec: int, data: bytes) -> None:
        start = self._offset(sec)
        img[start : start + BSIZE] = data

    def _rsect(self, img: bytearray, sec: int) -> bytes:
        start = self._offset(sec)
        return bytes(img[start : start + BSIZE])

    @staticmethod
    def _slot(inum: int) -> slice:
        start = (inum % IPB) * DINODE_SIZE
        return slice(start, start + DINODE_SIZE)

    def _rinode(self, img: bytearray, inum: int) -> DiskInode:
        block = self._rsect(img, iblock(inum, self.sb))
        return DiskInode.unpack(block[self._slot(inum)])

    def _winode(self, img: bytearray, inum: int, din: DiskInode) -> None:
        bn = iblock(inum, self.sb)
        block = bytearray(self._rsect(img, bn))
        block[self._slot(inum)] = din.pack()
        self._wsect(img, bn, bytes(block))

    def _ialloc(self, type: int) -> int:
        inum = self._freeinode
        if inum >= self.ninodes:
            raise ValueError("out of inodes")
        self._freeinode += 1
        self._winode(self._image, inum, DiskInode(type=type, nlink=1, size=0))
        return inum

    def _alloc_block(self) -> int:
        b = self.freeblock
        if b >= self.fssize:
            raise ValueError("out of data blocks")
        self.freeblock += 1
        return b

    def _iappend(self, inum: int, data: bytes) -> None:
        img = self._image
        din = self._rinode(img, inum)
        off = din.size
        if off + len(data) > MAXFILE * BSIZE:
            raise ValueError("file exceeds the maximum file size")
        pos = 0
        while pos < len(data):
            fbn = off // BSIZE
            if fbn < NDIRECT:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._alloc_block()
                x = din.addrs[fbn]
            else:
                if din.addrs[NDIRECT] == 0:
                    din.addrs[NDIRECT] = self._alloc_block()
                indirect = list(_INDIRECT.unpack(self._rsect(img, din.addrs[NDIRECT])))
                if indirect[fbn - NDIRECT] == 0:
                    indirect[fbn - NDIRECT] = self._alloc_block()
                    self._wsect(img, din.addrs[NDIRECT], _INDIRECT.pack(*indirect))
                x = indirect[fbn - NDIRECT]
            n1 = min(len(data) - pos, (fbn + 1) * BSIZE - off)
            block = bytearray(self._rsect(img, x))
            start = off - fbn * BSIZE
            block[start : start + n1] = data[pos : pos + n1]
            self._wsect(img, x, bytes(block))
            pos += n1
            off += n1
        din.size = off
        self._winode(img, inum, din)

    # Public interface

    def add_file(self, name: str, data: bytes) -> int:
        """Add a regular file to the root directory; returns its inode number."""
        if "/" in name:
            raise ValueError(f"file name may not contain '/': {name!r}")
        inum = self._ialloc(InodeType.FILE)
        self._iappend(self.rootino, Dirent(inum, name[:DIRSIZ]).pack())
        self._iappend(inum, bytes(data))
        return inum

    def build(self) -> bytes:
        """Return the finished image; the builder itself is left unchanged."""
        img = bytearray(self._image)
        din = self._rinode(img, self.rootino)
        din.size = (din.size // BSIZE + 1) * BSIZE
        self._winode(img, self.rootino, din)

        used = self.freeblock
        if used >= BPB:
            raise ValueError("too many blocks in use for one bitmap block")
        bitmap = bytearray(BSIZE)
        for i in range(used):
            bitmap[i // 8] |= 1 << (i % 8)
        self._wsect(img, self.sb.bmapstart, bytes(bitmap))
        return bytes(img)


def main(argv: list[str] | None = None) -> int:
    """Write an image file holding the named files: mkfs fs.img files..."""
    if argv is None:
        argv = sys.argv[1:]
    if len(argv) < 1:
        print("Usage: mkfs fs.img files...", file=sys.stderr)
        return 1

    builder = ImageBuilder()
    print(
        f"nmeta {builder.nmeta} (boot, super, log blocks {builder.nlog} "
        f"inode blocks {builder.ninodeblocks}, bitmap blocks {builder.nbitmap}) "
        f"blocks {builder.nblocks} total {builder.fssize}"
    )

    for path in argv[1:]:
        if "/" in path:
            print(f"mkfs: {path}: name may not contain '/'", file=sys.stderr)
            return 1
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            print(f"{path}: {exc.strerror}", file=sys.stderr)
            return 1
        # Binaries are built as _name so the host does not run them by mistake.
        name = path[1:] if path.startswith("_") else path
        try:
            builder.add_file(name, data)
        except ValueError as exc:
            print(f"mkfs: {path}: {exc}", file=sys.stderr)
            return 1

    try:
        image = builder.build()
    except ValueError as exc:
        print(f"mkfs: {exc}", file=sys.stderr)
        return 1
    print(f"balloc: first {builder.freeblock} blocks have been allocated")
    print(f"balloc: write bitmap block at sector {builder.sb.bmapstart}")

    try:
        Path(argv[0]).write_bytes(image)
    except OSError as exc:
        print(f"{argv[0]}: {exc.strerror}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())