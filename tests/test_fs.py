import pytest

from xvsix.disk import BufferCache, MemDisk
from xvsix.fs import FileSystem, namecmp, skipelem
from xvsix.log import Log
from xvsix.params import (
    BSIZE,
    DIRENT_SIZE,
    FSSIZE,
    IPB,
    LOGSIZE,
    MAXFILE,
    ROOTINO,
    FsPanic,
    InodeType,
    Superblock,
)

NINODES = 200
CHUNK = 1536


def _format_disk():
    disk = MemDisk()
    ninodeblocks = NINODES // IPB + 1
    nmeta = 2 + LOGSIZE + ninodeblocks + 1
    sb = Superblock(
        FSSIZE,
        FSSIZE - nmeta,
        NINODES,
        LOGSIZE,
        2,
        2 + LOGSIZE,
        2 + LOGSIZE + ninodeblocks,
    )
    disk.write_block(1, sb.pack().ljust(BSIZE, b"\0"))
    bitmap = bytearray(BSIZE)
    full, rest = divmod(nmeta, 8)
    bitmap[:full] = b"\xff" * full
    bitmap[full] = (1 << rest) - 1
    disk.write_block(sb.bmapstart, bytes(bitmap))
    return disk


def _mount(disk):
    cache = BufferCache(disk)
    log = Log(cache)
    return FileSystem(cache, log)


def make_fs():
    disk = _format_disk()
    fs = _mount(disk)
    with fs.log.transaction():
        root = fs.ialloc(InodeType.DIR)
        fs.ilock(root)
        root.nlink = 1
        fs.iupdate(root)
        fs.dirlink(root, ".", root.inum)
        fs.dirlink(root, "..", root.inum)
        fs.iunlockput(root)
    return fs, disk


def create(fs, parent, name, type_=InodeType.FILE):
    with fs.log.transaction():
        dp = fs.namei(parent)
        ip = fs.ialloc(type_)
        fs.ilock(ip)
        ip.nlink = 1
        fs.iupdate(ip)
        if type_ == InodeType.DIR:
            fs.dirlink(ip, ".", ip.inum)
            fs.dirlink(ip, "..", dp.inum)
        fs.ilock(dp)
        fs.dirlink(dp, name, ip.inum)
        fs.iunlockput(dp)
        inum = ip.inum
        fs.iunlockput(ip)
    return inum


def write_file(fs, path, data):
    for start in range(0, len(data), CHUNK):
        with fs.log.transaction():
            ip = fs.namei(path)
            fs.ilock(ip)
            n = fs.writei(ip, data[start : start + CHUNK], start)
            fs.iunlockput(ip)
        assert n == len(data[start : start + CHUNK])


def read_file(fs, path):
    with fs.log.transaction():
        ip = fs.namei(path)
        fs.ilock(ip)
        data = fs.readi(ip, 0, ip.size)
        fs.iunlockput(ip)
    return data


def test_skipelem_examples():
    assert skipelem("a/bb/c") == ("a", "bb/c")
    assert skipelem("///a//bb") == ("a", "bb")
    assert skipelem("a") == ("a", "")
    assert skipelem("") is None
    assert skipelem("////") is None


def test_skipelem_truncates_long_names():
    assert skipelem("123456789012345/x") == ("12345678901234", "x")


def test_namecmp():
    assert namecmp("12345678901234", "123456789012345") == 0
    assert namecmp("abc", "abd") < 0
    assert namecmp("abd", "abc") > 0


def test_root_is_first_inode():
    fs, _ = make_fs()
    with fs.log.transaction():
        root = fs.namei("/")
        fs.ilock(root)
        st = fs.stati(root)
        fs.iunlockput(root)
    assert st.ino == ROOTINO
    assert st.type == InodeType.DIR
    assert st.size == 2 * DIRENT_SIZE


def test_ialloc_hands_out_increasing_inums():
    fs, _ = make_fs()
    a = create(fs, "/", "a")
    b = create(fs, "/", "b")
    assert a == ROOTINO + 1
    assert b == a + 1


def test_small_file_round_trip():
    fs, _ = make_fs()
    create(fs, "/", "small")
    data = b"aaaaaaaaaabbbbbbbbbb" * 100
    write_file(fs, "/small", data)
    assert read_file(fs, "/small") == data


def test_big_file_uses_indirect_blocks():
    fs, _ = make_fs()
    create(fs, "/", "big")
    data = bytes(range(256)) * 80
    write_file(fs, "/big", data)
    assert read_file(fs, "/big") == data
    with fs.log.transaction():
        ip = fs.namei("/big")
        fs.ilock(ip)
        indirect = ip.addrs[-1]
        fs.iunlockput(ip)
    assert indirect != 0


def test_read_clamps_to_size_and_rejects_bad_offset():
    fs, _ = make_fs()
    create(fs, "/", "f")
    write_file(fs, "/f", b"hello")
    with fs.log.transaction():
        ip = fs.namei("/f")
        fs.ilock(ip)
        tail = fs.readi(ip, 3, 100)
        with pytest.raises(ValueError):
            fs.readi(ip, 6, 1)
        fs.iunlockput(ip)
    assert tail == b"lo"


def test_write_past_max_file_size_fails():
    fs, _ = make_fs()
    create(fs, "/", "f")
    with fs.log.transaction():
        ip = fs.namei("/f")
        fs.ilock(ip)
        with pytest.raises(ValueError):
            fs.writei(ip, b"x" * (MAXFILE * BSIZE + 1), 0)
        with pytest.raises(ValueError):
            fs.writei(ip, b"x", 10)
        fs.iunlockput(ip)


def test_write_outside_transaction_panics():
    fs, _ = make_fs()
    inum = create(fs, "/", "f")
    ip = fs.iget(inum)
    fs.ilock(ip)
    with pytest.raises(FsPanic):
        fs.writei(ip, b"x", 0)


def test_dirlookup_and_duplicate_link():
    fs, _ = make_fs()
    inum = create(fs, "/", "entry")
    with fs.log.transaction():
        root = fs.namei("/")
        fs.ilock(root)
        found, off = fs.dirlookup(root, "entry")
        missing = fs.dirlookup(root, "nothing")
        with pytest.raises(FileExistsError):
            fs.dirlink(root, "entry", inum)
        fs.iunlock(root)
        fs.iput(found)
        fs.iput(root)
    assert found.inum == inum
    assert off == 2 * DIRENT_SIZE
    assert missing is None


def test_namei_nested_and_dotdot():
    fs, _ = make_fs()
    create(fs, "/", "dd", InodeType.DIR)
    ff = create(fs, "/dd", "ff")
    with fs.log.transaction():
        a = fs.namei("/dd/ff")
        b = fs.namei("dd/../dd/ff")
        inums = (a.inum, b.inum)
        fs.iput(a)
        fs.iput(b)
    assert inums == (ff, ff)


def test_namei_relative_to_cwd():
    fs, _ = make_fs()
    create(fs, "/", "dd", InodeType.DIR)
    ff = create(fs, "/dd", "ff")
    with fs.log.transaction():
        cwd = fs.namei("/dd")
        ip = fs.namei("ff", cwd)
        inum = ip.inum
        fs.iput(ip)
        fs.iput(cwd)
    assert inum == ff


def test_namei_long_names_are_truncated():
    fs, _ = make_fs()
    d = create(fs, "/", "12345678901234", InodeType.DIR)
    with fs.log.transaction():
        ip = fs.namei("/123456789012345")
        inum = ip.inum
        fs.iput(ip)
    assert inum == d


def test_namei_errors():
    fs, _ = make_fs()
    create(fs, "/", "file")
    with fs.log.transaction():
        with pytest.raises(FileNotFoundError):
            fs.namei("/doesnotexist")
        with pytest.raises(NotADirectoryError):
            fs.namei("/file/xx")


def test_nameiparent():
    fs, _ = make_fs()
    dd = create(fs, "/", "dd", InodeType.DIR)
    with fs.log.transaction():
        dp, name = fs.nameiparent("/dd/newname")
        inum = dp.inum
        fs.iput(dp)
        with pytest.raises(FileNotFoundError):
            fs.nameiparent("/")
    assert (inum, name) == (dd, "newname")


def test_iget_shares_cache_entry():
    fs, _ = make_fs()
    a = fs.iget(ROOTINO)
    b = fs.iget(ROOTINO)
    assert a is b
    assert a.ref == 2
    assert fs.idup(a).ref == 3


def test_iput_frees_unlinked_inode_and_blocks():
    fs, _ = make_fs()
    with fs.log.transaction():
        ip = fs.ialloc(InodeType.FILE)
        fs.ilock(ip)
        fs.writei(ip, b"data", 0)
        inum, addr = ip.inum, ip.addrs[0]
        fs.iunlockput(ip)
    with fs.log.transaction():
        again = fs.ialloc(InodeType.FILE)
        fs.ilock(again)
        fs.writei(again, b"more", 0)
        reused = (again.inum, again.addrs[0])
        fs.iunlockput(again)
    assert reused == (inum, addr)


def test_ilock_on_free_inode_panics():
    fs, _ = make_fs()
    ip = fs.iget(NINODES - 1)
    with pytest.raises(FsPanic):
        fs.ilock(ip)


def test_iunlock_requires_lock():
    fs, _ = make_fs()
    ip = fs.iget(ROOTINO)
    with pytest.raises(FsPanic):
        fs.iunlock(ip)


def test_contents_persist_on_disk():
    fs, disk = make_fs()
    create(fs, "/", "keep")
    write_file(fs, "/keep", b"persistent bytes")
    fresh = _mount(MemDisk(disk.image))
    assert read_file(fresh, "/keep") == b"persistent bytes"


def test_device_inode_uses_registered_handlers():
    fs, _ = make_fs()
    written = []
    fs.register_device(1, lambda ip, n: b"x" * n, lambda ip, data: written.append(data) or len(data))
    with fs.log.transaction():
        ip = fs.ialloc(InodeType.DEV)
        fs.ilock(ip)
        ip.major = 1
        fs.iupdate(ip)
        got = fs.readi(ip, 0, 3)
        count = fs.writei(ip, b"out", 0)
        ip.major = 2
        with pytest.raises(OSError):
            fs.readi(ip, 0, 1)
        fs.iunlockput(ip)
    assert got == b"xxx"
    assert count == 3
    assert written == [b"out"]


def test_register_device_rejects_bad_major():
    fs, _ = make_fs()
    with pytest.raises(ValueError):
        fs.register_device(-1, None, None)