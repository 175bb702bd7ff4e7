import pytest

from xv6sim.disk import MemoryDisk
from xv6sim.errors import KernelPanic
from xv6sim.fs import FileSystem, namecmp, read_superblock, skipelem
from xv6sim.layout import (
    BPB,
    BSIZE,
    DIRENT_SIZE,
    DIRSIZ,
    FSSIZE,
    IPB,
    LOGSIZE,
    MAXFILE,
    NDIRECT,
    ROOTINO,
    InodeType,
    SuperBlock,
)


def make_disk(fssize=FSSIZE, ninodes=200):
    nlog = LOGSIZE
    ninodeblocks = ninodes // IPB + 1
    nbitmap = fssize // BPB + 1
    nmeta = 2 + nlog + ninodeblocks + nbitmap
    sb = SuperBlock(
        fssize, fssize - nmeta, ninodes, nlog, 2, 2 + nlog, 2 + nlog + ninodeblocks
    )
    image = bytearray(fssize * BSIZE)
    packed = sb.pack()
    image[BSIZE : BSIZE + len(packed)] = packed
    for i in range(nmeta):
        image[sb.bmapstart * BSIZE + i // 8] |= 1 << (i % 8)
    return MemoryDisk(bytes(image)), sb


def fresh_fs(**kwargs):
    disk, _ = make_disk()
    fs = FileSystem.mount(disk, **kwargs)
    with fs.log.transaction():
        root = fs.alloc_inode(InodeType.DIR)
        fs.lock(root)
        root.nlink = 1
        fs.update(root)
        fs.link(root, ".", root.inum)
        fs.link(root, "..", root.inum)
        fs.unlock_put(root)
    return fs, disk


def create(fs, path, kind=InodeType.FILE, major=0):
    with fs.log.transaction():
        parent, name = fs.nameiparent(path)
        ip = fs.alloc_inode(kind)
        fs.lock(ip)
        ip.major = major
        ip.nlink = 1
        fs.update(ip)
        fs.lock(parent)
        fs.link(parent, name, ip.inum)
        fs.unlock_put(parent)
        fs.unlock(ip)
    return ip


def write_all(fs, ip, data, off=0):
    chunk = 3 * BSIZE
    for start in range(0, len(data), chunk):
        with fs.log.transaction():
            fs.lock(ip)
            fs.write(ip, off + start, data[start : start + chunk])
            fs.unlock(ip)


def read_all(fs, ip):
    fs.lock(ip)
    try:
        return fs.read(ip, 0, ip.size)
    finally:
        fs.unlock(ip)


@pytest.mark.parametrize(
    "path, expected",
    [
        ("a/bb/c", ("a", "bb/c")),
        ("///a//bb", ("a", "bb")),
        ("a", ("a", "")),
        ("", None),
        ("////", None),
    ],
)
def test_skipelem_examples(path, expected):
    assert skipelem(path) == expected


def test_skipelem_truncates_long_names():
    name, rest = skipelem("/" + "x" * (DIRSIZ + 5) + "/y")
    assert name == "x" * DIRSIZ
    assert rest == "y"


def test_namecmp():
    assert namecmp("abc", "abc") == 0
    assert namecmp("a" * DIRSIZ + "x", "a" * DIRSIZ + "y") == 0
    assert namecmp("a", "b") < 0
    assert namecmp("b", "a") > 0


def test_read_superblock_matches_image():
    disk, sb = make_disk()
    fs = FileSystem.mount(disk)
    assert read_superblock(fs.cache) == sb
    assert fs.sb == sb


def test_root_lookup():
    fs, _ = fresh_fs()
    root = fs.namei("/")
    assert root.inum == ROOTINO
    fs.lock(root)
    assert root.type == InodeType.DIR
    dot, off = fs.lookup(root, ".")
    assert dot is root and off == 0
    dotdot, off2 = fs.lookup(root, "..")
    assert off2 == DIRENT_SIZE
    assert fs.lookup(root, "missing") is None
    fs.unlock(root)


def test_write_and_read_back():
    fs, _ = fresh_fs()
    ip = create(fs, "/file")
    data = bytes(range(256)) * 7
    write_all(fs, ip, data)
    assert read_all(fs, ip) == data
    found = fs.namei("/file")
    assert found is ip
    assert fs.stat(ip).size == len(data)
    assert fs.stat(ip).ino == ip.inum


def test_read_clips_at_end():
    fs, _ = fresh_fs()
    ip = create(fs, "/f")
    write_all(fs, ip, b"hello")
    fs.lock(ip)
    assert fs.read(ip, 0, 100) == b"hello"
    assert fs.read(ip, 2, 2) == b"ll"
    assert fs.read(ip, 5, 10) == b""
    with pytest.raises(ValueError):
        fs.read(ip, 6, 1)
    fs.unlock(ip)


def test_write_past_end_rejected():
    fs, _ = fresh_fs()
    ip = create(fs, "/f")
    with fs.log.transaction():
        fs.lock(ip)
        with pytest.raises(ValueError):
            fs.write(ip, 1, b"x")
        fs.unlock(ip)


def test_indirect_blocks_and_persistence():
    fs, disk = fresh_fs()
    ip = create(fs, "/big")
    data = bytes((i * 7) % 251 for i in range((NDIRECT + 3) * BSIZE + 17))
    write_all(fs, ip, data)
    assert ip.addrs[NDIRECT] != 0
    fs2 = FileSystem.mount(disk)
    again = fs2.namei("/big")
    assert read_all(fs2, again) == data


def test_maximum_file_size():
    fs, _ = fresh_fs()
    ip = create(fs, "/max")
    write_all(fs, ip, b"z" * (MAXFILE * BSIZE))
    assert ip.size == MAXFILE * BSIZE
    with fs.log.transaction():
        fs.lock(ip)
        with pytest.raises(ValueError):
            fs.write(ip, ip.size, b"!")
        fs.unlock(ip)


def test_link_duplicate_raises():
    fs, _ = fresh_fs()
    create(fs, "/dup")
    root = fs.namei("/")
    with fs.log.transaction():
        fs.lock(root)
        with pytest.raises(FileExistsError):
            fs.link(root, "dup", ROOTINO)
        fs.unlock_put(root)


def test_nameiparent():
    fs, _ = fresh_fs()
    parent, name = fs.nameiparent("/newfile")
    assert parent.inum == ROOTINO
    assert name == "newfile"
    assert fs.nameiparent("/") is None


def test_namei_missing_and_through_file():
    fs, _ = fresh_fs()
    create(fs, "/plain")
    assert fs.namei("/nothere") is None
    assert fs.namei("/plain/x") is None


def test_relative_paths():
    fs, _ = fresh_fs()
    d = create(fs, "/d", kind=InodeType.DIR)
    x = create(fs, "/d/x")
    cwd = fs.namei("/d")
    assert cwd is d
    assert fs.namei("x", cwd) is x
    with pytest.raises(ValueError):
        fs.namei("x")


def test_put_frees_unlinked_inode():
    fs, _ = fresh_fs()
    ip = create(fs, "/gone")
    write_all(fs, ip, b"q" * 2000)
    inum = ip.inum
    with fs.log.transaction():
        fs.lock(ip)
        ip.nlink = 0
        fs.update(ip)
        fs.unlock_put(ip)
        again = fs.alloc_inode(InodeType.FILE)
        assert again.inum == inum
        fs.lock(again)
        assert again.size == 0
        assert all(a == 0 for a in again.addrs)
        fs.unlock_put(again)


def test_get_shares_cached_inode_and_counts_refs():
    fs, _ = fresh_fs()
    a = fs.get(ROOTINO)
    b = fs.get(ROOTINO)
    assert a is b
    assert a.ref == 2
    fs.put(b)
    assert a.ref == 1
    assert fs.dup(a).ref == 2


def test_inode_cache_exhaustion():
    fs, _ = fresh_fs(ninode=2)
    fs.get(1)
    fs.get(2)
    with pytest.raises(KernelPanic):
        fs.get(3)


def test_lock_errors():
    fs, _ = fresh_fs()
    root = fs.get(ROOTINO)
    with pytest.raises(KernelPanic):
        fs.unlock(root)
    fs.lock(root)
    with pytest.raises(KernelPanic):
        fs.lock(root)
    with pytest.raises(KernelPanic):
        fs.put(root)
    fs.unlock(root)
    with pytest.raises(KernelPanic):
        fs.lock(None)


def test_lookup_on_file_panics():
    fs, _ = fresh_fs()
    ip = create(fs, "/f")
    fs.lock(ip)
    with pytest.raises(KernelPanic):
        fs.lookup(ip, "x")
    fs.unlock(ip)


class _Device:
    def __init__(self):
        self.written = []

    def read(self, ip, n):
        return b"device-data"[:n]

    def write(self, ip, data):
        self.written.append(data)
        return len(data)


def test_device_inode_dispatch():
    dev = _Device()
    fs, _ = fresh_fs(devsw={1: dev})
    ip = create(fs, "/console", kind=InodeType.DEVICE, major=1)
    fs.lock(ip)
    assert fs.read(ip, 0, 6) == b"device"
    assert fs.write(ip, 0, b"out") == 3
    fs.unlock(ip)
    assert dev.written == [b"out"]


def test_device_without_handler():
    fs, _ = fresh_fs()
    ip = create(fs, "/null", kind=InodeType.DEVICE, major=5)
    fs.lock(ip)
    with pytest.raises(OSError):
        fs.read(ip, 0, 1)
    fs.unlock(ip)


def test_log_write_outside_transaction_panics():
    fs, _ = fresh_fs()
    with pytest.raises(KernelPanic):
        fs.alloc_inode(InodeType.FILE)