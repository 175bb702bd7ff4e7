import pytest

from xv6sim.bufcache import BufferCache
from xv6sim.disk import MemoryDisk
from xv6sim.errors import KernelPanic
from xv6sim.layout import BSIZE


def _disk(n=8):
    disk = MemoryDisk(bytes(BSIZE * n))
    for i in range(n):
        disk.write_block(i, bytes([i]) * BSIZE)
    return disk


def test_read_returns_locked_buffer_with_disk_contents():
    cache = BufferCache(_disk())
    buf = cache.read(3)
    assert buf.locked
    assert buf.valid
    assert bytes(buf.data) == bytes([3]) * BSIZE
    cache.release(buf)
    assert not buf.locked


def test_write_reaches_disk():
    disk = _disk()
    cache = BufferCache(disk)
    buf = cache.read(4)
    buf.data[:] = b"\xee" * BSIZE
    cache.write(buf)
    cache.release(buf)
    assert disk.read_block(4) == b"\xee" * BSIZE
    assert not buf.dirty


def test_cached_buffer_is_reused():
    cache = BufferCache(_disk(), nbuf=3)
    first = cache.read(1)
    cache.release(first)
    again = cache.read(1)
    assert again is first
    cache.release(again)


def test_release_and_write_need_lock():
    cache = BufferCache(_disk())
    buf = cache.read(0)
    cache.release(buf)
    with pytest.raises(KernelPanic):
        cache.release(buf)
    with pytest.raises(KernelPanic):
        cache.write(buf)


def test_no_free_buffers():
    cache = BufferCache(_disk(), nbuf=2)
    cache.read(0)
    cache.read(1)
    with pytest.raises(KernelPanic):
        cache.read(2)


def test_dirty_buffer_is_not_recycled():
    cache = BufferCache(_disk(), nbuf=1)
    buf = cache.read(0)
    buf.dirty = True
    cache.release(buf)
    with pytest.raises(KernelPanic):
        cache.read(1)


def test_least_recently_used_is_recycled():
    cache = BufferCache(_disk(), nbuf=2)
    with cache.block(0) as b0:
        pass
    with cache.block(1) as b1:
        pass
    with cache.block(2) as b2:
        assert bytes(b2.data) == bytes([2]) * BSIZE
    assert b2 is b0
    with cache.block(1) as again:
        assert again is b1


def test_block_context_releases_on_error():
    cache = BufferCache(_disk(), nbuf=1)
    with pytest.raises(ZeroDivisionError):
        with cache.block(5) as buf:
            1 / 0
    assert not buf.locked
    assert buf.refcnt == 0


def test_double_lock_panics():
    cache = BufferCache(_disk())
    cache.read(2)
    with pytest.raises(KernelPanic):
        cache.read(2)