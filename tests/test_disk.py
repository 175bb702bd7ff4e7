import pytest

from xv6sim.disk import MemoryDisk
from xv6sim.errors import KernelPanic
from xv6sim.layout import BSIZE


def test_block_count_ignores_partial_block():
    disk = MemoryDisk(bytes(BSIZE * 3 + 10))
    assert disk.block_count() == 3
    with pytest.raises(KernelPanic):
        disk.read_block(3)


def test_write_then_read():
    disk = MemoryDisk(bytes(BSIZE * 4))
    payload = bytes(range(256)) * 2
    disk.write_block(2, payload)
    assert disk.read_block(2) == payload
    assert disk.read_block(1) == bytes(BSIZE)
    assert disk.to_bytes()[2 * BSIZE : 3 * BSIZE] == payload


def test_out_of_range_and_bad_size():
    disk = MemoryDisk(bytes(BSIZE * 2))
    with pytest.raises(KernelPanic):
        disk.read_block(-1)
    with pytest.raises(KernelPanic):
        disk.write_block(5, bytes(BSIZE))
    with pytest.raises(ValueError):
        disk.write_block(0, b"short")


def test_file_round_trip(tmp_path):
    disk = MemoryDisk(bytes(BSIZE * 2))
    disk.write_block(1, b"\x07" * BSIZE)
    path = tmp_path / "fs.img"
    disk.save(path)
    loaded = MemoryDisk.from_file(path)
    assert loaded.to_bytes() == disk.to_bytes()
    assert loaded.read_block(1) == b"\x07" * BSIZE