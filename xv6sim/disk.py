"""A disk that keeps its blocks in memory."""

from __future__ import annotations

import os

from .errors import KernelPanic
from .layout import BSIZE


class MemoryDisk:
    """Block device backed by a byte array; trailing partial blocks are ignored."""

    def __init__(self, data: bytes = b"") -> None:
        self._data = bytearray(data)
        self._nblocks = len(self._data) // BSIZE

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> "MemoryDisk":
        with open(path, "rb") as fh:
            return cls(fh.read())

    def block_count(self) -> int:
        return self._nblocks

    def _check(self, blockno: int) -> int:
        if blockno < 0 or blockno >= self._nblocks:
            raise KernelPanic("iderw: block out of range")
        return blockno * BSIZE

    def read_block(self, blockno: int) -> bytes:
        start = self._check(blockno)
        return bytes(self._data[start : start + BSIZE])

    def write_block(self, blockno: int, data: bytes) -> None:
        if len(data) != BSIZE:
            raise ValueError(f"a block is exactly {BSIZE} bytes")
        start = self._check(blockno)
        self._data[start : start + BSIZE] = data

    def to_bytes(self) -> bytes:
        return bytes(self._data)

    def save(self, path: str | os.PathLike[str]) -> None:
        with open(path, "wb") as fh:
            fh.write(self._data)