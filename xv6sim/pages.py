"""Physical page allocator handing out 4096-byte pages."""

from __future__ import annotations

from .errors import KernelPanic

PGSIZE = 4096


def pg_round_up(addr: int) -> int:
    return (addr + PGSIZE - 1) & ~(PGSIZE - 1)


class PageAllocator:
    """Free-list allocator over the address range [lowest, limit)."""

    def __init__(self, lowest: int, limit: int) -> None:
        self.lowest = lowest
        self.limit = limit
        self._freelist: list[int] = []
        self._memory: dict[int, bytearray] = {}

    def free_range(self, start: int, end: int) -> None:
        """Free every whole page between ``start`` and ``end``."""
        for addr in range(pg_round_up(start), end - PGSIZE + 1, PGSIZE):
            self.free(addr)

    def free(self, addr: int) -> None:
        """Return a page to the free list, filling it with junk."""
        if addr % PGSIZE or addr < self.lowest or addr >= self.limit:
            raise KernelPanic("kfree")
        self._memory[addr] = bytearray(b"\x01" * PGSIZE)
        self._freelist.append(addr)

    def alloc(self) -> int:
        """Take a page off the free list and return its address."""
        if not self._freelist:
            raise MemoryError("kalloc: out of pages")
        return self._freelist.pop()

    def page(self, addr: int) -> bytearray:
        """The contents of the page at ``addr``."""
        try:
            return self._memory[addr]
        except KeyError:
            raise ValueError(f"no page at {addr:#x}") from None