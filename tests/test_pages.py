import pytest

from xv6sim.errors import KernelPanic
from xv6sim.pages import PGSIZE, PageAllocator

LOW = 0x100000
HIGH = LOW + 16 * PGSIZE


def test_alloc_returns_distinct_aligned_pages_until_empty():
    pages = PageAllocator(LOW, HIGH)
    pages.free_range(LOW, HIGH)
    got = []
    with pytest.raises(MemoryError):
        while True:
            got.append(pages.alloc())
    assert len(got) == len(set(got)) == (HIGH - LOW) // PGSIZE
    assert all(a % PGSIZE == 0 and LOW <= a < HIGH for a in got)


def test_free_list_is_last_in_first_out():
    pages = PageAllocator(LOW, HIGH)
    pages.free(LOW)
    pages.free(LOW + PGSIZE)
    assert pages.alloc() == LOW + PGSIZE
    assert pages.alloc() == LOW


def test_free_range_rounds_start_up():
    pages = PageAllocator(LOW, HIGH)
    pages.free_range(LOW + 1, LOW + 3 * PGSIZE)
    got = {pages.alloc(), pages.alloc()}
    assert got == {LOW + PGSIZE, LOW + 2 * PGSIZE}
    with pytest.raises(MemoryError):
        pages.alloc()


@pytest.mark.parametrize("addr", [LOW + 1, LOW - PGSIZE, HIGH])
def test_free_rejects_bad_addresses(addr):
    pages = PageAllocator(LOW, HIGH)
    with pytest.raises(KernelPanic):
        pages.free(addr)


def test_freed_page_is_filled_with_junk():
    pages = PageAllocator(LOW, HIGH)
    pages.free(LOW)
    addr = pages.alloc()
    assert pages.page(addr) == b"\x01" * PGSIZE
    pages.page(addr)[:4] = b"data"
    pages.free(addr)
    assert pages.page(addr) == b"\x01" * PGSIZE


def test_unknown_page():
    pages = PageAllocator(LOW, HIGH)
    with pytest.raises(ValueError):
        pages.page(LOW)