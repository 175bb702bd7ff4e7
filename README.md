# xv6sim

`xv6sim` models the storage and device layers of a small Unix-like teaching
kernel in plain Python. It includes the following parts:

- the on-disk file system format: superblock, inodes and directory entries (`xv6sim.layout`)
- a disk held in memory (`xv6sim.disk.MemoryDisk`)
- a buffer cache with LRU recycling (`xv6sim.bufcache.BufferCache`)
- a write-ahead log with crash recovery (`xv6sim.journal.Log`)
- inode, directory and path-name layers (`xv6sim.fs.FileSystem`)
- pipes and a file table (`xv6sim.pipe.Pipe`, `xv6sim.file.FileTable`)
- a console with line editing and an 80x25 CGA text screen (`xv6sim.console`)
- a PC keyboard scan-code decoder (`xv6sim.keyboard.KeyboardDecoder`)
- a CMOS clock reader (`xv6sim.rtc.cmos_time`)
- an MP configuration table parser (`xv6sim.mptable.mp_init`)
- a page allocator (`xv6sim.pages.PageAllocator`)

It also has small tools in `xv6sim.tools` (`cat`, `echo`, `ls`, `fmtname`,
`format_date`) and a grep in `xv6sim.grep`. It needs nothing beyond the
standard library.

## Install

```
pip install .
pip install .[test]   # to run the tests with pytest
```

## Building a disk image

`xv6sim-mkfs` writes an image whose root directory holds the files named on
the command line. Names must not contain `/`, and a leading `_` is dropped
from each name in the image. It prints the layout it chose.

```
xv6sim-mkfs fs.img README _cat _ls
```

From Python, `build_image` takes `(name, data)` pairs and returns the image
bytes:

```python
from xv6sim.mkfs import build_image
from xv6sim.disk import MemoryDisk
from xv6sim.fs import FileSystem

image = build_image([("README", b"hello\n")])
fs = FileSystem.mount(MemoryDisk(image))
ip = fs.namei("/README")
fs.lock(ip)
print(fs.read(ip, 0, 100))
fs.unlock_put(ip)
```

Operations that change the disk must run inside a log transaction:

```python
from xv6sim.layout import InodeType

with fs.log.transaction():
    ip = fs.alloc_inode(InodeType.FILE)
    fs.lock(ip)
    ip.nlink = 1
    fs.update(ip)
    fs.write(ip, 0, b"data")
    fs.unlock(ip)
```

`MemoryDisk.save(path)` writes the disk back to a file.

## Inspecting an image

`xv6sim` lists directories and prints files stored in an image. Relative
paths are taken from the root directory; `ls` with no path lists the root.

```
xv6sim ls fs.img /
xv6sim cat fs.img /README
```

## grep

`xv6sim-grep` takes a pattern and optional files, reading standard input
when no file is given. It supports only the `^`, `.`, `*` and `$` operators
and prints newline-terminated matching lines:

```
xv6sim-grep '^he.*o$' notes.txt
```

`xv6sim.grep.match(re, text)` and `xv6sim.grep.grep(pattern, stream)` do the
same from Python.

## Other pieces

- `xv6sim.fmt.printf_format` formats with `%d %x %p %s %c %%` and upper-case
  hex; `cprintf_format` formats with `%d %x %p %s %%` and lower-case hex.
- `xv6sim.keyboard.KeyboardDecoder.feed` turns scan codes into character codes.
- `xv6sim.rtc.cmos_time` reads a date from a register-reading callback.
- `xv6sim.mptable.mp_init` finds the CPUs and the I/O APIC in a memory image.
- `xv6sim.pages.PageAllocator` hands out 4096-byte pages from a free list.

Kernel invariant violations raise `xv6sim.errors.KernelPanic`.

## What it does not do

There are no processes, scheduler, system calls, shell or program loading:
nothing runs programs stored in an image. Operations that would put a
process to sleep, such as reading an empty pipe or console, raise
`BlockingIOError` instead. The `xv6sim` command only reads images; changing
files inside an existing image is done through the Python API.