"""Finding processors and the I/O APIC from the MultiProcessor tables."""

from __future__ import annotations

import struct
from collections.abc import Sequence
from dataclasses import dataclass, field

from .errors import KernelPanic

NCPU = 8

# Table entry types.
MPPROC = 0x00
MPBUS = 0x01
MPIOAPIC = 0x02
MPIOINTR = 0x03
MPLINTR = 0x04

MPBOOT = 0x02  # flag of the bootstrap processor

# Floating pointer: signature, physaddr, length, specrev, checksum, type, imcrp.
MP_STRUCT = struct.Struct("<4sIBBBBB3x")
# Configuration header: signature, length, version, checksum, product,
# oemtable, oemlength, entry count, lapicaddr, xlength, xchecksum.
MPCONF_STRUCT = struct.Struct("<4sHBB20sIHHIHBx")
# Processor entry: type, apicid, version, flags, signature, feature.
MPPROC_STRUCT = struct.Struct("<BBBB4sI8x")
# I/O APIC entry: type, apicno, version, flags, addr.
MPIOAPIC_STRUCT = struct.Struct("<BBBBI")

_BDA = 0x400
_BIOS_ROM = 0xF0000


@dataclass
class MpConfig:
    """What the MP tables say about the machine."""

    lapic: int
    cpus: list[int] = field(default_factory=list)  # local APIC ids
    ioapicid: int = 0
    imcrp: bool = False

    @property
    def ncpu(self) -> int:
        return len(self.cpus)


def checksum(data: bytes) -> int:
    """Byte sum of ``data`` modulo 256; valid tables sum to zero."""
    return sum(data) & 0xFF


def search_floating_pointer(
    memory: Sequence[int] | bytes, start: int, length: int
) -> int | None:
    """Offset of a valid floating pointer structure in ``length`` bytes at ``start``."""
    size = MP_STRUCT.size
    for p in range(start, start + length, size):
        chunk = bytes(memory[p : p + size])
        if len(chunk) == size and chunk[:4] == b"_MP_" and checksum(chunk) == 0:
            return p
    return None


def _u16(memory: Sequence[int] | bytes, at: int) -> int:
    return (memory[at + 1] << 8) | memory[at]


def find_floating_pointer(memory: Sequence[int] | bytes) -> int | None:
    """Look in the EBDA, the last KB of base memory, then the BIOS ROM."""
    ebda = _u16(memory, _BDA + 0x0E) << 4
    if ebda:
        found = search_floating_pointer(memory, ebda, 1024)
    else:
        base = _u16(memory, _BDA + 0x13) * 1024
        found = search_floating_pointer(memory, base - 1024, 1024)
    if found is not None:
        return found
    return search_floating_pointer(memory, _BIOS_ROM, 0x10000)


def _config(memory: Sequence[int] | bytes) -> tuple[int, int] | None:
    mp = find_floating_pointer(memory)
    if mp is None:
        return None
    _, physaddr, *_ = MP_STRUCT.unpack(bytes(memory[mp : mp + MP_STRUCT.size]))
    if physaddr == 0:
        return None
    header = bytes(memory[physaddr : physaddr + MPCONF_STRUCT.size])
    if len(header) != MPCONF_STRUCT.size or header[:4] != b"PCMP":
        return None
    _, length, version, *_ = MPCONF_STRUCT.unpack(header)
    if version not in (1, 4):
        return None
    table = bytes(memory[physaddr : physaddr + length])
    if len(table) != length or checksum(table) != 0:
        return None
    return mp, physaddr


def mp_init(memory: Sequence[int] | bytes, ncpu_max: int = NCPU) -> MpConfig:
    """Parse the MP configuration found in physical ``memory``."""
    found = _config(memory)
    if found is None:
        raise KernelPanic("Expect to run on an SMP")
    mp, conf = found
    imcrp = MP_STRUCT.unpack(bytes(memory[mp : mp + MP_STRUCT.size]))[6]
    header = MPCONF_STRUCT.unpack(bytes(memory[conf : conf + MPCONF_STRUCT.size]))
    length, lapicaddr = header[1], header[8]
    config = MpConfig(lapic=lapicaddr, imcrp=bool(imcrp))

    p = conf + MPCONF_STRUCT.size
    end = conf + length
    while p < end:
        kind = memory[p]
        if kind == MPPROC:
            entry = bytes(memory[p : p + MPPROC_STRUCT.size])
            if len(entry) != MPPROC_STRUCT.size:
                raise KernelPanic("Didn't find a suitable machine")
            if config.ncpu < ncpu_max:
                config.cpus.append(MPPROC_STRUCT.unpack(entry)[1])
            p += MPPROC_STRUCT.size
        elif kind == MPIOAPIC:
            entry = bytes(memory[p : p + MPIOAPIC_STRUCT.size])
            if len(entry) != MPIOAPIC_STRUCT.size:
                raise KernelPanic("Didn't find a suitable machine")
            config.ioapicid = MPIOAPIC_STRUCT.unpack(entry)[1]
            p += MPIOAPIC_STRUCT.size
        elif kind in (MPBUS, MPIOINTR, MPLINTR):
            p += 8
        else:
            raise KernelPanic("Didn't find a suitable machine")
    return config