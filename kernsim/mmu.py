"""x86 MMU definitions: segment and gate descriptors, paging helpers, memory layout."""

from __future__ import annotations

import struct
from dataclasses import dataclass, fields

U32 = 0xFFFFFFFF

# System parameters.
NPROC = 64
KSTACKSIZE = 4096
NCPU = 8
NOFILE = 16
NFILE = 100
NINODE = 50
NDEV = 10
ROOTDEV = 1
MAXARG = 32
MAXOPBLOCKS = 10
LOGSIZE = MAXOPBLOCKS * 3
NBUF = MAXOPBLOCKS * 3
FSSIZE = 1000

# Memory layout.
EXTMEM = 0x100000
PHYSTOP = 0xE000000
DEVSPACE = 0xFE000000
KERNBASE = 0x80000000
KERNLINK = KERNBASE + EXTMEM

# Eflags and control register bits.
FL_IF = 0x00000200
CR0_PE = 0x00000001
CR0_WP = 0x00010000
CR0_PG = 0x80000000
CR4_PSE = 0x00000010

# Segment selectors.
SEG_KCODE = 1
SEG_KDATA = 2
SEG_UCODE = 3
SEG_UDATA = 4
SEG_TSS = 5
NSEGS = 6

DPL_USER = 0x3

# Application segment type bits.
STA_X = 0x8
STA_W = 0x2
STA_R = 0x2

# System segment type bits.
STS_T32A = 0x9
STS_IG32 = 0xE
STS_TG32 = 0xF

# Paging.
NPDENTRIES = 1024
NPTENTRIES = 1024
PGSIZE = 4096
PTXSHIFT = 12
PDXSHIFT = 22

PTE_P = 0x001
PTE_W = 0x002
PTE_U = 0x004
PTE_PS = 0x080

SEG_NULLASM = bytes(8)


def _mask_fields(obj, layout):
    for name, width in layout:
        setattr(obj, name, int(getattr(obj, name)) & ((1 << width) - 1))


def _pack_fields(obj, layout) -> bytes:
    value = 0
    shift = 0
    for name, width in layout:
        value |= (int(getattr(obj, name)) & ((1 << width) - 1)) << shift
        shift += width
    return value.to_bytes(shift // 8, "little")


_SEG_LAYOUT = (
    ("lim_15_0", 16),
    ("base_15_0", 16),
    ("base_23_16", 8),
    ("type", 4),
    ("s", 1),
    ("dpl", 2),
    ("p", 1),
    ("lim_19_16", 4),
    ("avl", 1),
    ("rsv1", 1),
    ("db", 1),
    ("g", 1),
    ("base_31_24", 8),
)

_GATE_LAYOUT = (
    ("off_15_0", 16),
    ("cs", 16),
    ("args", 5),
    ("rsv1", 3),
    ("type", 4),
    ("s", 1),
    ("dpl", 2),
    ("p", 1),
    ("off_31_16", 16),
)


@dataclass
class SegmentDescriptor:
    """A GDT segment descriptor; fields are truncated to their bit widths."""

    lim_15_0: int = 0
    base_15_0: int = 0
    base_23_16: int = 0
    type: int = 0
    s: int = 0
    dpl: int = 0
    p: int = 0
    lim_19_16: int = 0
    avl: int = 0
    rsv1: int = 0
    db: int = 0
    g: int = 0
    base_31_24: int = 0

    def __post_init__(self) -> None:
        _mask_fields(self, _SEG_LAYOUT)

    def pack(self) -> bytes:
        """Return the 8-byte in-memory form of the descriptor."""
        return _pack_fields(self, _SEG_LAYOUT)


@dataclass
class GateDescriptor:
    """An IDT interrupt or trap gate descriptor."""

    off_15_0: int = 0
    cs: int = 0
    args: int = 0
    rsv1: int = 0
    type: int = 0
    s: int = 0
    dpl: int = 0
    p: int = 0
    off_31_16: int = 0

    def __post_init__(self) -> None:
        _mask_fields(self, _GATE_LAYOUT)

    @property
    def offset(self) -> int:
        return self.off_15_0 | (self.off_31_16 << 16)

    def pack(self) -> bytes:
        """Return the 8-byte in-memory form of the gate."""
        return _pack_fields(self, _GATE_LAYOUT)


def seg(type_: int, base: int, limit: int, dpl: int) -> SegmentDescriptor:
    """Normal 32-bit segment with 4 KiB granularity."""
    base &= U32
    limit &= U32
    return SegmentDescriptor(
        lim_15_0=(limit >> 12) & 0xFFFF,
        base_15_0=base & 0xFFFF,
        base_23_16=(base >> 16) & 0xFF,
        type=type_,
        s=1,
        dpl=dpl,
        p=1,
        lim_19_16=limit >> 28,
        avl=0,
        rsv1=0,
        db=1,
        g=1,
        base_31_24=base >> 24,
    )


def seg16(type_: int, base: int, limit: int, dpl: int) -> SegmentDescriptor:
    """Segment with byte granularity, as used for the task state segment."""
    base &= U32
    limit &= U32
    return SegmentDescriptor(
        lim_15_0=limit & 0xFFFF,
        base_15_0=base & 0xFFFF,
        base_23_16=(base >> 16) & 0xFF,
        type=type_,
        s=1,
        dpl=dpl,
        p=1,
        lim_19_16=limit >> 16,
        avl=0,
        rsv1=0,
        db=1,
        g=0,
        base_31_24=base >> 24,
    )


def seg_asm(type_: int, base: int, limit: int) -> bytes:
    """Bytes of a flat 32-bit segment as the boot assembler emits them."""
    base &= U32
    limit &= U32
    return struct.pack(
        "<HHBBBB",
        (limit >> 12) & 0xFFFF,
        base & 0xFFFF,
        (base >> 16) & 0xFF,
        (0x90 | type_) & 0xFF,
        0xC0 | ((limit >> 28) & 0xF),
        (base >> 24) & 0xFF,
    )


def set_gate(istrap: bool, sel: int, off: int, dpl: int) -> GateDescriptor:
    """Build an interrupt gate, or a trap gate when ``istrap`` is true."""
    off &= U32
    return GateDescriptor(
        off_15_0=off & 0xFFFF,
        cs=sel,
        args=0,
        rsv1=0,
        type=STS_TG32 if istrap else STS_IG32,
        s=0,
        dpl=dpl,
        p=1,
        off_31_16=off >> 16,
    )


def pdx(va: int) -> int:
    """Page directory index of a virtual address."""
    return ((va & U32) >> PDXSHIFT) & 0x3FF


def ptx(va: int) -> int:
    """Page table index of a virtual address."""
    return ((va & U32) >> PTXSHIFT) & 0x3FF


def pgaddr(d: int, t: int, o: int) -> int:
    """Virtual address from directory index, table index and offset."""
    return ((d << PDXSHIFT) | (t << PTXSHIFT) | o) & U32


def pg_round_up(sz: int) -> int:
    return (sz + PGSIZE - 1) & ~(PGSIZE - 1) & U32


def pg_round_down(a: int) -> int:
    return a & ~(PGSIZE - 1) & U32


def pte_addr(pte: int) -> int:
    return pte & U32 & ~0xFFF


def pte_flags(pte: int) -> int:
    return pte & 0xFFF


def v2p(a: int) -> int:
    """Kernel virtual address to physical address."""
    return (a - KERNBASE) & U32


def p2v(a: int) -> int:
    """Physical address to kernel virtual address."""
    return (a + KERNBASE) & U32


__all__ = [name for name in dir() if not name.startswith("_") and name not in {"annotations", "struct", "dataclass", "fields"}]