"""Trap numbers, system call numbers, the trap frame and the interrupt table."""

from __future__ import annotations

import struct
from dataclasses import astuple, dataclass
from enum import IntEnum
from typing import Sequence

from kernsim.mmu import DPL_USER, SEG_KCODE, GateDescriptor, set_gate


class Trap(IntEnum):
    DIVIDE = 0
    DEBUG = 1
    NMI = 2
    BRKPT = 3
    OFLOW = 4
    BOUND = 5
    ILLOP = 6
    DEVICE = 7
    DBLFLT = 8
    TSS = 10
    SEGNP = 11
    STACK = 12
    GPFLT = 13
    PGFLT = 14
    FPERR = 16
    ALIGN = 17
    MCHK = 18
    SIMDERR = 19
    IRQ0 = 32
    SYSCALL = 64
    DEFAULT = 500


class Irq(IntEnum):
    TIMER = 0
    KBD = 1
    COM1 = 4
    IDE = 14
    ERROR = 19
    SPURIOUS = 31


class Syscall(IntEnum):
    FORK = 1
    EXIT = 2
    WAIT = 3
    PIPE = 4
    READ = 5
    KILL = 6
    EXEC = 7
    FSTAT = 8
    CHDIR = 9
    DUP = 10
    GETPID = 11
    SBRK = 12
    SLEEP = 13
    UPTIME = 14
    OPEN = 15
    WRITE = 16
    MKNOD = 17
    UNLINK = 18
    LINK = 19
    MKDIR = 20
    CLOSE = 21


_TRAPFRAME = struct.Struct("<8I8H3I2H2I2H")

IDT_ENTRIES = 256


@dataclass
class TrapFrame:
    """Register state saved on the kernel stack when a trap arrives."""

    edi: int = 0
    esi: int = 0
    ebp: int = 0
    oesp: int = 0
    ebx: int = 0
    edx: int = 0
    ecx: int = 0
    eax: int = 0
    gs: int = 0
    padding1: int = 0
    fs: int = 0
    padding2: int = 0
    es: int = 0
    padding3: int = 0
    ds: int = 0
    padding4: int = 0
    trapno: int = 0
    err: int = 0
    eip: int = 0
    cs: int = 0
    padding5: int = 0
    eflags: int = 0
    esp: int = 0
    ss: int = 0
    padding6: int = 0

    def pack(self) -> bytes:
        return _TRAPFRAME.pack(*(int(v) for v in astuple(self)))


def unpack_trapframe(data: bytes) -> TrapFrame:
    """Decode a trap frame from its in-memory bytes."""
    if len(data) != _TRAPFRAME.size:
        raise ValueError(f"trap frame must be {_TRAPFRAME.size} bytes, got {len(data)}")
    return TrapFrame(*_TRAPFRAME.unpack(data))


def build_idt(vectors: Sequence[int]) -> list[GateDescriptor]:
    """Interrupt table: kernel interrupt gates, plus a user trap gate for system calls."""
    if len(vectors) != IDT_ENTRIES:
        raise ValueError(f"need {IDT_ENTRIES} vectors, got {len(vectors)}")
    idt = [set_gate(False, SEG_KCODE << 3, vector, 0) for vector in vectors]
    idt[Trap.SYSCALL] = set_gate(True, SEG_KCODE << 3, vectors[Trap.SYSCALL], DPL_USER)
    return idt