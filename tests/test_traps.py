import pytest

from kernsim.mmu import DPL_USER, SEG_KCODE, STS_IG32, STS_TG32
from kernsim.traps import (
    Irq,
    Syscall,
    Trap,
    TrapFrame,
    build_idt,
    unpack_trapframe,
)


def _frame():
    return TrapFrame(
        edi=1, esi=2, ebp=3, ebx=4, edx=5, ecx=6,
        eax=Syscall.WRITE,
        gs=0x23, fs=0x23, es=0x23, ds=0x23,
        trapno=Trap.SYSCALL,
        err=0,
        eip=0x1234,
        cs=(4 << 3) | DPL_USER,
        eflags=0x200,
        esp=0x3FFC,
        ss=(4 << 3) | DPL_USER,
    )


def test_trapframe_size():
    assert len(_frame().pack()) == 76


def test_trapframe_round_trip():
    frame = _frame()
    decoded = unpack_trapframe(frame.pack())
    assert decoded == frame
    assert decoded.eax == Syscall.WRITE
    assert decoded.trapno == Trap.SYSCALL


def test_trapframe_wrong_length():
    with pytest.raises(ValueError):
        unpack_trapframe(_frame().pack()[:-1])


def test_timer_irq_frame():
    frame = TrapFrame(trapno=Trap.IRQ0 + Irq.TIMER)
    assert unpack_trapframe(frame.pack()).trapno == Trap.IRQ0 + Irq.TIMER


def test_idt_layout():
    vectors = [0x80105000 + 8 * i for i in range(256)]
    idt = build_idt(vectors)
    assert len(idt) == len(vectors)
    assert [gate.offset for gate in idt] == vectors
    assert all(gate.cs == SEG_KCODE << 3 for gate in idt)
    syscall_gate = idt[Trap.SYSCALL]
    assert syscall_gate.type == STS_TG32
    assert syscall_gate.dpl == DPL_USER
    others = [g for i, g in enumerate(idt) if i != Trap.SYSCALL]
    assert all(g.type == STS_IG32 and g.dpl == 0 for g in others)


def test_idt_needs_full_vector_table():
    with pytest.raises(ValueError):
        build_idt([0] * 10)