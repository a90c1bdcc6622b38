"""Spin locks with nested interrupt disabling, and sleeping locks."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional


class LockPanic(RuntimeError):
    """A lock was used in a way the kernel treats as fatal."""


@dataclass(eq=False)
class Cpu:
    """Per-CPU interrupt state: nesting depth of disables and saved enable flag."""

    id: int = 0
    ncli: int = 0
    intena: bool = False
    interrupts_enabled: bool = True

    def push_cli(self) -> None:
        """Disable interrupts; matched by :meth:`pop_cli`."""
        was_enabled = self.interrupts_enabled
        self.interrupts_enabled = False
        if self.ncli == 0:
            self.intena = was_enabled
        self.ncli += 1

    def pop_cli(self) -> None:
        """Undo one :meth:`push_cli`; re-enable interrupts at the outermost level."""
        if self.interrupts_enabled:
            raise LockPanic("popcli - interruptible")
        if self.ncli <= 0:
            raise LockPanic("popcli")
        self.ncli -= 1
        if self.ncli == 0 and self.intena:
            self.interrupts_enabled = True


class SpinLock:
    """Mutual exclusion lock held by a CPU, with interrupts off while held."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self.locked = False
        self.cpu: Optional[Cpu] = None
        self._word = threading.Lock()

    def acquire(self, cpu: Cpu) -> None:
        """Wait until the lock is free, then take it for ``cpu``."""
        cpu.push_cli()
        if self.holding(cpu):
            cpu.pop_cli()
            raise LockPanic("acquire")
        self._word.acquire()
        self.locked = True
        self.cpu = cpu

    def release(self, cpu: Cpu) -> None:
        if not self.holding(cpu):
            raise LockPanic("release")
        self.cpu = None
        self.locked = False
        self._word.release()
        cpu.pop_cli()

    def holding(self, cpu: Cpu) -> bool:
        """Whether ``cpu`` holds this lock."""
        cpu.push_cli()
        try:
            return self.locked and self.cpu is cpu
        finally:
            cpu.pop_cli()


class SleepLock:
    """Long-term lock; waiters sleep instead of spinning."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self.locked = False
        self.pid = 0
        self._cond = threading.Condition()

    def acquire(self, pid: int) -> None:
        with self._cond:
            while self.locked:
                self._cond.wait()
            self.locked = True
            self.pid = pid

    def release(self) -> None:
        with self._cond:
            self.locked = False
            self.pid = 0
            self._cond.notify_all()

    def holding(self, pid: int) -> bool:
        with self._cond:
            return self.locked and self.pid == pid