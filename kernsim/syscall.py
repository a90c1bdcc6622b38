"""System call argument fetching and dispatch."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict

from kernsim.mmu import U32
from kernsim.traps import TrapFrame

Handler = Callable[["UserProcess"], int]


class BadAddress(ValueError):
    """A user-supplied address lies outside the process's memory."""


@dataclass(eq=False)
class UserProcess:
    """A process as seen by system calls: its memory image and saved registers."""

    pid: int = 1
    name: str = ""
    memory: bytearray = field(default_factory=bytearray)
    tf: TrapFrame = field(default_factory=TrapFrame)
    killed: bool = False

    @property
    def sz(self) -> int:
        return len(self.memory)


def fetch_int(proc: UserProcess, addr: int) -> int:
    """The signed 32-bit integer at user address ``addr``."""
    addr &= U32
    if addr >= proc.sz or addr + 4 > proc.sz:
        raise BadAddress(f"int at 0x{addr:x} outside process memory")
    return int.from_bytes(proc.memory[addr:addr + 4], "little", signed=True)


def fetch_str(proc: UserProcess, addr: int) -> bytes:
    """The NUL-terminated string at user address ``addr``, without its NUL."""
    addr &= U32
    if addr >= proc.sz:
        raise BadAddress(f"string at 0x{addr:x} outside process memory")
    end = proc.memory.find(0, addr)
    if end < 0:
        raise BadAddress(f"string at 0x{addr:x} is not terminated")
    return bytes(proc.memory[addr:end])


def arg_int(proc: UserProcess, n: int) -> int:
    """The ``n``-th 32-bit system call argument."""
    return fetch_int(proc, (proc.tf.esp + 4 + 4 * n) & U32)


def arg_ptr(proc: UserProcess, n: int, size: int) -> int:
    """The ``n``-th argument as the address of ``size`` bytes inside the process."""
    addr = arg_int(proc, n) & U32
    if size < 0 or addr >= proc.sz or addr + size > proc.sz:
        raise BadAddress(f"buffer 0x{addr:x}+{size} outside process memory")
    return addr


def arg_str(proc: UserProcess, n: int) -> bytes:
    """The ``n``-th argument as a NUL-terminated string."""
    return fetch_str(proc, arg_int(proc, n) & U32)


@dataclass
class SyscallTable:
    """Maps system call numbers to handlers and runs them for a trapped process."""

    handlers: Dict[int, Handler] = field(default_factory=dict)
    console: Callable[[str], None] = print

    def register(self, num: int, handler: Handler) -> Handler:
        """Install ``handler`` for system call ``num``."""
        if int(num) <= 0:
            raise ValueError(f"system call numbers start at 1, got {num}")
        self.handlers[int(num)] = handler
        return handler

    def dispatch(self, proc: UserProcess) -> int:
        """Run the call named by ``%eax``, store its result there and return it."""
        eax = proc.tf.eax & U32
        num = eax - (1 << 32) if eax & 0x80000000 else eax
        handler = self.handlers.get(num) if num > 0 else None
        if handler is None:
            self.console(f"{proc.pid} {proc.name}: unknown sys call {num}")
            result = -1
        else:
            try:
                result = int(handler(proc))
            except BadAddress:
                result = -1
        proc.tf.eax = result & U32
        return result