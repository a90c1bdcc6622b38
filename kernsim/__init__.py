"""Models of a small x86 teaching kernel: paging, descriptors, ELF, traps, locks, allocator, system-call dispatch, shell parser and wc."""

__version__ = "0.1.0"

__all__ = [
    "cstring",
    "elf",
    "locks",
    "mmu",
    "shell",
    "syscall",
    "traps",
    "umalloc",
    "vm",
    "wc",
]