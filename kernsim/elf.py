"""Reading and writing 32-bit ELF file and program headers."""

from __future__ import annotations

import struct
from dataclasses import astuple, dataclass

ELF_MAGIC = 0x464C457F  # "\x7FELF" little endian

ELF_PROG_LOAD = 1

ELF_PROG_FLAG_EXEC = 1
ELF_PROG_FLAG_WRITE = 2
ELF_PROG_FLAG_READ = 4

_ELFHDR = struct.Struct("<I12sHHIIIIIHHHHHH")
_PROGHDR = struct.Struct("<8I")


class ElfFormatError(ValueError):
    """The data is not a well-formed ELF image."""


@dataclass
class ElfHeader:
    magic: int = ELF_MAGIC
    elf: bytes = bytes(12)
    type: int = 0
    machine: int = 0
    version: int = 0
    entry: int = 0
    phoff: int = 0
    shoff: int = 0
    flags: int = 0
    ehsize: int = 0
    phentsize: int = 0
    phnum: int = 0
    shentsize: int = 0
    shnum: int = 0
    shstrndx: int = 0

    def pack(self) -> bytes:
        return _ELFHDR.pack(*astuple(self))


@dataclass
class ProgramHeader:
    type: int = 0
    off: int = 0
    vaddr: int = 0
    paddr: int = 0
    filesz: int = 0
    memsz: int = 0
    flags: int = 0
    align: int = 0

    def pack(self) -> bytes:
        return _PROGHDR.pack(*astuple(self))


def parse_elf_header(data: bytes) -> ElfHeader:
    """Decode the file header at the start of ``data``."""
    if len(data) < _ELFHDR.size:
        raise ElfFormatError("truncated ELF header")
    header = ElfHeader(*_ELFHDR.unpack_from(data, 0))
    if header.magic != ELF_MAGIC:
        raise ElfFormatError(f"bad ELF magic 0x{header.magic:08x}")
    return header


def parse_program_header(data: bytes, offset: int) -> ProgramHeader:
    """Decode one program header at ``offset``."""
    if offset < 0 or offset + _PROGHDR.size > len(data):
        raise ElfFormatError(f"program header at {offset} runs past end of image")
    return ProgramHeader(*_PROGHDR.unpack_from(data, offset))


def program_headers(data: bytes) -> list[ProgramHeader]:
    """All program headers listed by the file header of ``data``."""
    header = parse_elf_header(data)
    return [
        parse_program_header(data, header.phoff + i * _PROGHDR.size)
        for i in range(header.phnum)
    ]