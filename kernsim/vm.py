"""Two-level x86 page tables built over simulated physical memory."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Tuple

from kernsim.mmu import (
    DEVSPACE,
    EXTMEM,
    KERNBASE,
    KERNLINK,
    NPDENTRIES,
    PDXSHIFT,
    PGSIZE,
    PHYSTOP,
    PTE_P,
    PTE_U,
    PTE_W,
    U32,
    p2v,
    pdx,
    pg_round_down,
    pg_round_up,
    pte_addr,
    pte_flags,
    ptx,
    v2p,
)

_WORD = 4
_ADDRESS_SPACE = 1 << 32
_DIRECTORY = struct.Struct(f"<{NPDENTRIES}I")
_JUNK = b"\x01" * PGSIZE


class KernelPanic(RuntimeError):
    """An invariant the kernel relies on was violated."""


class PhysicalMemory:
    """Byte-addressable physical memory with a page allocator for ``[start, top)``."""

    def __init__(self, start: int, top: int) -> None:
        first = pg_round_up(start)
        last = pg_round_down(top)
        if start < 0 or top > _ADDRESS_SPACE or first >= last:
            raise ValueError(f"empty or invalid physical range 0x{start:x}-0x{top:x}")
        self.start = first
        self.top = last
        self._free_list = list(range(first, last, PGSIZE))
        self._free = set(self._free_list)
        self._frames: dict = {}

    def alloc(self) -> int:
        """Take one free page and return its physical address."""
        if not self._free_list:
            raise MemoryError("out of physical memory")
        pa = self._free_list.pop()
        self._free.discard(pa)
        return pa

    def free(self, pa: int) -> None:
        """Return a page obtained from :meth:`alloc`; its contents become junk."""
        if pa % PGSIZE or not self.start <= pa < self.top or pa in self._free:
            raise KernelPanic("kfree")
        self._frames[pa // PGSIZE] = bytearray(_JUNK)
        self._free.add(pa)
        self._free_list.append(pa)

    def _check(self, pa: int, n: int) -> None:
        if n < 0 or pa < 0 or pa + n > _ADDRESS_SPACE:
            raise ValueError(f"physical access 0x{pa:x}+{n} out of range")

    def _chunks(self, pa: int, n: int) -> Iterator[Tuple[int, int, int]]:
        done = 0
        while done < n:
            frame, off = divmod(pa + done, PGSIZE)
            size = min(n - done, PGSIZE - off)
            yield frame, off, size
            done += size

    def read(self, pa: int, n: int) -> bytes:
        """Read ``n`` bytes at physical address ``pa``; untouched memory reads as zero."""
        self._check(pa, n)
        out = bytearray()
        for frame, off, size in self._chunks(pa, n):
            page = self._frames.get(frame)
            out += page[off:off + size] if page is not None else bytes(size)
        return bytes(out)

    def write(self, pa: int, data: bytes) -> None:
        """Store ``data`` at physical address ``pa``."""
        data = bytes(data)
        self._check(pa, len(data))
        done = 0
        for frame, off, size in self._chunks(pa, len(data)):
            page = self._frames.get(frame)
            if page is None:
                page = self._frames[frame] = bytearray(PGSIZE)
            page[off:off + size] = data[done:done + size]
            done += size


@dataclass(eq=False)
class PageDirectory:
    """A page directory living in the physical page at ``addr``."""

    mem: PhysicalMemory
    addr: int
    data_start: int

    def _entry(self, pa: int) -> int:
        return int.from_bytes(self.mem.read(pa, _WORD), "little")

    def _set_entry(self, pa: int, value: int) -> None:
        self.mem.write(pa, (value & U32).to_bytes(_WORD, "little"))

    def walk(self, va: int, alloc: bool = False) -> Optional[int]:
        """Physical address of the PTE for ``va``; page tables are created if ``alloc``."""
        pde_pa = self.addr + _WORD * pdx(va)
        pde = self._entry(pde_pa)
        if pde & PTE_P:
            pgtab = pte_addr(pde)
        else:
            if not alloc:
                return None
            try:
                pgtab = self.mem.alloc()
            except MemoryError:
                return None
            self.mem.write(pgtab, bytes(PGSIZE))
            self._set_entry(pde_pa, pgtab | PTE_P | PTE_W | PTE_U)
        return pgtab + _WORD * ptx(va)

    def map_pages(self, va: int, size: int, pa: int, perm: int) -> None:
        """Map the pages covering ``[va, va+size)`` to physical memory from ``pa``."""
        if size <= 0:
            raise ValueError("mapping must cover at least one byte")
        a = pg_round_down(va)
        last = pg_round_down(va + size - 1)
        pa &= U32
        while True:
            pte = self.walk(a, True)
            if pte is None:
                raise MemoryError("mappages: no memory for page table")
            if self._entry(pte) & PTE_P:
                raise KernelPanic("remap")
            self._set_entry(pte, pa | perm | PTE_P)
            if a == last:
                break
            a = (a + PGSIZE) & U32
            pa = (pa + PGSIZE) & U32

    def init_uvm(self, init: bytes) -> None:
        """Load ``init``, smaller than a page, at user address 0."""
        if len(init) >= PGSIZE:
            raise KernelPanic("inituvm: more than a page")
        page = self.mem.alloc()
        self.mem.write(page, bytes(PGSIZE))
        self.map_pages(0, PGSIZE, page, PTE_W | PTE_U)
        self.mem.write(page, init)

    def load_uvm(self, addr: int, read: Callable[[int, int], bytes], offset: int, sz: int) -> None:
        """Fill already-mapped pages from ``addr`` with ``read(offset, n)`` results."""
        if addr % PGSIZE:
            raise KernelPanic("loaduvm: addr must be page aligned")
        for i in range(0, sz, PGSIZE):
            pte = self.walk(addr + i)
            if pte is None:
                raise KernelPanic("loaduvm: address should exist")
            pa = pte_addr(self._entry(pte))
            n = min(sz - i, PGSIZE)
            chunk = bytes(read(offset + i, n))
            if len(chunk) != n:
                raise EOFError(f"loaduvm: short read at offset {offset + i}")
            self.mem.write(pa, chunk)

    def alloc_uvm(self, oldsz: int, newsz: int) -> int:
        """Grow user memory from ``oldsz`` to ``newsz``; return the new size."""
        if newsz >= KERNBASE:
            raise MemoryError("allocuvm: size reaches kernel space")
        if newsz < oldsz:
            return oldsz
        a = pg_round_up(oldsz)
        while a < newsz:
            try:
                page = self.mem.alloc()
            except MemoryError:
                self.dealloc_uvm(newsz, oldsz)
                raise MemoryError("allocuvm out of memory") from None
            self.mem.write(page, bytes(PGSIZE))
            try:
                self.map_pages(a, PGSIZE, page, PTE_W | PTE_U)
            except MemoryError:
                self.dealloc_uvm(newsz, oldsz)
                self.mem.free(page)
                raise MemoryError("allocuvm out of memory (2)") from None
            a += PGSIZE
        return newsz

    def dealloc_uvm(self, oldsz: int, newsz: int) -> int:
        """Shrink user memory from ``oldsz`` to ``newsz``; return the resulting size."""
        if newsz >= oldsz:
            return oldsz
        a = pg_round_up(newsz)
        while a < oldsz:
            pte = self.walk(a)
            if pte is None:
                a = ((pdx(a) + 1) << PDXSHIFT) - PGSIZE
            else:
                entry = self._entry(pte)
                if entry & PTE_P:
                    pa = pte_addr(entry)
                    if pa == 0:
                        raise KernelPanic("kfree")
                    self.mem.free(pa)
                    self._set_entry(pte, 0)
            a += PGSIZE
        return newsz

    def free(self) -> None:
        """Release all user pages, every page table and the directory itself."""
        self.dealloc_uvm(KERNBASE, 0)
        for pde in _DIRECTORY.unpack(self.mem.read(self.addr, PGSIZE)):
            if pde & PTE_P:
                self.mem.free(pte_addr(pde))
        self.mem.free(self.addr)

    def clear_pteu(self, uva: int) -> None:
        """Make the page at ``uva`` inaccessible to user code."""
        pte = self.walk(uva)
        if pte is None:
            raise KernelPanic("clearpteu")
        self._set_entry(pte, self._entry(pte) & ~PTE_U)

    def copy(self, sz: int) -> "PageDirectory":
        """A new directory holding a copy of the first ``sz`` bytes of user memory."""
        child = setup_kvm(self.mem, self.data_start)
        try:
            for i in range(0, sz, PGSIZE):
                pte = self.walk(i)
                if pte is None:
                    raise KernelPanic("copyuvm: pte should exist")
                entry = self._entry(pte)
                if not entry & PTE_P:
                    raise KernelPanic("copyuvm: page not present")
                page = self.mem.alloc()
                self.mem.write(page, self.mem.read(pte_addr(entry), PGSIZE))
                try:
                    child.map_pages(i, PGSIZE, page, pte_flags(entry))
                except MemoryError:
                    self.mem.free(page)
                    raise
        except MemoryError:
            child.free()
            raise
        return child

    def uva2ka(self, uva: int) -> Optional[int]:
        """Kernel virtual address of the user page at ``uva``, or None if not user-accessible."""
        pte = self.walk(uva)
        if pte is None:
            return None
        entry = self._entry(pte)
        if not entry & PTE_P or not entry & PTE_U:
            return None
        return p2v(pte_addr(entry))

    def copyout(self, va: int, data: bytes) -> None:
        """Copy ``data`` to user address ``va`` in this address space."""
        view = memoryview(bytes(data))
        while view:
            va0 = pg_round_down(va)
            ka = self.uva2ka(va0)
            if ka is None:
                raise ValueError(f"copyout: user address 0x{va0:x} is not mapped")
            n = min(PGSIZE - (va - va0), len(view))
            self.mem.write(v2p(ka) + (va - va0), bytes(view[:n]))
            view = view[n:]
            va = va0 + PGSIZE


def _kmap(data_start: int):
    return (
        (KERNBASE, 0, EXTMEM, PTE_W),
        (KERNLINK, v2p(KERNLINK), v2p(data_start), 0),
        (data_start, v2p(data_start), PHYSTOP, PTE_W),
        (DEVSPACE, DEVSPACE, 0, PTE_W),
    )


def setup_kvm(mem: PhysicalMemory, data_start: int) -> PageDirectory:
    """A new page directory holding the kernel mappings."""
    if data_start % PGSIZE or not KERNLINK < data_start < p2v(PHYSTOP):
        raise ValueError(f"bad kernel data address 0x{data_start:x}")
    pa = mem.alloc()
    mem.write(pa, bytes(PGSIZE))
    pgdir = PageDirectory(mem, pa, data_start)
    if p2v(PHYSTOP) > DEVSPACE:
        raise KernelPanic("PHYSTOP too high")
    for virt, phys_start, phys_end, perm in _kmap(data_start):
        try:
            pgdir.map_pages(virt, (phys_end - phys_start) & U32, phys_start, perm)
        except MemoryError:
            pgdir.free()
            raise
    return pgdir