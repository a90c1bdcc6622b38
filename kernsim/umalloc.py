"""First-fit free-list allocator over a simulated growable heap."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

HEADER_SIZE = 8  # bytes per block header; also the allocation unit
MIN_UNITS = 4096  # fewest units requested from sbrk at a time


@dataclass
class _Header:
    ptr: int
    size: int  # in units of HEADER_SIZE


class Heap:
    """A heap whose addresses are integers; the break grows by :meth:`sbrk`.

    The free list is circular, sorted by address, and anchored at a
    zero-sized sentinel block at address 0. ``limit`` caps how many bytes
    the heap may grow by; None means no cap.
    """

    def __init__(self, limit: Optional[int] = None) -> None:
        self.base = 0
        self.start = HEADER_SIZE
        self.brk = self.start
        self.limit = limit
        self._headers = {self.base: _Header(self.base, 0)}
        self._freep = self.base
        self._allocated: set = set()

    def sbrk(self, n: int) -> int:
        """Move the break by ``n`` bytes and return the old break."""
        new = self.brk + n
        if new < self.start or (self.limit is not None and new > self.start + self.limit):
            raise MemoryError(f"sbrk({n}) out of range")
        old, self.brk = self.brk, new
        return old

    def malloc(self, nbytes: int) -> int:
        """Allocate ``nbytes`` and return the address of the usable memory."""
        if nbytes < 0:
            raise ValueError("negative allocation size")
        nunits = (nbytes + HEADER_SIZE - 1) // HEADER_SIZE + 1
        headers = self._headers
        prevp = self._freep
        p = headers[prevp].ptr
        while True:
            block = headers[p]
            if block.size >= nunits:
                if block.size == nunits:
                    headers[prevp].ptr = block.ptr
                else:
                    block.size -= nunits
                    p += block.size * HEADER_SIZE
                    headers[p] = _Header(0, nunits)
                self._freep = prevp
                self._allocated.add(p + HEADER_SIZE)
                return p + HEADER_SIZE
            if p == self._freep:
                p = self._morecore(nunits)
            prevp = p
            p = headers[p].ptr

    def free(self, ap: int) -> None:
        """Return a block obtained from :meth:`malloc` to the free list."""
        if ap not in self._allocated:
            raise ValueError(f"free of unallocated address {ap}")
        self._allocated.remove(ap)
        self._release(ap - HEADER_SIZE)

    def free_blocks(self) -> List[Tuple[int, int]]:
        """Free blocks as (header address, size in bytes), in address order."""
        blocks = []
        p = self._headers[self.base].ptr
        while p != self.base:
            block = self._headers[p]
            blocks.append((p, block.size * HEADER_SIZE))
            p = block.ptr
        return blocks

    def _morecore(self, nunits: int) -> int:
        nu = max(nunits, MIN_UNITS)
        addr = self.sbrk(nu * HEADER_SIZE)
        self._headers[addr] = _Header(0, nu)
        self._release(addr)
        return self._freep

    def _release(self, bp: int) -> None:
        headers = self._headers
        block = headers[bp]
        p = self._freep
        while not (p < bp < headers[p].ptr):
            nxt = headers[p].ptr
            if p >= nxt and (bp > p or bp < nxt):
                break
            p = nxt
        prev = headers[p]
        if bp + block.size * HEADER_SIZE == prev.ptr:
            upper = headers.pop(prev.ptr)
            block.size += upper.size
            block.ptr = upper.ptr
        else:
            block.ptr = prev.ptr
        if p + prev.size * HEADER_SIZE == bp:
            prev.size += block.size
            prev.ptr = block.ptr
            del headers[bp]
        else:
            prev.ptr = bp
        self._freep = p