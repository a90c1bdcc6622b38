import pytest

from kernsim.mmu import (
    DEVSPACE,
    EXTMEM,
    KERNBASE,
    KERNLINK,
    PGSIZE,
    PHYSTOP,
    PTE_P,
    PTE_U,
    PTE_W,
    p2v,
    pte_addr,
    pte_flags,
    v2p,
)
from kernsim.vm import KernelPanic, PhysicalMemory, setup_kvm

START = 0x200000
TOP = 0x400000
DATA = KERNLINK + 0x100000


def _pte(pgdir, va):
    addr = pgdir.walk(va, False)
    assert addr is not None
    return int.from_bytes(pgdir.mem.read(addr, 4), "little")


def _free_count(mem):
    taken = []
    while True:
        try:
            taken.append(mem.alloc())
        except MemoryError:
            break
    for pa in taken:
        mem.free(pa)
    return len(taken)


def _user_bytes(pgdir, va, n):
    ka = pgdir.uva2ka(va)
    assert ka is not None
    return pgdir.mem.read(v2p(ka), n)


@pytest.fixture
def mem():
    return PhysicalMemory(START, TOP)


@pytest.fixture
def pgdir(mem):
    return setup_kvm(mem, DATA)


def test_alloc_hands_out_every_page_once():
    mem = PhysicalMemory(START, START + 4 * PGSIZE)
    pages = [mem.alloc() for _ in range(4)]
    assert sorted(pages) == list(range(START, START + 4 * PGSIZE, PGSIZE))
    with pytest.raises(MemoryError):
        mem.alloc()


def test_free_rejects_bad_pages():
    mem = PhysicalMemory(START, START + 2 * PGSIZE)
    pa = mem.alloc()
    with pytest.raises(KernelPanic):
        mem.free(pa + 1)
    with pytest.raises(KernelPanic):
        mem.free(TOP)
    mem.free(pa)
    with pytest.raises(KernelPanic):
        mem.free(pa)


def test_read_write_round_trip_across_pages(mem):
    data = bytes(range(200))
    mem.write(START + PGSIZE - 50, data)
    assert mem.read(START + PGSIZE - 50, len(data)) == data
    assert mem.read(START + 3 * PGSIZE, 8) == bytes(8)


def test_kernel_mappings(pgdir):
    entry = _pte(pgdir, KERNBASE)
    assert pte_addr(entry) == 0
    assert pte_flags(entry) == PTE_P | PTE_W
    text = _pte(pgdir, KERNLINK)
    assert pte_addr(text) == EXTMEM
    assert pte_flags(text) == PTE_P
    data = _pte(pgdir, DATA)
    assert pte_addr(data) == v2p(DATA)
    assert pte_flags(data) == PTE_P | PTE_W
    assert pte_addr(_pte(pgdir, p2v(PHYSTOP) - PGSIZE)) == PHYSTOP - PGSIZE
    assert pte_addr(_pte(pgdir, DEVSPACE)) == DEVSPACE
    assert pgdir.walk(0) is None
    assert pgdir.walk(p2v(PHYSTOP)) is None


def test_setup_kvm_rejects_unaligned_data(mem):
    with pytest.raises(ValueError):
        setup_kvm(mem, DATA + 1)


def test_map_pages_panics_on_remap(pgdir):
    with pytest.raises(KernelPanic, match="remap"):
        pgdir.map_pages(KERNBASE, PGSIZE, 0, PTE_W)


def test_init_uvm_places_code_at_zero(pgdir):
    init = b"\x01\x02init"
    pgdir.init_uvm(init)
    assert _user_bytes(pgdir, 0, PGSIZE) == init + bytes(PGSIZE - len(init))
    assert pte_flags(_pte(pgdir, 0)) == PTE_P | PTE_W | PTE_U


def test_init_uvm_rejects_a_full_page(pgdir):
    with pytest.raises(KernelPanic):
        pgdir.init_uvm(bytes(PGSIZE))


def test_alloc_uvm_maps_zeroed_user_pages(pgdir):
    assert pgdir.alloc_uvm(0, 2 * PGSIZE + 10) == 2 * PGSIZE + 10
    for va in (0, PGSIZE, 2 * PGSIZE):
        assert _user_bytes(pgdir, va, PGSIZE) == bytes(PGSIZE)
    assert pgdir.walk(3 * PGSIZE) is not None
    assert pgdir.uva2ka(3 * PGSIZE) is None
    assert pgdir.alloc_uvm(2 * PGSIZE, PGSIZE) == 2 * PGSIZE
    with pytest.raises(MemoryError):
        pgdir.alloc_uvm(0, KERNBASE)


def test_dealloc_uvm_returns_pages(mem, pgdir):
    before = _free_count(mem)
    pgdir.alloc_uvm(0, 3 * PGSIZE)
    assert _free_count(mem) == before - 4
    assert pgdir.dealloc_uvm(3 * PGSIZE, 0) == 0
    assert _free_count(mem) == before - 1
    assert pgdir.uva2ka(0) is None
    assert pgdir.dealloc_uvm(PGSIZE, 2 * PGSIZE) == PGSIZE


def test_alloc_uvm_out_of_memory_cleans_up():
    mem = PhysicalMemory(START, START + 100 * PGSIZE)
    pgdir = setup_kvm(mem, DATA)
    available = _free_count(mem)
    with pytest.raises(MemoryError):
        pgdir.alloc_uvm(0, (available + 5) * PGSIZE)
    assert _free_count(mem) == available - 1
    assert pgdir.uva2ka(0) is None


def test_copy_duplicates_user_memory(pgdir):
    pgdir.alloc_uvm(0, 2 * PGSIZE)
    pgdir.copyout(0, b"hello")
    pgdir.copyout(PGSIZE, b"world")
    child = pgdir.copy(2 * PGSIZE)
    assert child.uva2ka(0) != pgdir.uva2ka(0)
    assert _user_bytes(child, 0, 5) == b"hello"
    assert _user_bytes(child, PGSIZE, 5) == b"world"
    pgdir.copyout(0, b"HELLO")
    assert _user_bytes(child, 0, 5) == b"hello"
    assert pte_flags(_pte(child, 0)) == pte_flags(_pte(pgdir, 0))


def test_copy_panics_on_missing_page(pgdir):
    with pytest.raises(KernelPanic):
        pgdir.copy(PGSIZE)


def test_clear_pteu_hides_page_from_user(pgdir):
    pgdir.alloc_uvm(0, PGSIZE)
    pgdir.clear_pteu(0)
    assert pgdir.uva2ka(0) is None
    assert pte_flags(_pte(pgdir, 0)) & PTE_U == 0
    with pytest.raises(KernelPanic):
        pgdir.clear_pteu(0x40000000)


def test_copyout_across_page_boundary(pgdir):
    pgdir.alloc_uvm(0, 2 * PGSIZE)
    pgdir.copyout(PGSIZE - 3, b"abcdef")
    assert _user_bytes(pgdir, 0, PGSIZE)[-3:] == b"abc"
    assert _user_bytes(pgdir, PGSIZE, 3) == b"def"
    with pytest.raises(ValueError):
        pgdir.copyout(2 * PGSIZE - 1, b"xy")


def test_load_uvm_fills_pages(pgdir):
    pgdir.alloc_uvm(0, 2 * PGSIZE)
    image = bytes((i * 7) % 256 for i in range(PGSIZE + 100))

    def source(off, n):
        return image[off:off + n]

    pgdir.load_uvm(0, source, 0, len(image))
    assert _user_bytes(pgdir, 0, PGSIZE) + _user_bytes(pgdir, PGSIZE, 100) == image
    with pytest.raises(KernelPanic):
        pgdir.load_uvm(8, source, 0, 10)
    with pytest.raises(EOFError):
        pgdir.load_uvm(0, source, 0, len(image) + 10)
    with pytest.raises(KernelPanic):
        pgdir.load_uvm(0x40000000, source, 0, 10)


def test_free_returns_everything(mem):
    before = _free_count(mem)
    pgdir = setup_kvm(mem, DATA)
    pgdir.alloc_uvm(0, 3 * PGSIZE)
    assert _free_count(mem) < before
    pgdir.free()
    assert _free_count(mem) == before