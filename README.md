# kernsim

Pieces of a small x86 teaching kernel and its user space, modelled in plain
Python so that they can be studied, exercised and tested without an emulator.

## Modules

- `kernsim.mmu`: system parameters and memory-layout constants
  (`KERNBASE`, `PHYSTOP`, `PGSIZE` and others), segment and gate descriptors
  (`SegmentDescriptor`, `GateDescriptor`, each with `pack()`), the builders
  `seg`, `seg16`, `seg_asm` and `set_gate`, and paging helpers `pdx`, `ptx`,
  `pgaddr`, `pg_round_up`, `pg_round_down`, `pte_addr`, `pte_flags`, `v2p`,
  `p2v`.
- `kernsim.elf`: 32-bit ELF file and program headers (`ElfHeader`,
  `ProgramHeader`, each with `pack()`), read back with `parse_elf_header`,
  `parse_program_header` and `program_headers`.
- `kernsim.cstring`: the C string routines with their C results:
  `memcmp`, `memmove` (inside one `bytearray`), `strncmp`, `strcmp`,
  `strncpy`, `safestrcpy`, `strlen`, `strchr` (an index or `None`), `atoi`
  (wrapped to 32 bits) and `gets` (one line from a binary stream).
- `kernsim.traps`: the enums `Trap`, `Irq` and `Syscall`, the `TrapFrame`
  layout with `pack()` and `unpack_trapframe`, and `build_idt`, which turns
  256 handler addresses into gates, the system-call gate being a trap gate
  that user code may invoke.
- `kernsim.shell`: the shell's tokenizer (`gettoken`, `peek`) and parser
  (`parse_command`), producing trees of `ExecCommand`, `RedirCommand`,
  `PipeCommand`, `ListCommand` and `BackCommand`; `cd_target` picks the
  directory out of a `cd` line.
- `kernsim.umalloc`: `Heap`, a first-fit, address-ordered free-list
  allocator over a simulated break, with `malloc`, `free`, `sbrk` and
  `free_blocks`.
- `kernsim.locks`: `Cpu` with nested interrupt disabling (`push_cli`,
  `pop_cli`), `SpinLock` held by a `Cpu`, and `SleepLock` held by a process
  id.
- `kernsim.vm`: two-level page tables over simulated physical memory:
  `PhysicalMemory`, `PageDirectory` (`walk`, `map_pages`, `init_uvm`,
  `load_uvm`, `alloc_uvm`, `dealloc_uvm`, `free`, `clear_pteu`, `copy`,
  `uva2ka`, `copyout`) and `setup_kvm`, which builds a directory holding the
  kernel mappings.
- `kernsim.syscall`: fetching system-call arguments from a `UserProcess`'s
  memory (`fetch_int`, `fetch_str`, `arg_int`, `arg_ptr`, `arg_str`) and
  `SyscallTable`, which maps numbers to handlers and stores the result in
  the trap frame's `eax`.
- `kernsim.wc`: line, word and byte counting (`count`, `Counts`) and the
  `kernsim-wc` command.

## Installing

```
pip install .
```

## Counting lines, words and bytes

```
kernsim-wc notes.txt other.txt
```

Each file is reported as `lines words bytes name`. With no file names the
command reads standard input. A file that cannot be opened is reported as
`wc: cannot open NAME` and the command stops with status 1.

## Examples

```python
from kernsim.mmu import pg_round_up, pdx
from kernsim.cstring import atoi
from kernsim.shell import parse_command, PipeCommand

pg_round_up(1)          # 4096
pdx(0x80400000)         # 513
atoi("42abc")           # 42

tree = parse_command("cat README | wc > out\n")
isinstance(tree, PipeCommand)   # True
```

```python
from kernsim.umalloc import Heap

heap = Heap(limit=1 << 20)
p = heap.malloc(100)
heap.free(p)
```

```python
from kernsim.mmu import PHYSTOP, PGSIZE, v2p
from kernsim.vm import PhysicalMemory, setup_kvm

mem = PhysicalMemory(0x400000, PHYSTOP)
pgdir = setup_kvm(mem, 0x80200000)
pgdir.alloc_uvm(0, 2 * PGSIZE)
pgdir.copyout(100, b"hello")
mem.read(v2p(pgdir.uva2ka(0)) + 100, 5)   # b"hello"
```

## Errors

Errors are raised as exceptions: a malformed command line raises
`ShellSyntaxError`, a bad ELF image raises `ElfFormatError`, misuse of a
lock raises `LockPanic`, a broken paging invariant raises `KernelPanic`,
running out of simulated memory raises `MemoryError`, and a user pointer
outside the process raises `BadAddress`.

## What it does not do

kernsim models parts of a kernel; it is not a kernel and boots nothing.
There is no file system, no process table or scheduler, and no device
handling. The shell module parses command lines into trees but does not run
them. `SyscallTable` dispatches to handlers you register; the package does
not provide the system calls themselves. The only command is `kernsim-wc`.

## Running the tests

```
pip install .[test]
pytest
```