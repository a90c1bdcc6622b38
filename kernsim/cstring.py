"""NUL-terminated string and memory helpers with the classic C semantics."""

from __future__ import annotations

from itertools import islice, zip_longest
from typing import BinaryIO, Union

Text = Union[bytes, bytearray, memoryview, str]


def _raw(s: Text) -> bytes:
    if isinstance(s, str):
        return s.encode("latin-1")
    return bytes(s)


def _cstr(s: Text) -> bytes:
    """Bytes of ``s`` up to (not including) the first NUL."""
    data = _raw(s)
    end = data.find(0)
    return data if end < 0 else data[:end]


def _like(template: Text, data: bytes):
    return data.decode("latin-1") if isinstance(template, str) else data


def memcmp(a: Text, b: Text, n: int) -> int:
    """Compare the first ``n`` bytes; the difference of the first mismatch, or 0."""
    x, y = _raw(a), _raw(b)
    if n > len(x) or n > len(y):
        raise IndexError("memcmp past end of buffer")
    for ca, cb in zip(x[:n], y[:n]):
        if ca != cb:
            return ca - cb
    return 0


def memmove(buf: bytearray, dst: int, src: int, n: int) -> bytearray:
    """Copy ``n`` bytes inside ``buf`` from ``src`` to ``dst``; overlap is safe."""
    if n < 0 or min(dst, src) < 0 or max(dst, src) + n > len(buf):
        raise IndexError("memmove out of range")
    buf[dst:dst + n] = buf[src:src + n]
    return buf


def _compare(p: Text, q: Text, n: int | None) -> int:
    pairs = zip_longest(_cstr(p), _cstr(q), fillvalue=0)
    for ca, cb in islice(pairs, n):
        if ca != cb or ca == 0:
            return ca - cb
    return 0


def strncmp(p: Text, q: Text, n: int) -> int:
    """Compare at most ``n`` characters of two NUL-terminated strings."""
    return _compare(p, q, max(n, 0))


def strcmp(p: Text, q: Text) -> int:
    """Compare two NUL-terminated strings."""
    return _compare(p, q, None)


def strncpy(src: Text, n: int):
    """Exactly ``n`` characters: ``src`` truncated or padded with NULs."""
    if n <= 0:
        return _like(src, b"")
    data = _cstr(src)[:n]
    return _like(src, data + bytes(n - len(data)))


def safestrcpy(src: Text, n: int):
    """Like :func:`strncpy` but always NUL-terminated and never padded."""
    if n <= 0:
        return _like(src, b"")
    return _like(src, _cstr(src)[: n - 1] + b"\0")


def strlen(s: Text) -> int:
    return len(_cstr(s))


def strchr(s: Text, c) -> int | None:
    """Index of the first ``c`` in ``s``, or None; the terminator never matches."""
    if isinstance(c, str):
        target = ord(c)
    elif isinstance(c, (bytes, bytearray)):
        target = c[0]
    else:
        target = c
    target &= 0xFF
    if target == 0:
        return None
    idx = _cstr(s).find(bytes([target]))
    return None if idx < 0 else idx


def atoi(s: Text) -> int:
    """Value of the leading decimal digits, wrapped to a 32-bit int."""
    n = 0
    for ch in _raw(s):
        if not 0x30 <= ch <= 0x39:
            break
        n = (n * 10 + ch - 0x30) & 0xFFFFFFFF
    return n - (1 << 32) if n & 0x80000000 else n


def gets(stream: BinaryIO, max_len: int) -> bytes:
    """Read one line of at most ``max_len - 1`` bytes, keeping its terminator."""
    out = bytearray()
    while len(out) + 1 < max_len:
        c = stream.read(1)
        if not c:
            break
        out += c
        if c in (b"\n", b"\r"):
            break
    return bytes(out)