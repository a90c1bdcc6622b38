"""Count lines, words and bytes."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import BinaryIO, Optional, Sequence

WHITESPACE = frozenset(b" \r\t\n\v")
CHUNK = 512


@dataclass
class Counts:
    lines: int = 0
    words: int = 0
    chars: int = 0

    def format(self, name: str) -> str:
        return f"{self.lines} {self.words} {self.chars} {name}"


def count(stream: BinaryIO) -> Counts:
    """Count newlines, words and bytes read from a binary stream."""
    counts = Counts()
    inword = False
    for chunk in iter(lambda: stream.read(CHUNK), b""):
        for byte in chunk:
            counts.chars += 1
            if byte == 0x0A:
                counts.lines += 1
            if byte in WHITESPACE:
                inword = False
            elif not inword:
                counts.words += 1
                inword = True
    return counts


def _report(stream: BinaryIO, name: str) -> int:
    try:
        counts = count(stream)
    except OSError:
        print("wc: read error")
        return 1
    print(counts.format(name))
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Report counts for each named file, or for standard input."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        return _report(sys.stdin.buffer, "")
    for name in args:
        try:
            stream = open(name, "rb")
        except OSError:
            print(f"wc: cannot open {name}")
            return 1
        with stream:
            status = _report(stream, name)
        if status:
            return status
    return 0