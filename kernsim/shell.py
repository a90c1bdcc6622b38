"""Parser for the command language of the interactive shell."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import NamedTuple, Optional, Tuple, Union

O_RDONLY = 0x000
O_WRONLY = 0x001
O_RDWR = 0x002
O_CREATE = 0x200

WHITESPACE = " \t\r\n\v"
SYMBOLS = "<|>&;()"
MAXARGS = 10


class ShellSyntaxError(ValueError):
    """The command line cannot be parsed."""


@dataclass
class ExecCommand:
    """Run a program with its arguments."""

    argv: list = field(default_factory=list)


@dataclass
class RedirCommand:
    """Run ``cmd`` with descriptor ``fd`` opened on ``file`` with ``mode``."""

    cmd: "Command"
    file: str
    mode: int
    fd: int


@dataclass
class PipeCommand:
    """Connect the output of ``left`` to the input of ``right``."""

    left: "Command"
    right: "Command"


@dataclass
class ListCommand:
    """Run ``left`` to completion, then ``right``."""

    left: "Command"
    right: "Command"


@dataclass
class BackCommand:
    """Run ``cmd`` in the background."""

    cmd: "Command"


Command = Union[ExecCommand, RedirCommand, PipeCommand, ListCommand, BackCommand]


class Token(NamedTuple):
    """One lexical token.

    ``kind`` is ``""`` at end of input, ``"a"`` for a word, ``"+"`` for ``>>``,
    otherwise the symbol itself. ``start``/``end`` delimit its text and
    ``pos`` is where scanning resumes.
    """

    kind: str
    start: int
    end: int
    pos: int


def _skip_space(text: str, pos: int) -> int:
    while pos < len(text) and text[pos] in WHITESPACE:
        pos += 1
    return pos


def gettoken(text: str, pos: int) -> Token:
    """Scan the next token of ``text`` starting at ``pos``."""
    s = _skip_space(text, pos)
    start = s
    if s >= len(text):
        kind = ""
    else:
        c = text[s]
        if c in "|();&<":
            kind = c
            s += 1
        elif c == ">":
            kind = ">"
            s += 1
            if s < len(text) and text[s] == ">":
                kind = "+"
                s += 1
        else:
            kind = "a"
            while s < len(text) and text[s] not in WHITESPACE and text[s] not in SYMBOLS:
                s += 1
    return Token(kind, start, s, _skip_space(text, s))


def peek(text: str, pos: int, toks: str) -> Tuple[bool, int]:
    """Skip whitespace; report whether the next character is one of ``toks``."""
    pos = _skip_space(text, pos)
    return (pos < len(text) and text[pos] in toks), pos


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def peek(self, toks: str) -> bool:
        found, self.pos = peek(self.text, self.pos, toks)
        return found

    def next(self) -> Token:
        tok = gettoken(self.text, self.pos)
        self.pos = tok.pos
        return tok

    def line(self) -> Command:
        cmd = self.pipe()
        while self.peek("&"):
            self.next()
            cmd = BackCommand(cmd)
        if self.peek(";"):
            self.next()
            cmd = ListCommand(cmd, self.line())
        return cmd

    def pipe(self) -> Command:
        cmd = self.exec()
        if self.peek("|"):
            self.next()
            cmd = PipeCommand(cmd, self.pipe())
        return cmd

    def redirs(self, cmd: Command) -> Command:
        while self.peek("<>"):
            kind = self.next().kind
            target = self.next()
            if target.kind != "a":
                raise ShellSyntaxError("missing file for redirection")
            name = self.text[target.start:target.end]
            if kind == "<":
                cmd = RedirCommand(cmd, name, O_RDONLY, 0)
            else:
                # ">>" opens exactly like ">".
                cmd = RedirCommand(cmd, name, O_WRONLY | O_CREATE, 1)
        return cmd

    def block(self) -> Command:
        if not self.peek("("):
            raise ShellSyntaxError("parseblock")
        self.next()
        cmd = self.line()
        if not self.peek(")"):
            raise ShellSyntaxError("syntax - missing )")
        self.next()
        return self.redirs(cmd)

    def exec(self) -> Command:
        if self.peek("("):
            return self.block()
        node = ExecCommand()
        ret = self.redirs(node)
        while not self.peek("|)&;"):
            tok = self.next()
            if tok.kind == "":
                break
            if tok.kind != "a":
                raise ShellSyntaxError("syntax")
            node.argv.append(self.text[tok.start:tok.end])
            if len(node.argv) >= MAXARGS:
                raise ShellSyntaxError("too many args")
            ret = self.redirs(ret)
        return ret


def parse_command(line: str) -> Command:
    """Parse a whole command line into a command tree."""
    text = line.split("\0", 1)[0]
    parser = _Parser(text)
    cmd = parser.line()
    parser.peek("")
    if parser.pos != len(text):
        raise ShellSyntaxError(f"syntax: leftovers: {text[parser.pos:]}")
    return cmd


def cd_target(line: str) -> Optional[str]:
    """Directory named by a ``cd`` line, whose last character is dropped; None otherwise."""
    if not line.startswith("cd "):
        return None
    return line[3:-1]