import io

import pytest

from kernsim import cstring


def test_memcmp_sign_and_prefix():
    assert cstring.memcmp(b"abc", b"abd", 3) < 0
    assert cstring.memcmp(b"abd", b"abc", 3) > 0
    assert cstring.memcmp(b"abc", b"abd", 2) == 0


def test_memcmp_past_end():
    with pytest.raises(IndexError):
        cstring.memcmp(b"ab", b"abc", 3)


def test_memmove_overlap_forward_and_backward():
    assert cstring.memmove(bytearray(b"abcdef"), 2, 0, 4) == bytearray(b"ababcd")
    assert cstring.memmove(bytearray(b"abcdef"), 0, 2, 4) == bytearray(b"cdefef")


def test_memmove_out_of_range():
    with pytest.raises(IndexError):
        cstring.memmove(bytearray(b"abc"), 1, 0, 3)


def test_strncmp():
    assert cstring.strncmp(b"abc", b"abd", 2) == 0
    assert cstring.strncmp(b"abc", b"abd", 3) < 0
    assert cstring.strncmp(b"abc\0x", b"abc\0y", 10) == 0
    assert cstring.strncmp(b"a", b"", 5) > 0
    assert cstring.strncmp(b"anything", b"else", 0) == 0


def test_strcmp():
    assert cstring.strcmp("same", "same") == 0
    assert cstring.strcmp(b"ab", b"abc") < 0
    assert cstring.strcmp(b"\xff", b"a") > 0


def test_strncpy_pads_and_truncates():
    padded = cstring.strncpy(b"hi", 5)
    assert len(padded) == 5
    assert padded.rstrip(b"\0") == b"hi"
    assert cstring.strncpy(b"hello", 3) == b"hel"


def test_safestrcpy_terminates():
    assert cstring.safestrcpy(b"hello", 3) == b"he\0"
    assert cstring.safestrcpy(b"hi", 10) == b"hi\0"
    assert cstring.safestrcpy(b"x", 0) == b""


def test_strlen_stops_at_nul():
    assert cstring.strlen(b"abc\0def") == cstring.strlen(b"abc")
    assert cstring.strlen("abc") == len("abc")


def test_strchr():
    ws = b" \t\r\n\v"
    assert cstring.strchr(ws, ord("\t")) == ws.index(b"\t")
    assert cstring.strchr(ws, 0) is None
    assert cstring.strchr(b"abc", "z") is None
    assert cstring.strchr("abc", "c") == "abc".index("c")


def test_atoi():
    assert cstring.atoi(b"123abc") == 123
    assert cstring.atoi(b"-5") == 0
    assert cstring.atoi("") == 0
    assert cstring.atoi("42") == 42


def test_gets_reads_lines():
    stream = io.BytesIO(b"line one\nline two\r")
    assert cstring.gets(stream, 100) == b"line one\n"
    assert cstring.gets(stream, 100) == b"line two\r"
    assert cstring.gets(stream, 100) == b""


def test_gets_respects_limit():
    stream = io.BytesIO(b"abcdef")
    assert cstring.gets(stream, 4) == b"abc"
    assert cstring.gets(stream, 1) == b""