import json

import pytest

from northstar.common.non_nul_string import InvalidNulChar, NonNulString


@pytest.mark.parametrize("value", ["hello", "hello🤡", ""])
def test_try_from(value):
    assert NonNulString(value) == value


@pytest.mark.parametrize(
    ("value", "pos"),
    [("hel\0lo", 3), ("\0hello", 0), ("hello\0", 5), ("hello🤡\0", 9)],
)
def test_try_from_with_nul(value, pos):
    with pytest.raises(InvalidNulChar) as info:
        NonNulString(value)
    assert info.value.pos == pos


def test_serialize():
    assert json.dumps(NonNulString("hello")) == '"hello"'


def test_deserialize():
    assert NonNulString(json.loads('"hello"')) == NonNulString("hello")


def test_deserialize_with_nul():
    with pytest.raises(InvalidNulChar):
        NonNulString(json.loads('"hel\\u0000lo"'))


def test_rejects_non_string():
    with pytest.raises(TypeError):
        NonNulString(b"hello")


def test_error_message():
    with pytest.raises(InvalidNulChar, match="invalid null byte in string"):
        NonNulString("a\0")