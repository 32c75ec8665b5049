"""Strings that never contain a nul character."""

from __future__ import annotations

SCHEMA = {"type": "string", "pattern": "not nul"}


class InvalidNulChar(ValueError):
    """Raised when a string holds a nul character; ``pos`` is its byte index."""

    def __init__(self, pos: int) -> None:
        super().__init__("invalid null byte in string")
        self.pos = pos


def _utf8(value: str) -> bytes:
    return value.encode("utf-8", "surrogatepass")


class NonNulString(str):
    """A ``str`` that is checked to hold no nul character."""

    __slots__ = ()

    def __new__(cls, value: str) -> NonNulString:
        if not isinstance(value, str):
            raise TypeError(f"expected str, got {type(value).__name__}")
        pos = _utf8(value).find(b"\0")
        if pos != -1:
            raise InvalidNulChar(pos)
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str.__repr__(self)})"