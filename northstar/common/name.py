"""Validated container names."""

from __future__ import annotations

import string

from northstar.common.non_nul_string import InvalidNulChar, NonNulString

MAX_LENGTH = 1024

SCHEMA = {
    "type": "string",
    "minLength": 1,
    "maxLength": MAX_LENGTH,
    "pattern": "([0-9]|[A-Z]|[a-z]|\\.|_|-)+",
}

_VALID_CHARS = frozenset(string.ascii_letters + string.digits + "._-")


class InvalidNameError(ValueError):
    """Base class of all container name errors."""


class EmptyNameError(InvalidNameError):
    """The name is empty."""

    def __init__(self) -> None:
        super().__init__("container name cannot be empty")


class NameTooLongError(InvalidNameError):
    """The name is longer than the allowed maximum."""

    def __init__(self) -> None:
        super().__init__(f"container name cannot be longer than {MAX_LENGTH} characters")


class InvalidCharError(InvalidNameError):
    """The name holds a character outside the allowed set."""

    def __init__(self, char: str) -> None:
        super().__init__(f"container name contains invalid character(s): {char}")
        self.char = char


class NameContainsNulError(InvalidNameError):
    """The name holds a nul character at byte index ``pos``."""

    def __init__(self, pos: int) -> None:
        super().__init__(f"container name cannot contain a nul byte at position {pos}")
        self.pos = pos


class Name(NonNulString):
    """A non-empty container name of at most 1024 bytes.

    Allowed characters are ASCII letters, digits, '.', '_' and '-'.
    """

    __slots__ = ()

    def __new__(cls, value: str) -> Name:
        if not isinstance(value, str):
            raise TypeError(f"expected str, got {type(value).__name__}")
        size = len(value.encode("utf-8", "surrogatepass"))
        if size == 0:
            raise EmptyNameError()
        if size > MAX_LENGTH:
            raise NameTooLongError()
        try:
            instance = super().__new__(cls, value)
        except InvalidNulChar as error:
            raise NameContainsNulError(error.pos) from None
        invalid = next((c for c in value if c not in _VALID_CHARS), None)
        if invalid is not None:
            raise InvalidCharError(invalid)
        return instance