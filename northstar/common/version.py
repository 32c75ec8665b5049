"""Container versions and version requirements."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass

_U64_MAX = 2**64 - 1

_NUM = r"0|[1-9][0-9]*"
_IDENT = r"[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*"
_WILD = r"[*xX]"

_VERSION_RE = re.compile(
    rf"(?P<major>{_NUM})\.(?P<minor>{_NUM})\.(?P<patch>{_NUM})"
    rf"(?:-(?P<pre>{_IDENT}))?(?:\+(?P<build>{_IDENT}))?"
)

_COMPARATOR_RE = re.compile(
    rf"(?P<op>>=|<=|=|>|<|~|\^)? *"
    rf"(?P<major>{_NUM})"
    rf"(?:\.(?P<minor>{_NUM}|{_WILD}))?"
    rf"(?:\.(?P<patch>{_NUM}|{_WILD}))?"
    rf"(?:-(?P<pre>{_IDENT}))?"
    rf"(?:\+(?P<build>{_IDENT}))?"
)

VERSION_SCHEMA = {
    "type": "string",
    "minLength": 5,
    "pattern": "[0-9]+\\.[0-9]+\\.[0-9]+",
}


class VersionParseError(ValueError):
    """A version or version requirement could not be parsed."""


def _number(text: str, what: str) -> int:
    value = int(text)
    if value > _U64_MAX:
        raise VersionParseError(f"value of {what} version number exceeds u64::MAX")
    return value


@dataclass(frozen=True, order=True)
class Version:
    """A major.minor.patch version, ordered numerically."""

    major: int
    minor: int
    patch: int

    def __post_init__(self) -> None:
        for field_name in ("major", "minor", "patch"):
            value = getattr(self, field_name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"{field_name} must be an int")
            if not 0 <= value <= _U64_MAX:
                raise ValueError(f"{field_name} out of range: {value}")

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse a semantic version; pre-release and build parts are dropped."""
        if not text:
            raise VersionParseError("empty string, expected a semver version")
        match = _VERSION_RE.fullmatch(text)
        if match is None:
            raise VersionParseError(f"invalid semver version: {text!r}")
        return cls(
            _number(match["major"], "major"),
            _number(match["minor"], "minor"),
            _number(match["patch"], "patch"),
        )

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


class _Op(enum.Enum):
    EXACT = "="
    GREATER = ">"
    GREATER_EQ = ">="
    LESS = "<"
    LESS_EQ = "<="
    TILDE = "~"
    CARET = "^"
    WILDCARD = ""


@dataclass(frozen=True)
class _Comparator:
    op: _Op
    major: int
    minor: int | None
    patch: int | None
    pre: str

    @classmethod
    def parse(cls, text: str) -> _Comparator:
        match = _COMPARATOR_RE.fullmatch(text)
        if match is None:
            raise VersionParseError(f"invalid version requirement: {text!r}")
        explicit_op = match["op"]
        op = _Op(explicit_op) if explicit_op else _Op.CARET
        major = _number(match["major"], "major")
        minor_text, patch_text = match["minor"], match["patch"]
        minor = patch = None
        wildcard = False
        if minor_text is not None:
            if minor_text in "*xX":
                wildcard = True
            else:
                minor = _number(minor_text, "minor")
        if patch_text is not None:
            if patch_text in "*xX":
                wildcard = True
            elif wildcard:
                raise VersionParseError(f"unexpected character after wildcard in {text!r}")
            else:
                patch = _number(patch_text, "patch")
        if (match["pre"] is not None or match["build"] is not None) and patch is None:
            raise VersionParseError(f"pre-release or build metadata without patch in {text!r}")
        if wildcard and not explicit_op:
            op = _Op.WILDCARD
        return cls(op, major, minor, patch, match["pre"] or "")

    def _exact(self, version: Version) -> bool:
        if version.major != self.major:
            return False
        if self.minor is not None and version.minor != self.minor:
            return False
        if self.patch is not None and version.patch != self.patch:
            return False
        return not self.pre

    def _greater(self, version: Version) -> bool:
        if version.major != self.major:
            return version.major > self.major
        if self.minor is None:
            return False
        if version.minor != self.minor:
            return version.minor > self.minor
        if self.patch is None:
            return False
        if version.patch != self.patch:
            return version.patch > self.patch
        # A release is greater than any pre-release of the same numbers.
        return bool(self.pre)

    def _less(self, version: Version) -> bool:
        if version.major != self.major:
            return version.major < self.major
        if self.minor is None:
            return False
        if version.minor != self.minor:
            return version.minor < self.minor
        if self.patch is None:
            return False
        if version.patch != self.patch:
            return version.patch < self.patch
        return False

    def _tilde(self, version: Version) -> bool:
        if version.major != self.major:
            return False
        if self.minor is not None and version.minor != self.minor:
            return False
        if self.patch is not None and version.patch != self.patch:
            return version.patch > self.patch
        return True

    def _caret(self, version: Version) -> bool:
        if version.major != self.major:
            return False
        if self.minor is None:
            return True
        minor = self.minor
        if self.patch is None:
            return version.minor >= minor if self.major > 0 else version.minor == minor
        patch = self.patch
        if self.major > 0:
            if version.minor != minor:
                return version.minor > minor
            if version.patch != patch:
                return version.patch > patch
        elif minor > 0:
            if version.minor != minor:
                return False
            if version.patch != patch:
                return version.patch > patch
        elif version.minor != minor or version.patch != patch:
            return False
        return True

    def _wildcard(self, version: Version) -> bool:
        if version.major != self.major:
            return False
        return self.minor is None or version.minor == self.minor

    def matches(self, version: Version) -> bool:
        match self.op:
            case _Op.EXACT:
                return self._exact(version)
            case _Op.GREATER:
                return self._greater(version)
            case _Op.GREATER_EQ:
                return self._exact(version) or self._greater(version)
            case _Op.LESS:
                return self._less(version)
            case _Op.LESS_EQ:
                return self._exact(version) or self._less(version)
            case _Op.TILDE:
                return self._tilde(version)
            case _Op.CARET:
                return self._caret(version)
            case _Op.WILDCARD:
                return self._wildcard(version)
        raise AssertionError(self.op)

    def __str__(self) -> str:
        text = f"{self.op.value}{self.major}"
        if self.minor is not None:
            text += f".{self.minor}"
            if self.patch is not None:
                text += f".{self.patch}"
                if self.pre:
                    text += f"-{self.pre}"
            elif self.op is _Op.WILDCARD:
                text += ".*"
        elif self.op is _Op.WILDCARD:
            text += ".*"
        return text


@dataclass(frozen=True)
class VersionReq:
    """A set of comparators that a version must all satisfy."""

    comparators: tuple[_Comparator, ...] = ()

    @classmethod
    def parse(cls, text: str) -> VersionReq:
        """Parse a comma separated version requirement such as ``>=1.0, <2``."""
        stripped = text.strip(" ")
        if not stripped:
            raise VersionParseError("empty string, expected a semver version")
        if stripped in ("*", "x", "X"):
            return cls()
        pieces = [piece.strip(" ") for piece in stripped.split(",")]
        if any(not piece for piece in pieces):
            raise VersionParseError(f"empty comparator in {text!r}")
        return cls(tuple(_Comparator.parse(piece) for piece in pieces))

    def matches(self, version: Version) -> bool:
        """Return True if ``version`` satisfies every comparator."""
        return all(comparator.matches(version) for comparator in self.comparators)

    def __str__(self) -> str:
        if not self.comparators:
            return "*"
        return ", ".join(str(comparator) for comparator in self.comparators)